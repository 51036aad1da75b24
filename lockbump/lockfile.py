"""Parsing, rendering and merging of pip-compile output files."""

import re
import shlex
from dataclasses import dataclass, field

from packaging.requirements import InvalidRequirement, Requirement

from .models import HeaderBlock, LockFile, LockStyle, PinnedEntry

DEFAULT_COMMENT_COLUMN = 26

COMMENT_START = re.compile(r"\s+#")
VIA_COMMENT = re.compile(r"^#\s*via\b\s*(?P<via>.*)$")
VIA_CONTINUATION = re.compile(r"^#\s{2,}(?P<via>\S.*)$")
HASH_OPTION = re.compile(r"--hash[=\s](?P<hash>\S+)")
HEADER_COMMAND = re.compile(r"^#\s+(?P<command>(?:\S*/)?pip-compile\b.*)$")

CARRIED_FLAGS = frozenset(
    {
        "--generate-hashes",
        "--allow-unsafe",
        "--no-emit-index-url",
        "--no-emit-trusted-host",
        "--no-emit-find-links",
        "--emit-index-url",
        "--strip-extras",
        "--no-strip-extras",
        "--no-annotate",
        "--annotation-style",
        "--no-header",
        "--resolver",
        "--pre",
    }
)
VALUED_FLAGS = frozenset({"--annotation-style", "--resolver", "--output-file", "-o"})


@dataclass
class CompileCommand:
    """The pip-compile invocation recorded in a lock file header."""

    options: list[str] = field(default_factory=list)
    output_file: str | None = None
    source_files: list[str] = field(default_factory=list)


def _split_comment(line: str) -> tuple[str, str | None, int | None]:
    """Split a physical line into content, trailing comment and comment column."""
    match = COMMENT_START.search(line)
    if not match:
        return line.rstrip(), None, None
    column = match.end() - 1
    return line[: match.start()].rstrip(), line[column:], column


def _indentation(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _via_items(text: str) -> list[str]:
    return [item.strip() for item in text.split(",") if item.strip()]


def _is_entry_start(line: str) -> bool:
    if not line.strip() or line[0].isspace() or line.startswith("#"):
        return False
    if line.startswith("-"):
        return line.startswith(("-e ", "--editable ", "--editable="))
    return True


def _pinned_version(requirement: Requirement) -> str | None:
    specifiers = list(requirement.specifier)
    if len(specifiers) == 1 and specifiers[0].operator in ("==", "==="):
        return specifiers[0].version
    return None


class _EntryBuilder:
    """Accumulates the physical lines that make up one lock file entry."""

    def __init__(self, requirement_text: str, separator: list[str]):
        self.requirement_text = requirement_text
        self.separator = tuple(separator)
        self.via: list[str] = []
        self.hashes: list[str] = []
        self.in_via_block = False

    def build(self) -> PinnedEntry:
        text = self.requirement_text
        if text.startswith(("-e", "--editable")):
            target = re.sub(r"^(-e|--editable)[=\s]+", "", text).strip()
            return PinnedEntry(
                name=target,
                version=None,
                requirement_text=text,
                via=tuple(self.via),
                editable=True,
                separator=self.separator,
            )
        try:
            requirement = Requirement(text)
            name, version = requirement.name, _pinned_version(requirement)
        except InvalidRequirement:
            name, version = re.split(r"[\s\[=<>!~;@]", text, maxsplit=1)[0], None
        return PinnedEntry(
            name=name,
            version=version,
            requirement_text=text,
            via=tuple(self.via),
            hashes=tuple(self.hashes),
            separator=self.separator,
        )


def parse_lockfile(text: str) -> LockFile:
    """Parse pip-compile output into header, entries, footer and style.

    Args:
        text: The lock file content

    Returns:
        Parsed LockFile with the conventions the file itself uses
    """
    lines = text.splitlines()
    style = LockStyle(trailing_newline=text.endswith("\n") or not text)
    header: list[str] = []
    entries: list[PinnedEntry] = []
    trailing: list[str] = []
    padded_columns: list[int] = []
    unpadded = False
    current: _EntryBuilder | None = None
    continued = False
    indent_seen = False

    def finish() -> None:
        nonlocal current
        if current is not None:
            entries.append(current.build())
            current = None

    def record_inline_via(content: str, comment: str, column: int) -> bool:
        nonlocal unpadded
        via = VIA_COMMENT.match(comment)
        if not via:
            return False
        current.via.extend(_via_items(via.group("via")))
        style.via_style = "inline"
        if column - len(content) > 2:
            padded_columns.append(column)
        elif len(content) < DEFAULT_COMMENT_COLUMN - 2:
            # A short line with a two-space gap: the file does not align comments
            unpadded = True
        return True

    for line in lines:
        stripped = line.strip()

        if continued and current is not None:
            # Continuation of the requirement: hash options or a via comment
            content, comment, column = _split_comment(line)
            if stripped.startswith("#"):
                via = VIA_COMMENT.match(stripped)
                if via:
                    current.via.extend(_via_items(via.group("via")))
                    style.via_style = "inline"
                continued = False
                continue
            for match in HASH_OPTION.finditer(content):
                if not indent_seen:
                    style.hash_indent = _indentation(line)
                    indent_seen = True
                current.hashes.append(match.group("hash"))
            if comment is not None:
                record_inline_via(content, comment, column)
            continued = content.endswith("\\")
            continue

        if current is not None and line[:1].isspace() and stripped.startswith("#"):
            # Indented comments under an entry carry block-style via annotations
            via = VIA_COMMENT.match(stripped)
            if via:
                style.via_style = "block"
                if not indent_seen:
                    style.hash_indent = _indentation(line)
                    indent_seen = True
                current.via.extend(_via_items(via.group("via")))
                current.in_via_block = True
                continue
            more = VIA_CONTINUATION.match(stripped)
            if more and current.in_via_block:
                current.via.append(more.group("via").strip())
                continue

        if _is_entry_start(line):
            finish()
            # Lines between two entries belong to the later one; only lines
            # after the last entry form the footer
            content, comment, column = _split_comment(line)
            continued = content.endswith("\\")
            requirement_text = content[:-1].rstrip() if continued else content
            current = _EntryBuilder(requirement_text, trailing)
            trailing = []
            if comment is not None:
                record_inline_via(content, comment, column)
            continue

        if current is None and not entries:
            header.append(line)
        else:
            finish()
            trailing.append(line)

    finish()

    style.hashed = any(entry.hashes for entry in entries)
    style.annotates_sources = any(
        item.startswith(("-r ", "-c ")) for entry in entries for item in entry.via
    )
    if padded_columns:
        style.comment_column = min(padded_columns)
    elif unpadded:
        style.comment_column = 2

    return LockFile(
        header=HeaderBlock(lines=header),
        entries=entries,
        footer=trailing,
        style=style,
    )


def _align(line: str, comment: str, column: int) -> str:
    # pip-tools pads the requirement to column - 2, then adds two spaces
    return f"{line.ljust(column - 2)}  {comment}"


def render_entry(entry: PinnedEntry, style: LockStyle, column: int) -> list[str]:
    """Render one entry following a file's formatting conventions."""
    indent = style.hash_indent
    lines = list(entry.separator)
    if entry.hashes:
        lines.append(f"{entry.requirement_text} \\")
        lines.extend(f"{indent}--hash={digest} \\" for digest in entry.hashes)
        lines[-1] = lines[-1][:-2]
    else:
        lines.append(entry.requirement_text)

    if not entry.via or style.via_style == "none":
        return lines

    if style.via_style == "inline":
        comment = f"# via {', '.join(entry.via)}"
        if entry.hashes:
            lines[-1] += " \\"
            lines.append(f"{indent}{comment}")
        else:
            lines[-1] = _align(lines[-1], comment, column)
        return lines

    if len(entry.via) == 1:
        lines.append(f"{indent}# via {entry.via[0]}")
    else:
        lines.append(f"{indent}# via")
        lines.extend(f"{indent}#   {item}" for item in entry.via)
    return lines


def render(lockfile: LockFile, comment_column: int | None = None) -> str:
    """Serialise a LockFile back to text."""
    style = lockfile.style
    column = style.comment_column or comment_column or DEFAULT_COMMENT_COLUMN
    lines = list(lockfile.header.lines)
    for entry in lockfile.entries:
        lines.extend(render_entry(entry, style, column))
    lines.extend(lockfile.footer)
    text = "\n".join(lines)
    if style.trailing_newline and lines:
        text += "\n"
    return text


def _match_editables(original: LockFile, fresh: LockFile) -> dict[str, PinnedEntry]:
    """Pair fresh editable entries with the original ones, by position."""
    originals = [e for e in original.entries if e.editable]
    freshes = [e for e in fresh.entries if e.editable]
    return {f.key: o for f, o in zip(freshes, originals)}


def merge(
    original_text: str, fresh_text: str, comment_column: int | None = None
) -> str:
    """Reconcile fresh resolver output with the original lock file's format.

    The header and formatting conventions come from the original; the entry
    set, versions, requirers, digests and the comment lines between entries
    (such as the unsafe-packages notice) come from the fresh output.

    Args:
        original_text: The lock file as committed
        fresh_text: The lock file as just written by the resolver
        comment_column: Fallback column for via-comments when the original shows none

    Returns:
        Merged lock file text
    """
    original = parse_lockfile(original_text)
    fresh = parse_lockfile(fresh_text)
    style = original.style
    editables = _match_editables(original, fresh)

    def reconcile(entry: PinnedEntry) -> PinnedEntry:
        source = editables.get(entry.key)
        via = entry.via if style.via_style != "none" else ()
        if not style.annotates_sources:
            via = tuple(item for item in via if not item.startswith(("-r ", "-c ")))
        return PinnedEntry(
            name=source.name if source else entry.name,
            version=entry.version,
            requirement_text=source.requirement_text if source else entry.requirement_text,
            via=via,
            hashes=entry.hashes if style.hashed else (),
            editable=entry.editable,
            separator=entry.separator,
        )

    fresh_entries = {
        (editables[e.key].key if e.key in editables else e.key): e for e in fresh.entries
    }
    merged: list[PinnedEntry] = []
    for entry in original.entries:
        if entry.key in fresh_entries:
            merged.append(reconcile(fresh_entries.pop(entry.key)))
    # Packages new to this file are appended in the resolver's order
    merged.extend(reconcile(entry) for entry in fresh_entries.values())

    footer = fresh.footer if original.footer else original.footer
    result = LockFile(header=original.header, entries=merged, footer=footer, style=style)
    return render(result, comment_column)


def compile_command(lockfile: LockFile) -> CompileCommand | None:
    """Recover the pip-compile command line recorded in the header, if any."""
    for line in lockfile.header.lines:
        match = HEADER_COMMAND.match(line.strip())
        if match:
            break
    else:
        return None

    try:
        tokens = shlex.split(match.group("command"))[1:]
    except ValueError:
        return None

    command = CompileCommand()
    index = 0
    while index < len(tokens):
        token = tokens[index]
        flag, _, value = token.partition("=")
        if flag in VALUED_FLAGS and not value and index + 1 < len(tokens):
            value = tokens[index + 1]
            index += 1
        if flag in ("--output-file", "-o"):
            command.output_file = value
        elif flag in CARRIED_FLAGS:
            command.options.append(f"{flag}={value}" if value else flag)
        elif not token.startswith("-"):
            command.source_files.append(token)
        index += 1
    return command


def compile_options(lockfile: LockFile) -> list[str]:
    """pip-compile flags needed to reproduce this file's conventions."""
    command = compile_command(lockfile)
    options = list(command.options) if command else []
    if lockfile.style.hashed and "--generate-hashes" not in options:
        options.append("--generate-hashes")
    return options
