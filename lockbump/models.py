"""Core data models for lockbump."""

import posixpath
from dataclasses import dataclass, field, replace

from packaging.utils import canonicalize_name


@dataclass(frozen=True)
class ManagedFile:
    """A dependency file as supplied by the caller, or as produced by an update."""

    name: str
    content: str
    directory: str = "/"

    @property
    def path(self) -> str:
        return posixpath.normpath(posixpath.join(self.directory, self.name))

    def with_content(self, content: str) -> "ManagedFile":
        """Return a copy of this file carrying new content."""
        return replace(self, content=content)


@dataclass(frozen=True)
class Requirement:
    """A single requirement record for a dependency in one file."""

    file: str
    requirement: str | None = None
    groups: tuple[str, ...] = ()
    source: dict | None = None


@dataclass(frozen=True)
class Dependency:
    """One logical dependency change an update run must realise."""

    name: str
    version: str
    previous_version: str | None = None
    requirements: tuple[Requirement, ...] = ()
    previous_requirements: tuple[Requirement, ...] = ()
    package_manager: str = "pip"

    @property
    def is_subdependency(self) -> bool:
        return not self.requirements

    def requirement_for(self, filename: str) -> Requirement | None:
        return next((r for r in self.requirements if r.file == filename), None)

    def previous_requirement_for(self, filename: str) -> Requirement | None:
        return next(
            (r for r in self.previous_requirements if r.file == filename), None
        )


@dataclass(frozen=True)
class Credential:
    """Opaque credential record passed through to the resolver environment."""

    type: str
    host: str | None = None
    username: str | None = field(default=None, repr=False)
    password: str | None = field(default=None, repr=False)
    token: str | None = field(default=None, repr=False)


@dataclass
class PinnedEntry:
    """A single pinned requirement in a compiled lock file."""

    name: str
    version: str | None
    requirement_text: str
    via: tuple[str, ...] = ()
    hashes: tuple[str, ...] = ()
    editable: bool = False
    # Blank and comment lines between the previous entry and this one
    separator: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        # Editable entries are keyed by their target, not a package name
        return f"-e {self.name}" if self.editable else canonicalize_name(self.name)


@dataclass
class HeaderBlock:
    """Lines preceding the first pinned entry, kept verbatim."""

    lines: list[str] = field(default_factory=list)


@dataclass
class LockStyle:
    """Formatting conventions observed in a lock file."""

    hashed: bool = False
    via_style: str = "none"  # none, inline, block
    comment_column: int | None = None
    hash_indent: str = "    "
    annotates_sources: bool = False
    trailing_newline: bool = True


@dataclass
class LockFile:
    """A parsed pip-compile output file."""

    header: HeaderBlock
    entries: list[PinnedEntry]
    footer: list[str] = field(default_factory=list)
    style: LockStyle = field(default_factory=LockStyle)

    def entry_for(self, name: str) -> PinnedEntry | None:
        key = name if name.startswith("-e ") else canonicalize_name(name)
        return next((e for e in self.entries if e.key == key), None)
