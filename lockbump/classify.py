"""Assign each dependency file its role in an update run."""

import posixpath
from dataclasses import dataclass, field

from .lockfile import compile_command, parse_lockfile
from .models import Dependency, ManagedFile

MANIFEST_SUFFIX = ".in"
COMPILED_SUFFIX = ".txt"
SUPPORTING_SCRIPTS = ("setup.py",)


def _stem(file: ManagedFile) -> str:
    return posixpath.splitext(file.path)[0]


def _header_paths(file: ManagedFile) -> tuple[str | None, list[str]]:
    """Output and source paths named by a lock file's pip-compile header."""
    command = compile_command(parse_lockfile(file.content))
    if command is None:
        return None, []
    base = posixpath.dirname(file.path)
    output = posixpath.normpath(posixpath.join("/", command.output_file)) if command.output_file else None
    sources = []
    for source in command.source_files:
        sources.append(posixpath.normpath(posixpath.join("/", source)))
        sources.append(posixpath.normpath(posixpath.join(base, source)))
    return output, sources


@dataclass
class FileRoles:
    """Dependency files grouped by how an update run treats them."""

    manifests: list[ManagedFile] = field(default_factory=list)
    compiled: list[ManagedFile] = field(default_factory=list)
    supporting: list[ManagedFile] = field(default_factory=list)
    plain: list[ManagedFile] = field(default_factory=list)
    other: list[ManagedFile] = field(default_factory=list)

    def sources_for(self, compiled: ManagedFile) -> list[ManagedFile]:
        """Manifests that compile into the given lock file."""
        same_stem = [m for m in self.manifests if _stem(m) == _stem(compiled)]
        if same_stem:
            return same_stem
        _, sources = _header_paths(compiled)
        return [m for m in self.manifests if m.path in sources]


def _is_compiled(file: ManagedFile, manifests: list[ManagedFile]) -> bool:
    if not file.name.endswith(COMPILED_SUFFIX):
        return False
    if any(_stem(m) == _stem(file) for m in manifests):
        return True
    output, sources = _header_paths(file)
    return output == file.path and any(m.path in sources for m in manifests)


def classify_files(files: list[ManagedFile], dependency: Dependency) -> FileRoles:
    """Group files into manifests, compiled lock files, supporting scripts and plain pins.

    A .txt file counts as compiled when a same-named .in sits beside it, or when
    its pip-compile header names it as the output of a manifest that is present.
    Anything else carrying a requirement for the dependency is a plain pin file.
    """
    roles = FileRoles()
    roles.manifests = [f for f in files if f.name.endswith(MANIFEST_SUFFIX)]
    requirement_files = {
        r.file for r in (*dependency.requirements, *dependency.previous_requirements)
    }

    for file in files:
        if file in roles.manifests:
            continue
        if posixpath.basename(file.name) in SUPPORTING_SCRIPTS:
            roles.supporting.append(file)
        elif _is_compiled(file, roles.manifests):
            roles.compiled.append(file)
        elif file.name in requirement_files:
            roles.plain.append(file)
        else:
            roles.other.append(file)
    return roles
