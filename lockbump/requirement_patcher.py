"""Exact, name-anchored rewriting of requirement strings."""

import re

from .errors import RequirementNotFound

# Characters that may continue a version or a package name
VERSION_CONTINUATION = r"[\w.*+!-]"
NAME_BOUNDARY = r"(?<![\w.-])"


def _name_pattern(package_name: str) -> str:
    """Regex for a package name under PEP 503 normalisation."""
    parts = re.split(r"[-_.]+", package_name)
    return r"[-_.]+".join(re.escape(part) for part in parts)


def _requirement_pattern(requirement: str) -> str:
    """Regex for a specifier string, tolerant of whitespace around commas and operators."""
    pieces = []
    for specifier in requirement.split(","):
        match = re.match(r"\s*(===|==|~=|!=|<=|>=|<|>)?\s*(.*?)\s*$", specifier)
        operator, version = match.group(1) or "", match.group(2)
        pieces.append(re.escape(operator) + r"\s*" + re.escape(version))
    return r"\s*,\s*".join(pieces)


def _code_span(line: str) -> int:
    """Length of the part of a line that is not an inline comment."""
    if line.lstrip().startswith("#"):
        return 0
    match = re.search(r"\s#", line)
    return match.start() if match else len(line)


def patch(
    file_text: str,
    package_name: str,
    old_requirement: str,
    new_requirement: str,
    filename: str | None = None,
) -> str:
    """Replace a package's requirement string, leaving everything else as written.

    Args:
        file_text: Content of the manifest or requirements file
        package_name: Dependency whose requirement changes
        old_requirement: Specifier currently in the file, e.g. "<=17.4.0"
        new_requirement: Specifier to write instead, e.g. "<=18.1.0"
        filename: Used for error context only

    Returns:
        The patched file text

    Raises:
        RequirementNotFound: If no occurrence of the old requirement is anchored
            to the package name
    """
    pattern = re.compile(
        NAME_BOUNDARY
        + r"(?P<prefix>"
        + _name_pattern(package_name)
        + r"(?:\s*\[[^\]]*\])?\s*)"
        + _requirement_pattern(old_requirement)
        + rf"(?!{VERSION_CONTINUATION})",
        re.IGNORECASE,
    )

    replacements = 0
    lines = file_text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        span = _code_span(line)
        code, rest = line[:span], line[span:]
        patched, count = pattern.subn(
            lambda m: m.group("prefix") + new_requirement.strip(), code
        )
        if count:
            lines[index] = patched + rest
            replacements += count

    if not replacements:
        raise RequirementNotFound(
            f"Could not find {package_name}{old_requirement} in {filename or 'file'}",
            hint="The file content no longer matches the dependency's previous requirement",
            context={
                "dependency": package_name,
                "file": filename or "",
                "requirement": old_requirement,
            },
        )
    return "".join(lines)
