"""Rewrite setup.py source so it can be inspected without side effects.

The rewrite is structural: the source is parsed into a concrete syntax tree
with LibCST, a closed set of node shapes is replaced, and the tree is written
back. Anything not matched keeps its exact original text.

Rules, applied as independent passes in this order:

1. Statements that load other files (``exec(open(...).read())``,
   ``runpy.run_path(...)``, relative imports, imports of project-local
   modules) are removed.
2. File reads on the right of an assignment (``open(f).read()``,
   ``Path(f).read_text()``) become the literal ``"text"``; any trailing call
   chain is kept.
3. Descriptive ``setup()`` keywords (``long_description``, ``classifiers``,
   ``cmdclass``, ...) and matching ``obj.<field> = ...`` assignments are
   removed.
4. A computed ``version`` becomes a literal of the replacement version. String
   literals are left alone; inside an f-string only the interpolated
   expression is replaced.
5. File-enumerating keywords (``packages=find_packages()``) become ``[]``.

A pass that fails leaves the output of the earlier passes in place and marks
the result as degraded.
"""

import sys
from dataclasses import dataclass, field

import libcst as cst
from libcst.helpers import get_full_name_for_node

from .errors import ErrorCode
from .logging import logger

ALLOWED_IMPORT_ROOTS = frozenset(sys.stdlib_module_names) | {
    "__future__",
    "setuptools",
    "distutils",
    "pkg_resources",
}

LOADER_CALLS = frozenset(
    {
        "exec",
        "execfile",
        "runpy.run_path",
        "runpy.run_module",
        "importlib.import_module",
        "__import__",
        "imp.load_source",
    }
)

FILE_OPENERS = frozenset({"open", "io.open", "codecs.open"})
READ_METHODS = frozenset({"read", "readlines"})
PATH_READ_METHODS = frozenset({"read_text", "read_bytes"})

IRRELEVANT_FIELDS = frozenset(
    {
        "long_description",
        "long_description_content_type",
        "description",
        "classifiers",
        "keywords",
        "license",
        "license_files",
        "author",
        "author_email",
        "maintainer",
        "maintainer_email",
        "url",
        "download_url",
        "project_urls",
        "platforms",
        "cmdclass",
        "entry_points",
        "package_data",
        "exclude_package_data",
        "include_package_data",
        "zip_safe",
        "test_suite",
    }
)

FILES_FIELDS = frozenset(
    {"files", "packages", "py_modules", "scripts", "data_files", "ext_modules"}
)

PLACEHOLDER_TEXT = '"text"'


@dataclass
class SanitizeResult:
    """Sanitized source plus an optional non-fatal diagnostic."""

    text: str
    degraded: bool = False
    diagnostic: str | None = None
    code: str | None = None


@dataclass
class SetupFacts:
    """Literal facts read from a sanitized setup.py."""

    name: str | None = None
    version: str | None = None
    install_requires: list[str] = field(default_factory=list)
    extras_require: dict[str, list[str]] = field(default_factory=dict)

    @property
    def all_requirements(self) -> list[str]:
        """install_requires followed by every extra's requirements."""
        extras = [text for group in self.extras_require.values() for text in group]
        return [*self.install_requires, *extras]


def _is_setup_call(node: cst.Call) -> bool:
    name = get_full_name_for_node(node.func)
    return name is not None and name.split(".")[-1] == "setup"


def _drop_args(args, should_drop) -> list[cst.Arg]:
    """Remove arguments, moving a dropped last argument's comma to the new last."""
    kept = [arg for arg in args if not should_drop(arg)]
    if kept and args and should_drop(args[-1]):
        kept[-1] = kept[-1].with_changes(comma=args[-1].comma)
    return kept


def _keyword(arg: cst.Arg) -> str | None:
    return arg.keyword.value if arg.keyword is not None else None


def _assigned_attribute(node: cst.Assign) -> str | None:
    """Field name for ``obj.<field> = value`` single-target assignments."""
    if len(node.targets) != 1:
        return None
    target = node.targets[0].target
    if isinstance(target, cst.Attribute):
        return target.attr.value
    return None


class _LoaderRemover(cst.CSTTransformer):
    """Rule 1: drop statements whose effect is loading another file."""

    def __init__(self) -> None:
        super().__init__()
        self.removed = 0

    def _is_loader(self, node: cst.BaseSmallStatement) -> bool:
        if isinstance(node, cst.Import):
            return any(
                _import_root(get_full_name_for_node(alias.name)) not in ALLOWED_IMPORT_ROOTS
                for alias in node.names
            )
        if isinstance(node, cst.ImportFrom):
            if node.relative:
                return True
            module = get_full_name_for_node(node.module) if node.module else None
            return _import_root(module) not in ALLOWED_IMPORT_ROOTS
        if isinstance(node, cst.Expr) and isinstance(node.value, cst.Call):
            return get_full_name_for_node(node.value.func) in LOADER_CALLS
        return False

    def leave_SimpleStatementLine(
        self, original_node: cst.SimpleStatementLine, updated_node: cst.SimpleStatementLine
    ):
        kept = [stmt for stmt in updated_node.body if not self._is_loader(stmt)]
        if len(kept) == len(updated_node.body):
            return updated_node
        self.removed += len(updated_node.body) - len(kept)
        if not kept:
            return cst.RemoveFromParent()
        kept[-1] = kept[-1].with_changes(semicolon=cst.MaybeSentinel.DEFAULT)
        return updated_node.with_changes(body=kept)


def _import_root(dotted: str | None) -> str | None:
    return dotted.split(".")[0] if dotted else None


class _FileReadReplacer(cst.CSTTransformer):
    """Rule 2: replace file reads inside assignment values with inert text."""

    def __init__(self) -> None:
        super().__init__()
        self._assignment_depth = 0
        self.replaced = 0

    def visit_Assign(self, node: cst.Assign) -> bool:
        self._assignment_depth += 1
        return True

    def leave_Assign(self, original_node: cst.Assign, updated_node: cst.Assign):
        self._assignment_depth -= 1
        return updated_node

    def visit_AnnAssign(self, node: cst.AnnAssign) -> bool:
        self._assignment_depth += 1
        return True

    def leave_AnnAssign(self, original_node: cst.AnnAssign, updated_node: cst.AnnAssign):
        self._assignment_depth -= 1
        return updated_node

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call):
        if self._assignment_depth and _is_file_read(updated_node):
            self.replaced += 1
            return cst.SimpleString(PLACEHOLDER_TEXT)
        return updated_node


def _is_file_read(node: cst.Call) -> bool:
    if not isinstance(node.func, cst.Attribute):
        return False
    method = node.func.attr.value
    receiver = node.func.value
    if method in READ_METHODS and isinstance(receiver, cst.Call):
        return get_full_name_for_node(receiver.func) in FILE_OPENERS
    return method in PATH_READ_METHODS


class _IrrelevantFieldRemover(cst.CSTTransformer):
    """Rule 3: drop descriptive fields that never declare dependencies."""

    def __init__(self) -> None:
        super().__init__()
        self.removed = 0

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call):
        if not _is_setup_call(updated_node):
            return updated_node

        def irrelevant(arg: cst.Arg) -> bool:
            return _keyword(arg) in IRRELEVANT_FIELDS

        kept = _drop_args(updated_node.args, irrelevant)
        self.removed += len(updated_node.args) - len(kept)
        return updated_node.with_changes(args=kept)

    def leave_SimpleStatementLine(
        self, original_node: cst.SimpleStatementLine, updated_node: cst.SimpleStatementLine
    ):
        kept = [
            stmt
            for stmt in updated_node.body
            if not (
                isinstance(stmt, cst.Assign)
                and _assigned_attribute(stmt) in IRRELEVANT_FIELDS
            )
        ]
        if len(kept) == len(updated_node.body):
            return updated_node
        self.removed += len(updated_node.body) - len(kept)
        if not kept:
            return cst.RemoveFromParent()
        kept[-1] = kept[-1].with_changes(semicolon=cst.MaybeSentinel.DEFAULT)
        return updated_node.with_changes(body=kept)


class _VersionReplacer(cst.CSTTransformer):
    """Rule 4: pin computed versions to a literal."""

    def __init__(self, replacement_version: str) -> None:
        super().__init__()
        self.replacement_version = replacement_version
        self.replaced = 0

    def _replace(self, value: cst.BaseExpression) -> cst.BaseExpression:
        if isinstance(value, (cst.SimpleString, cst.ConcatenatedString)):
            return value
        if isinstance(value, cst.FormattedString):
            return self._replace_interpolations(value)
        if isinstance(value, (cst.Name, cst.Attribute, cst.Call)):
            self.replaced += 1
            return cst.SimpleString(f'"{self.replacement_version}"')
        return value

    def _replace_interpolations(self, value: cst.FormattedString) -> cst.FormattedString:
        # The inner literal must not reuse the f-string's own quote character
        quote = "'" if value.end.endswith('"') else '"'
        parts = []
        for part in value.parts:
            if isinstance(part, cst.FormattedStringExpression):
                self.replaced += 1
                part = part.with_changes(
                    expression=cst.SimpleString(
                        f"{quote}{self.replacement_version}{quote}"
                    )
                )
            parts.append(part)
        return value.with_changes(parts=parts)

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call):
        if not _is_setup_call(updated_node):
            return updated_node
        args = [
            arg.with_changes(value=self._replace(arg.value))
            if _keyword(arg) == "version"
            else arg
            for arg in updated_node.args
        ]
        return updated_node.with_changes(args=args)

    def leave_Assign(self, original_node: cst.Assign, updated_node: cst.Assign):
        if _assigned_attribute(updated_node) != "version":
            return updated_node
        return updated_node.with_changes(value=self._replace(updated_node.value))


class _FilesListReplacer(cst.CSTTransformer):
    """Rule 5: never enumerate the filesystem for file lists."""

    def __init__(self) -> None:
        super().__init__()
        self.replaced = 0

    def leave_Call(self, original_node: cst.Call, updated_node: cst.Call):
        if not _is_setup_call(updated_node):
            return updated_node
        args = []
        for arg in updated_node.args:
            if _keyword(arg) in FILES_FIELDS and _enumerates(arg.value):
                self.replaced += 1
                arg = arg.with_changes(value=cst.List(elements=[]))
            args.append(arg)
        return updated_node.with_changes(args=args)

    def leave_Assign(self, original_node: cst.Assign, updated_node: cst.Assign):
        if _assigned_attribute(updated_node) in FILES_FIELDS and _enumerates(
            updated_node.value
        ):
            self.replaced += 1
            return updated_node.with_changes(value=cst.List(elements=[]))
        return updated_node


def _enumerates(value: cst.BaseExpression) -> bool:
    # find_packages(), glob.glob(...), or a slice of one: sorted(glob(...))[1:]
    if isinstance(value, cst.Call):
        return True
    return isinstance(value, cst.Subscript) and isinstance(value.value, cst.Call)


class SetupFileSanitizer:
    """Rewrites setup.py source into an inert form for dependency discovery."""

    def __init__(self, replacement_version: str = "0.0.1"):
        self.replacement_version = replacement_version

    def _passes(self) -> list[tuple[str, cst.CSTTransformer]]:
        return [
            ("loaders", _LoaderRemover()),
            ("file reads", _FileReadReplacer()),
            ("irrelevant fields", _IrrelevantFieldRemover()),
            ("version", _VersionReplacer(self.replacement_version)),
            ("files", _FilesListReplacer()),
        ]

    def rewrite(self, source: str) -> SanitizeResult:
        """Sanitize source, degrading to partial output instead of raising."""
        try:
            module = cst.parse_module(source)
        except cst.ParserSyntaxError as e:
            return self._degraded(source, f"could not parse source: {e.message}")

        for label, transformer in self._passes():
            try:
                module = module.visit(transformer)
            except Exception as e:
                return self._degraded(module.code, f"{label} pass failed: {e}")

        return SanitizeResult(text=module.code)

    def _degraded(self, text: str, diagnostic: str) -> SanitizeResult:
        logger.warning(f"Sanitization degraded, continuing with partial output: {diagnostic}")
        return SanitizeResult(
            text=text,
            degraded=True,
            diagnostic=diagnostic,
            code=ErrorCode.SANITIZATION_DEGRADED.value,
        )


def sanitize(source: str, replacement_version: str = "0.0.1") -> str:
    """Return sanitized setup.py text.

    Args:
        source: The setup.py content
        replacement_version: Literal used for computed version values

    Returns:
        Best-effort sanitized text
    """
    return SetupFileSanitizer(replacement_version).rewrite(source).text


def extract_setup_facts(source: str) -> SetupFacts:
    """Read literal name/version/requirements from setup() without running it."""
    facts = SetupFacts()
    try:
        module = cst.parse_module(source)
    except cst.ParserSyntaxError:
        return facts

    collector = _SetupFactsCollector(facts)
    module.visit(collector)
    return facts


class _SetupFactsCollector(cst.CSTVisitor):
    def __init__(self, facts: SetupFacts) -> None:
        super().__init__()
        self.facts = facts

    def visit_Call(self, node: cst.Call) -> bool:
        if not _is_setup_call(node):
            return True
        for arg in node.args:
            keyword = _keyword(arg)
            if keyword == "name":
                self.facts.name = _literal_string(arg.value)
            elif keyword == "version":
                self.facts.version = _literal_string(arg.value)
            elif keyword == "install_requires":
                self.facts.install_requires = _literal_strings(arg.value)
            elif keyword == "extras_require" and isinstance(arg.value, cst.Dict):
                for element in arg.value.elements:
                    if not isinstance(element, cst.DictElement):
                        continue
                    extra = _literal_string(element.key)
                    if extra is not None:
                        self.facts.extras_require[extra] = _literal_strings(
                            element.value
                        )
        return True


def _literal_string(node: cst.BaseExpression) -> str | None:
    if isinstance(node, (cst.SimpleString, cst.ConcatenatedString)):
        value = node.evaluated_value
        return value if isinstance(value, str) else None
    return None


def _literal_strings(node: cst.BaseExpression) -> list[str]:
    if not isinstance(node, (cst.List, cst.Tuple)):
        return []
    values = []
    for element in node.elements:
        value = _literal_string(element.value)
        if value is not None:
            values.append(value)
    return values
