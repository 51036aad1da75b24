"""CLI application for lockbump."""

import difflib
import json
from pathlib import Path

import typer
from rich.console import Console

from lockbump.errors import LockbumpError, NoOpUpdate
from lockbump.lockfile import merge as merge_lockfiles
from lockbump.logging import configure_logging
from lockbump.models import Dependency, ManagedFile, Requirement
from lockbump.sanitize import SetupFileSanitizer
from lockbump.settings import Settings
from lockbump.updater import update_files

console = Console()

OPERATORS = ("==", "<=", ">=", "~=", "!=")


def parse_requirement_options(values: list[str] | None) -> tuple[Requirement, ...]:
    """Turn FILE=REQUIREMENT (or bare FILE) options into Requirement records."""
    requirements = []
    for value in values or []:
        filename, sep, requirement = value.partition("=")
        # "requirements.txt==4.2.0" splits on the first "=", leaving "=4.2.0"
        if sep and requirement.startswith("=") and not requirement.startswith(OPERATORS):
            requirement = "=" + requirement
        requirements.append(
            Requirement(file=filename, requirement=requirement or None)
        )
    return tuple(requirements)


def format_diff_output(original: ManagedFile, updated: ManagedFile) -> str:
    """Format a unified diff for one changed file."""
    return "".join(
        difflib.unified_diff(
            original.content.splitlines(keepends=True),
            updated.content.splitlines(keepends=True),
            fromfile=f"a/{original.name}",
            tofile=f"b/{updated.name}",
        )
    )


def format_json_output(files: list[ManagedFile]) -> str:
    """Format JSON output."""
    return json.dumps(
        {"files": [{"name": f.name, "content": f.content} for f in files]}, indent=2
    )


def load_files(paths: list[str], root: Path) -> list[ManagedFile]:
    files = []
    for path in paths:
        path_obj = Path(path)
        if not path_obj.exists():
            console.print(f"Error: File {path} not found", style="red")
            raise typer.Exit(1)
        try:
            name = path_obj.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            name = path_obj.as_posix()
        files.append(ManagedFile(name=name, content=path_obj.read_text()))
    return files


app = typer.Typer(
    name="lockbump",
    help="lockbump - Update pip-compile manifests and lock files for one dependency",
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """lockbump - Update pip-compile manifests and lock files for one dependency."""
    configure_logging("DEBUG" if verbose else "WARNING")


@app.command()
def update(
    files: list[str] = typer.Argument(help="Manifest (.in), lock (.txt) and setup.py files"),
    dependency: str = typer.Option(..., "--dependency", "-d", help="Dependency name"),
    version: str = typer.Option(..., "--version", help="Target version"),
    previous_version: str | None = typer.Option(None, "--previous-version", help="Current version"),
    requirement: list[str] | None = typer.Option(
        None, "--requirement", "-r", help="FILE=REQUIREMENT after the update (repeatable)"
    ),
    previous_requirement: list[str] | None = typer.Option(
        None, "--previous-requirement", "-p", help="FILE=REQUIREMENT before the update (repeatable)"
    ),
    root: Path = typer.Option(Path("."), "--root", help="Project root the file names are relative to"),
    in_place: bool = typer.Option(False, "--in-place", "-i", help="Update files in place"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show changes without applying"),
    format_type: str = typer.Option("diff", "--format", help="Output format: diff or json"),
) -> None:
    """Update every file that declares or pins a dependency."""

    try:
        dependency_files = load_files(files, root)
        change = Dependency(
            name=dependency,
            version=version,
            previous_version=previous_version,
            requirements=parse_requirement_options(requirement),
            previous_requirements=parse_requirement_options(previous_requirement),
        )

        try:
            updated = update_files(dependency_files, [change], settings=Settings.from_env())
        except NoOpUpdate as e:
            console.print(f"No changes: {e}", style="yellow")
            raise typer.Exit(2)

        originals = {f.name: f for f in dependency_files}

        if format_type == "json":
            console.print(format_json_output(updated), markup=False, highlight=False, soft_wrap=True)
        elif dry_run or not in_place:
            for file in updated:
                diff = format_diff_output(originals[file.name], file)
                console.print(diff, markup=False, highlight=False, soft_wrap=True, end="")

        if in_place and not dry_run:
            for file in updated:
                (root / file.name).write_text(file.content)
                console.print(f"Updated {file.name}")

    except typer.Exit:
        # Re-raise typer exits (like Exit(2) for no changes)
        raise
    except LockbumpError as e:
        console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(1)


@app.command()
def sanitize(
    file_path: str = typer.Argument(help="Path to setup.py"),
    version: str = typer.Option("0.0.1", "--version", help="Literal used for computed versions"),
) -> None:
    """Print a setup.py with file loading, file reads and computed versions removed."""
    path_obj = Path(file_path)
    if not path_obj.exists():
        console.print(f"Error: File {file_path} not found", style="red")
        raise typer.Exit(1)

    result = SetupFileSanitizer(version).rewrite(path_obj.read_text())
    if result.degraded:
        console.print(f"Warning: {result.diagnostic}", style="yellow", markup=False)
    console.print(result.text, markup=False, highlight=False, soft_wrap=True, end="")


@app.command()
def merge(
    original: str = typer.Argument(help="Lock file as committed"),
    fresh: str = typer.Argument(help="Lock file as written by pip-compile"),
    output: str | None = typer.Option(None, "--out", "-o", help="Output file (default stdout)"),
) -> None:
    """Merge fresh pip-compile output into the original lock file's format."""
    for path in (original, fresh):
        if not Path(path).exists():
            console.print(f"Error: File {path} not found", style="red")
            raise typer.Exit(1)

    merged = merge_lockfiles(
        Path(original).read_text(),
        Path(fresh).read_text(),
        Settings.from_env().comment_column,
    )
    if output:
        Path(output).write_text(merged)
        console.print(f"Wrote merged lock file to {output}")
    else:
        console.print(merged, markup=False, highlight=False, soft_wrap=True, end="")


if __name__ == "__main__":
    app()
