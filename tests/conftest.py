"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from lockbump.models import ManagedFile
from lockbump.resolver import ResolverResult
from lockbump.settings import Settings

FIXTURES = Path(__file__).parent / "fixtures"


def read_fixture(*parts: str) -> str:
    return FIXTURES.joinpath(*parts).read_text()


class FakeInvoker:
    """Stands in for pip-compile, returning canned output and recording calls."""

    def __init__(self, lock_text: str):
        self.lock_text = lock_text
        self.calls = []
        self.workspace_files = {}

    def compile(self, workspace, source_files, output_file, dependency_name, version, options=None):
        self.calls.append(
            {
                "source_files": source_files,
                "output_file": output_file,
                "dependency": f"{dependency_name}=={version}",
                "options": options or [],
                "workspace": workspace.path,
            }
        )
        self.workspace_files = {
            str(path.relative_to(workspace.path)): path.read_text()
            for path in workspace.path.rglob("*")
            if path.is_file()
        }
        return ResolverResult(args=[], returncode=0, output="", lock_text=self.lock_text)


@pytest.fixture
def load_fixture():
    """Read a fixture file by path parts."""
    return read_fixture


@pytest.fixture
def fake_invoker():
    """Build a FakeInvoker returning the given resolver output."""
    return FakeInvoker


@pytest.fixture
def settings(tmp_path):
    """Settings pointing the workspace root at a per-test directory."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return Settings(workspace_root=str(root), resolver_timeout=5)


@pytest.fixture
def manifest_file():
    return ManagedFile(
        name="requirements/test.in",
        content=read_fixture("pip_compile_files", "unpinned.in"),
    )


@pytest.fixture
def generated_file():
    return ManagedFile(
        name="requirements/test.txt",
        content=read_fixture("requirements", "pip_compile_unpinned.txt"),
    )


@pytest.fixture
def sample_setup_py():
    """Sample setup.py content that loads other files."""
    return read_fixture("setup_files", "small_needs_sanitizing.py")
