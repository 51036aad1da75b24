"""Tests for scratch workspace management."""

import pytest

from lockbump.errors import ErrorCode, WorkspaceAcquisitionFailed
from lockbump.models import ManagedFile
from lockbump.workspace import WorkspaceManager


class TestWorkspaceManager:
    """Test workspace acquisition and release."""

    def test_workspaces_are_unique(self, tmp_path):
        """Concurrent runs never share a directory."""
        manager = WorkspaceManager(tmp_path)
        first, second = manager.acquire(), manager.acquire()

        assert first.path != second.path
        assert first.path.is_dir() and second.path.is_dir()
        assert first.path.name.startswith("lockbump-")

    def test_session_releases_on_success(self, tmp_path):
        manager = WorkspaceManager(tmp_path)
        with manager.session() as workspace:
            workspace.write(ManagedFile(name="requirements.in", content="attrs\n"))
            path = workspace.path
        assert not path.exists()

    def test_session_releases_on_error(self, tmp_path):
        """The directory is removed when the body raises."""
        manager = WorkspaceManager(tmp_path)
        with pytest.raises(RuntimeError):
            with manager.session() as workspace:
                path = workspace.path
                raise RuntimeError("resolver blew up")
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []

    def test_acquisition_failure(self, tmp_path):
        """A root that cannot hold directories raises a typed error."""
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        manager = WorkspaceManager(blocker)

        with pytest.raises(WorkspaceAcquisitionFailed) as excinfo:
            manager.acquire()
        assert excinfo.value.code == ErrorCode.WORKSPACE.value


class TestWorkspace:
    """Test file access inside a workspace."""

    def test_write_nested_file(self, tmp_path):
        with WorkspaceManager(tmp_path).session() as workspace:
            written = workspace.write(
                ManagedFile(name="requirements/test.in", content="attrs\n")
            )
            assert written.read_text() == "attrs\n"
            assert workspace.exists("/requirements/test.in")
            assert workspace.read("requirements/test.in") == "attrs\n"
            assert workspace.relative("/requirements/test.in") == "requirements/test.in"

    def test_respects_directory(self, tmp_path):
        with WorkspaceManager(tmp_path).session() as workspace:
            workspace.write(
                ManagedFile(name="test.in", content="mock\n", directory="/requirements")
            )
            assert workspace.read("requirements/test.in") == "mock\n"

    def test_refuses_paths_outside(self, tmp_path):
        with WorkspaceManager(tmp_path / "root").session() as workspace:
            with pytest.raises(ValueError):
                workspace.read("../outside.txt")
