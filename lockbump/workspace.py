"""Isolated scratch directories for resolver runs."""

import shutil
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import WorkspaceAcquisitionFailed
from .logging import logger
from .models import ManagedFile


class Workspace:
    """A scratch directory owned by exactly one update run."""

    def __init__(self, path: Path):
        self.path = path

    def _resolve(self, name: str) -> Path:
        target = (self.path / name.lstrip("/")).resolve()
        if not target.is_relative_to(self.path.resolve()):
            raise ValueError(f"Refusing to write outside workspace: {name}")
        return target

    def write(self, file: ManagedFile) -> Path:
        """Materialise a managed file at its path inside the workspace."""
        target = self._resolve(file.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(file.content)
        return target

    def read(self, name: str) -> str:
        return self._resolve(name).read_text()

    def exists(self, name: str) -> bool:
        return self._resolve(name).exists()

    def relative(self, name: str) -> str:
        """Path of a file relative to the workspace root, as the resolver sees it."""
        return str(self._resolve(name).relative_to(self.path.resolve()))


class WorkspaceManager:
    """Creates and removes uniquely named workspaces under a configured root."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def acquire(self) -> Workspace:
        path = self.root / f"lockbump-{uuid.uuid4().hex}"
        try:
            path.mkdir(parents=True)
        except OSError as e:
            raise WorkspaceAcquisitionFailed(
                f"Could not create workspace: {e}",
                hint="Check that the workspace root exists and is writable",
                context={"workspace_root": str(self.root)},
            ) from e
        logger.debug(f"Acquired workspace {path}")
        return Workspace(path)

    def release(self, workspace: Workspace) -> None:
        shutil.rmtree(workspace.path, ignore_errors=True)
        logger.debug(f"Released workspace {workspace.path}")

    @contextmanager
    def session(self) -> Iterator[Workspace]:
        """Yield a fresh workspace, releasing it on every exit path."""
        workspace = self.acquire()
        try:
            yield workspace
        finally:
            self.release(workspace)
