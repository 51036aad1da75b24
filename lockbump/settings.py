"""Runtime configuration for update runs."""

import os
import shlex
import tempfile

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Configuration shared by the workspace manager, resolver and sanitizer."""

    workspace_root: str = Field(default_factory=tempfile.gettempdir)
    resolver_command: list[str] = Field(default_factory=lambda: ["pip-compile"])
    resolver_timeout: float = 600.0
    sanitized_version: str = "0.0.1"
    comment_column: int = 26

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from LOCKBUMP_* environment variables."""
        values: dict = {}
        if root := os.environ.get("LOCKBUMP_WORKSPACE_ROOT"):
            values["workspace_root"] = root
        if command := os.environ.get("LOCKBUMP_RESOLVER_COMMAND"):
            values["resolver_command"] = shlex.split(command)
        if timeout := os.environ.get("LOCKBUMP_RESOLVER_TIMEOUT"):
            values["resolver_timeout"] = float(timeout)
        if version := os.environ.get("LOCKBUMP_SANITIZED_VERSION"):
            values["sanitized_version"] = version
        return cls(**values)
