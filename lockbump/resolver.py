"""Invocation of pip-compile inside a scratch workspace."""

import json
import os
import signal
import subprocess
from dataclasses import asdict, dataclass

from .errors import ResolverNonZeroExit, ResolverTimeout
from .logging import logger
from .models import Credential
from .workspace import Workspace


@dataclass
class ResolverResult:
    """Outcome of a successful resolver run."""

    args: list[str]
    returncode: int
    output: str
    lock_text: str


class PipCompileInvoker:
    """Runs pip-compile as a subprocess with a wall-clock timeout."""

    def __init__(
        self,
        command: list[str] | tuple[str, ...] = ("pip-compile",),
        timeout: float = 600.0,
        credentials: list[Credential] | None = None,
    ):
        """Initialize the invoker.

        Args:
            command: Executable and leading arguments for pip-compile
            timeout: Seconds before the subprocess is killed
            credentials: Passed through to the child environment, never logged
        """
        self.command = list(command)
        self.timeout = timeout
        self.credentials = credentials or []

    def build_args(
        self,
        source_files: list[str],
        output_file: str,
        dependency_name: str,
        version: str,
        options: list[str] | None = None,
    ) -> list[str]:
        return [
            *self.command,
            *(options or []),
            f"--output-file={output_file}",
            "-P",
            f"{dependency_name}=={version}",
            *source_files,
        ]

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env["LOCKBUMP_CREDENTIALS"] = json.dumps([asdict(c) for c in self.credentials])
        # pip-compile must not prompt for anything inside the sandbox
        env["PIP_NO_INPUT"] = "1"
        return env

    def compile(
        self,
        workspace: Workspace,
        source_files: list[str],
        output_file: str,
        dependency_name: str,
        version: str,
        options: list[str] | None = None,
    ) -> ResolverResult:
        """Recompile output_file from source_files pinning one package.

        Args:
            workspace: Directory the command runs in
            source_files: Manifest paths relative to the workspace
            output_file: Lock file path relative to the workspace
            dependency_name: Package to pin
            version: Version to pin it to
            options: Extra pip-compile flags

        Returns:
            The captured output and the regenerated lock file text
        """
        args = self.build_args(source_files, output_file, dependency_name, version, options)
        context = {
            "dependency": dependency_name,
            "file": output_file,
            "command": " ".join(args),
        }
        logger.info(f"Running {' '.join(args)}")

        # Own session, so a timeout can kill pip and its build backends too
        process = subprocess.Popen(
            args,
            cwd=workspace.path,
            env=self._environment(),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            start_new_session=True,
        )
        try:
            output, _ = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            _kill_group(process)
            output, _ = process.communicate()
            raise ResolverTimeout(
                f"Resolver timed out after {self.timeout:g}s",
                output=output or "",
                context=context,
            ) from e

        if process.returncode != 0:
            raise ResolverNonZeroExit(
                f"Resolver exited with status {process.returncode}",
                returncode=process.returncode,
                output=output,
                hint=_last_line(output),
                context=context,
            )

        if not workspace.exists(output_file):
            raise ResolverNonZeroExit(
                "Resolver exited cleanly but wrote no output file",
                returncode=process.returncode,
                output=output,
                context=context,
            )

        return ResolverResult(
            args=args,
            returncode=process.returncode,
            output=output,
            lock_text=workspace.read(output_file),
        )


def _kill_group(process: subprocess.Popen) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug(f"Resolver process group {process.pid} already gone")


def _last_line(output: str) -> str | None:
    lines = [line for line in output.splitlines() if line.strip()]
    return lines[-1] if lines else None
