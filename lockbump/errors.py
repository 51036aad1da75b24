"""Error model for update runs, with stable machine-readable codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum


class ErrorCode(str, Enum):
    """Stable error identifiers used across the CLI and web surfaces."""

    SANITIZATION_DEGRADED = "E_SANITIZATION_DEGRADED"
    WORKSPACE = "E_WORKSPACE"
    RESOLVER_TIMEOUT = "E_RESOLVER_TIMEOUT"
    RESOLVER_EXIT = "E_RESOLVER_EXIT"
    REQUIREMENT_NOT_FOUND = "E_REQUIREMENT_NOT_FOUND"
    NO_OP_UPDATE = "E_NO_OP_UPDATE"


class LockbumpError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for key, value in self.context.items():
            if value:
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": self.args[0] if self.args else "",
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class WorkspaceAcquisitionFailed(LockbumpError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.WORKSPACE, hint=hint, context=context)


class ResolverError(LockbumpError):
    """Base for failures of the external resolver subprocess."""

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        output: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=code, hint=hint, context=context)
        self.output = output


class ResolverTimeout(ResolverError):
    def __init__(
        self,
        message: str,
        *,
        output: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.RESOLVER_TIMEOUT,
            output=output,
            hint=hint,
            context=context,
        )


class ResolverNonZeroExit(ResolverError):
    def __init__(
        self,
        message: str,
        *,
        returncode: int,
        output: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.RESOLVER_EXIT,
            output=output,
            hint=hint,
            context=context,
        )
        self.returncode = returncode


class RequirementNotFound(LockbumpError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.REQUIREMENT_NOT_FOUND, hint=hint, context=context
        )


class NoOpUpdate(LockbumpError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.NO_OP_UPDATE, hint=hint, context=context)
