"""Outcome of processing one submitted line."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from .errors import (
    CancelledError,
    CommandSyntaxError,
    PipelineTypeError,
    ResolutionError,
    ScriptError,
)
from .logging import sanitize_error_message


class ResponseStatus(StrEnum):
    OK = "ok"
    ERROR = "error"
    CANCELLED = "cancelled"


class FailureKind(StrEnum):
    SYNTAX = "syntax"
    RESOLUTION = "resolution"
    SCRIPT = "script"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


def classify_failure(exc: BaseException) -> FailureKind:
    """Map any exception raised while processing a line to a failure kind."""
    if isinstance(exc, (CancelledError, KeyboardInterrupt)):
        return FailureKind.CANCELLED
    if isinstance(exc, CommandSyntaxError):
        return FailureKind.SYNTAX
    if isinstance(exc, (ResolutionError, PipelineTypeError)):
        return FailureKind.RESOLUTION
    if isinstance(exc, ScriptError):
        return FailureKind.SCRIPT
    return FailureKind.INTERNAL


@dataclass(frozen=True, slots=True)
class ShellResponse:
    """Created once per processed line and never mutated afterwards."""

    status: ResponseStatus
    kind: Optional[FailureKind] = None
    message: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls) -> "ShellResponse":
        return cls(ResponseStatus.OK)

    @classmethod
    def cancelled(cls, message: str = "Command cancelled.") -> "ShellResponse":
        return cls(ResponseStatus.CANCELLED, FailureKind.CANCELLED, message)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ShellResponse":
        kind = classify_failure(exc)
        message = sanitize_error_message(str(exc)) or type(exc).__name__
        if kind is FailureKind.CANCELLED:
            return cls(ResponseStatus.CANCELLED, kind, message, exc)
        return cls(ResponseStatus.ERROR, kind, message, exc)

    @property
    def is_success(self) -> bool:
        return self.status is ResponseStatus.OK

    @property
    def exit_code(self) -> int:
        return 0 if self.is_success else 1

    def format(self) -> str:
        """User-visible text for the response; empty on success."""
        if self.status is ResponseStatus.OK:
            return ""
        if self.status is ResponseStatus.CANCELLED:
            return self.message
        return f"ERROR: {self.message}"
