"""Custom exception hierarchy for pipeshell."""

from __future__ import annotations


class ShellError(Exception):
    """Base class for all pipeshell errors."""


class CommandSyntaxError(ShellError, ValueError):
    """The submitted line does not match a command signature."""


class UnknownCommandError(CommandSyntaxError):
    def __init__(self, command_name: str) -> None:
        super().__init__(
            f"Unknown command: '{command_name}'. Type 'help' for available commands."
        )
        self.command_name = command_name


class ResolutionError(ShellError, NotImplementedError):
    """A match was produced but it names nothing that can run."""


class ScriptError(ShellError):
    """Unified failure raised when a command body fails."""


class PipelineTypeError(ShellError, TypeError):
    """Adjacent pipeline stages do not agree on the element type."""


class StageStateError(ShellError, RuntimeError):
    """A stage lifecycle operation was called out of order."""


class NoActiveInvocationError(ShellError, RuntimeError):
    def __init__(self, message: str = "No active invocation context.") -> None:
        super().__init__(message)


class InternalFault(ShellError, AssertionError):
    """A write to a stream that must always accept writes failed."""


class CancelledError(ShellError):
    def __init__(self, message: str = "Command cancelled.") -> None:
        super().__init__(message)


class ConfigError(ShellError, ValueError):
    """Settings/profile validation errors."""


class ScriptFailure(Exception):
    """Generic failure type available to every script without an import.

    Script authors raise it for ad-hoc errors; it never escapes the
    invocation layer untranslated.
    """


def to_script_error(cause: BaseException) -> ScriptError:
    """Normalize any failure of a command body into a ``ScriptError``.

    The message and the original traceback are preserved.
    """
    if isinstance(cause, ScriptError):
        return cause
    message = str(cause)
    translated = ScriptError(message) if message else ScriptError()
    if isinstance(cause, ScriptFailure):
        # Same failure under the unified type: no chained cause.
        translated.__suppress_context__ = True
    else:
        translated.__cause__ = cause
    return translated.with_traceback(cause.__traceback__)
