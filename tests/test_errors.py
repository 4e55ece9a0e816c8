"""Tests for the error hierarchy, failure classification and responses."""

import traceback

import pytest

from pipeshell.errors import (
    CancelledError,
    CommandSyntaxError,
    InternalFault,
    NoActiveInvocationError,
    PipelineTypeError,
    ResolutionError,
    ScriptError,
    ScriptFailure,
    ShellError,
    UnknownCommandError,
    to_script_error,
)
from pipeshell.response import FailureKind, ResponseStatus, ShellResponse, classify_failure


def _raise_value_error():
    raise ValueError("boom")


def _raise_script_failure():
    raise ScriptFailure("nope")


def _capture(func):
    try:
        func()
    except Exception as exc:
        return exc
    raise AssertionError("expected an exception")


class TestHierarchy:
    """Errors keep their builtin bases so callers can catch them generically."""

    def test_syntax_error_is_value_error(self):
        assert issubclass(CommandSyntaxError, ValueError)
        assert issubclass(CommandSyntaxError, ShellError)

    def test_resolution_error_is_not_implemented(self):
        assert issubclass(ResolutionError, NotImplementedError)

    def test_internal_fault_is_assertion_error(self):
        assert issubclass(InternalFault, AssertionError)

    def test_pipeline_type_error_is_type_error(self):
        assert issubclass(PipelineTypeError, TypeError)

    def test_unknown_command_message(self):
        error = UnknownCommandError("nope")
        assert error.command_name == "nope"
        assert "Unknown command: 'nope'" in str(error)

    def test_default_messages(self):
        assert str(CancelledError()) == "Command cancelled."
        assert str(NoActiveInvocationError()) == "No active invocation context."

    def test_script_failure_is_outside_hierarchy(self):
        assert not issubclass(ScriptFailure, ShellError)


class TestToScriptError:
    def test_script_error_passes_through(self):
        original = ScriptError("already unified")
        assert to_script_error(original) is original

    def test_plain_exception_is_wrapped_with_cause(self):
        cause = _capture(_raise_value_error)

        result = to_script_error(cause)

        assert isinstance(result, ScriptError)
        assert str(result) == "boom"
        assert result.__cause__ is cause

    def test_traceback_is_preserved(self):
        cause = _capture(_raise_value_error)

        result = to_script_error(cause)

        names = [frame.name for frame in traceback.extract_tb(result.__traceback__)]
        assert "_raise_value_error" in names

    def test_script_failure_is_translated_without_chain(self):
        cause = _capture(_raise_script_failure)

        result = to_script_error(cause)

        assert isinstance(result, ScriptError)
        assert str(result) == "nope"
        assert result.__cause__ is None
        assert result.__suppress_context__ is True

    def test_empty_message(self):
        result = to_script_error(RuntimeError())
        assert str(result) == ""


class TestClassifyFailure:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (CommandSyntaxError("bad"), FailureKind.SYNTAX),
            (UnknownCommandError("x"), FailureKind.SYNTAX),
            (ResolutionError("none"), FailureKind.RESOLUTION),
            (PipelineTypeError("types"), FailureKind.RESOLUTION),
            (ScriptError("body"), FailureKind.SCRIPT),
            (CancelledError(), FailureKind.CANCELLED),
            (KeyError("other"), FailureKind.INTERNAL),
            (InternalFault("io"), FailureKind.INTERNAL),
        ],
    )
    def test_kinds(self, error, kind):
        assert classify_failure(error) is kind


class TestShellResponse:
    def test_ok(self):
        response = ShellResponse.ok()
        assert response.is_success
        assert response.exit_code == 0
        assert response.format() == ""

    def test_from_script_error(self):
        response = ShellResponse.from_exception(ScriptError("boom"))

        assert response.status is ResponseStatus.ERROR
        assert response.kind is FailureKind.SCRIPT
        assert response.message == "boom"
        assert response.format() == "ERROR: boom"
        assert response.exit_code == 1

    def test_from_cancelled(self):
        response = ShellResponse.from_exception(CancelledError())

        assert response.status is ResponseStatus.CANCELLED
        assert response.format() == "Command cancelled."

    def test_message_is_sanitized(self):
        token = "Bearer " + "a" * 40
        response = ShellResponse.from_exception(ScriptError(f"failed with {token}"))

        assert "a" * 40 not in response.message
        assert "[REDACTED_TOKEN]" in response.message

    def test_empty_message_falls_back_to_type_name(self):
        response = ShellResponse.from_exception(KeyError())
        assert response.message == "KeyError"

    def test_is_immutable(self):
        response = ShellResponse.ok()
        with pytest.raises(AttributeError):
            response.message = "changed"
