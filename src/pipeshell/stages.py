"""Pipeline stage lifecycle and the three stage variants.

Every stage runs ``open -> provide* -> flush -> close`` exactly once.
``resolve_stage`` picks the variant for a command match:

- ``HelpStage`` when the help option is present, whatever the command is;
- ``SinkStage`` when the command consumes nothing;
- ``PipeStage`` when the command returns a ``PipeCommand``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, TypeVar

from .constants import HELP_OPTION_NAMES
from .context import InteractionContext, InteractionSurface
from .errors import (
    CommandSyntaxError,
    InternalFault,
    ResolutionError,
    ScriptError,
    ShellError,
    StageStateError,
    to_script_error,
)
from .grammar import CommandMatch, GrammarError, InvocationError
from .logging import log_event
from .pipe import PipeCommand
from .type_resolver import UNIT, StageTypes

if TYPE_CHECKING:
    from .command import ShellCommand

C = TypeVar("C")
P = TypeVar("P")


class StageState(StrEnum):
    CREATED = "created"
    OPEN = "open"
    PROVIDING = "providing"
    FLUSHED = "flushed"
    CLOSED = "closed"


_ACTIVE_STATES = frozenset((StageState.OPEN, StageState.PROVIDING, StageState.FLUSHED))


class PipelineStage(ABC, Generic[C, P]):
    """A single-use runnable unit consuming ``C`` and producing ``P``."""

    def __init__(self, types: StageTypes) -> None:
        self.types = types
        self.state = StageState.CREATED
        # Set when a downstream stage consumes this stage's output.
        self.piped = False

    @property
    def consumed_type(self) -> type:
        return self.types.consumed

    @property
    def produced_type(self) -> type:
        return self.types.produced

    def open(self, consumer: InteractionSurface) -> None:
        if self.state is not StageState.CREATED:
            raise StageStateError(f"{type(self).__name__} cannot be opened in state {self.state}.")
        # Entered before running so close() stays reachable if opening fails.
        self.state = StageState.OPEN
        self._do_open(consumer)

    def provide(self, element: C) -> None:
        self._require_active("provide")
        self.state = StageState.PROVIDING
        self._do_provide(element)

    def flush(self) -> None:
        self._require_active("flush")
        self._do_flush()
        self.state = StageState.FLUSHED

    def close(self) -> None:
        if self.state is StageState.CREATED:
            raise StageStateError(f"{type(self).__name__} was never opened.")
        if self.state is StageState.CLOSED:
            raise StageStateError(f"{type(self).__name__} is already closed.")
        try:
            self._do_close()
        finally:
            self.state = StageState.CLOSED

    def _require_active(self, operation: str) -> None:
        if self.state not in _ACTIVE_STATES:
            raise StageStateError(
                f"{type(self).__name__}.{operation}() called in state {self.state}."
            )

    @abstractmethod
    def _do_open(self, consumer: InteractionSurface) -> None:
        ...

    @abstractmethod
    def _do_provide(self, element: C) -> None:
        ...

    @abstractmethod
    def _do_flush(self) -> None:
        ...

    @abstractmethod
    def _do_close(self) -> None:
        ...


class CommandStage(PipelineStage[C, P]):
    """Stage bound to one command instance and one match.

    Owns the context it pushes for its lifetime and the command's
    ``unmatched`` remainder.
    """

    def __init__(self, command: "ShellCommand", match: CommandMatch, types: StageTypes) -> None:
        super().__init__(types)
        self.command = command
        self.match = match
        self.context: Optional[InteractionContext[P]] = None
        self._previous_unmatched: Optional[str] = None

    def _enter(self, consumer: InteractionSurface) -> InteractionContext[P]:
        context: InteractionContext[P] = InteractionContext(consumer, self.command.session)
        self.command.context_stack.push(context)
        self.context = context
        self._previous_unmatched = self.command.unmatched
        self.command.unmatched = self.match.rest
        log_event(
            "stage_opened",
            level=logging.DEBUG,
            command=self.command.command_name(),
            stage=type(self).__name__,
            depth=self.command.context_stack.depth,
        )
        return context

    def _leave(self) -> None:
        if self.context is None:
            return
        self.command.unmatched = self._previous_unmatched
        self.command.context_stack.pop(self.context)
        log_event(
            "stage_closed",
            level=logging.DEBUG,
            command=self.command.command_name(),
            stage=type(self).__name__,
            depth=self.command.context_stack.depth,
        )

    def _current_context(self, requested: type) -> Any:
        return self.command.context_stack.current()

    def _invoke(self) -> Any:
        invoker = self.match.invoker
        if invoker is None:
            raise ResolutionError(f"{self.command.command_name()}: nothing to invoke.")
        try:
            return invoker.invoke(self.command, self.match, self._current_context)
        except GrammarError as exc:
            raise CommandSyntaxError(str(exc)) from exc
        except InvocationError as exc:
            cause = exc.__cause__
            if cause is None:
                raise to_script_error(exc)
            if isinstance(cause, ShellError) and not isinstance(cause, ScriptError):
                # Already one of ours (cancellation, nested syntax errors...).
                raise cause from None
            raise to_script_error(cause)


class SinkStage(CommandStage[Any, P]):
    """Runs a command that consumes nothing; its result is printed."""

    def _do_open(self, consumer: InteractionSurface) -> None:
        context = self._enter(consumer)
        result = self._invoke()
        if result is not None:
            context.writer.print(result)

    def _do_provide(self, element: Any) -> None:
        pass

    def _do_flush(self) -> None:
        if self.context is not None:
            self.context.flush()

    def _do_close(self) -> None:
        self._leave()


class PipeStage(CommandStage[C, P]):
    """Runs a command returning a ``PipeCommand`` and forwards elements to it.

    The pipe command only exists once the stage is opened.
    """

    def __init__(self, command: "ShellCommand", match: CommandMatch, types: StageTypes) -> None:
        super().__init__(command, match, types)
        self.real: Optional[PipeCommand[C, P]] = None

    def _do_open(self, consumer: InteractionSurface) -> None:
        context = self._enter(consumer)
        result = self._invoke()
        if not isinstance(result, PipeCommand):
            raise ScriptError(
                f"{self.command.command_name()} returned {type(result).__name__}, expected a PipeCommand."
            )
        self.real = result
        result.piped = self.piped
        _run_guarded(result.do_open, context)

    def _do_provide(self, element: C) -> None:
        if self.real is not None:
            _run_guarded(self.real.provide, element)

    def _do_flush(self) -> None:
        if self.real is not None:
            _run_guarded(self.real.flush)

    def _do_close(self) -> None:
        try:
            if self.real is not None:
                _run_guarded(self.real.close)
        finally:
            self._leave()


class HelpStage(CommandStage[Any, Any]):
    """Prints the matched descriptor's usage; ignores everything else."""

    def __init__(self, command: "ShellCommand", match: CommandMatch) -> None:
        super().__init__(command, match, StageTypes(UNIT, UNIT))

    def _do_open(self, consumer: InteractionSurface) -> None:
        context = self._enter(consumer)
        try:
            self.match.descriptor.print_usage(context.writer)
        except OSError as exc:
            raise InternalFault(f"Could not print usage: {exc}") from exc

    def _do_provide(self, element: Any) -> None:
        pass

    def _do_flush(self) -> None:
        if self.context is not None:
            self.context.flush()

    def _do_close(self) -> None:
        self._leave()


def _run_guarded(func: Callable[..., Any], *args: Any) -> Any:
    """Call a pipe command hook, normalizing foreign failures."""
    try:
        return func(*args)
    except ShellError:
        raise
    except Exception as exc:
        raise to_script_error(exc)


def resolve_stage(command: "ShellCommand", match: CommandMatch) -> PipelineStage[Any, Any]:
    """Build the stage that runs ``match`` on ``command``."""
    stage: PipelineStage[Any, Any]
    if match.has_option(HELP_OPTION_NAMES[0]):
        stage = HelpStage(command, match)
    elif match.invoker is None:
        raise ResolutionError(
            f"{command.command_name()}: the line names no runnable command. "
            f"Try '{command.command_name()} --help'."
        )
    elif match.invoker.stage_types.consumed is UNIT:
        stage = SinkStage(command, match, match.invoker.stage_types)
    else:
        stage = PipeStage(command, match, match.invoker.stage_types)

    log_event(
        "command_resolved",
        command=command.command_name(),
        stage=type(stage).__name__,
        consumed_type=stage.consumed_type,
        produced_type=stage.produced_type,
    )
    return stage


def run_stage(stage: PipelineStage[Any, Any], consumer: InteractionSurface) -> None:
    """Open, flush and close ``stage``; close always runs once opened."""
    try:
        stage.open(consumer)
        stage.flush()
    finally:
        if stage.state is not StageState.CREATED:
            stage.close()
