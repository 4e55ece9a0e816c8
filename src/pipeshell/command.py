"""Base class for shell commands."""

from __future__ import annotations

import io
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Mapping, Optional, Sequence

from .context import ContextStack
from .errors import CommandSyntaxError, InternalFault, NoActiveInvocationError
from .grammar import (
    ArgumentDescriptor,
    CommandDescriptor,
    CommandMatch,
    CompletionMatch,
    GrammarError,
    argument,
    build_command_descriptor,
    command,
    option,
)
from .logging import log_event, sanitize_error_message
from .stages import PipelineStage, resolve_stage, run_stage

if TYPE_CHECKING:
    from .session import ShellSession

__all__ = [
    "DescriptionFormat",
    "ShellCommand",
    "argument",
    "command",
    "option",
]

_DESCRIPTOR_ATTR = "_pipeshell_descriptor"


class DescriptionFormat(StrEnum):
    USAGE = "usage"
    MAN = "man"
    DESCRIBE = "describe"


class ShellCommand:
    """A command exposed by the shell.

    Subclasses declare sub-commands with ``@command``; a method named
    ``main`` runs when the line names no sub-command. ``name`` (or a
    ``NAME`` attribute, as scripts use) defaults to the lowercased class name.
    """

    name: ClassVar[Optional[str]] = None
    usage: ClassVar[str] = ""
    man: ClassVar[str] = ""

    def __init__(self, session: Optional["ShellSession"] = None) -> None:
        self.session = session
        # Trailing text of the current line that the grammar did not consume.
        self.unmatched: Optional[str] = None
        self._own_stack: Optional[ContextStack] = None

    @classmethod
    def command_name(cls) -> str:
        return cls.name or getattr(cls, "NAME", None) or cls.__name__.lower()

    @classmethod
    def descriptor(cls) -> CommandDescriptor:
        cached = cls.__dict__.get(_DESCRIPTOR_ATTR)
        if cached is None:
            doc = (cls.__doc__ or "").strip()
            usage = cls.usage or (doc.splitlines()[0] if doc else "")
            cached = build_command_descriptor(cls, cls.command_name(), usage, cls.man or doc)
            setattr(cls, _DESCRIPTOR_ATTR, cached)
        return cached

    @property
    def context_stack(self) -> ContextStack:
        if self.session is not None:
            return self.session.context_stack
        if self._own_stack is None:
            self._own_stack = ContextStack()
        return self._own_stack

    # ------------------------------------------------------------------
    # Interactive primitives
    # ------------------------------------------------------------------

    def read_line(self, message: str, echo: bool = True) -> Optional[str]:
        """Prompt through the current invocation context."""
        if not self.context_stack.active:
            raise NoActiveInvocationError("Cannot invoke read line without an invocation context")
        return self.context_stack.current().read_line(message, echo)

    def execute(self, line: str) -> None:
        """Run ``line`` against this command inside the current context."""
        context = self.context_stack.current()
        run_stage(self.resolve_invoker(line), context)

    # ------------------------------------------------------------------
    # Grammar-facing operations
    # ------------------------------------------------------------------

    def complete_argument(self, arg: ArgumentDescriptor, prefix: str) -> Mapping[str, bool]:
        """Completion hook for argument values; no candidates by default."""
        return {}

    def complete(self, line: str) -> CompletionMatch:
        """Complete ``line``; completion failures yield no candidates."""
        try:
            return self.descriptor().complete(line, self)
        except Exception as error:
            log_event(
                "completion_failed",
                level=logging.ERROR,
                command=self.command_name(),
                line=line,
                error_type=type(error).__name__,
                error=sanitize_error_message(str(error)),
            )
            logging.error("Completion failed (command=%s): %s", self.command_name(), error, exc_info=True)
            return CompletionMatch()

    def describe(self, line: str, mode: DescriptionFormat) -> str:
        match = self.resolve_match(line)
        if mode is DescriptionFormat.DESCRIBE:
            return match.descriptor.usage
        buffer = io.StringIO()
        try:
            if mode is DescriptionFormat.MAN:
                match.descriptor.print_man(buffer)
            else:
                match.descriptor.print_usage(buffer)
        except OSError as exc:
            raise InternalFault(f"Could not write {mode} text: {exc}") from exc
        return buffer.getvalue()

    def resolve_match(self, line: str) -> CommandMatch:
        try:
            return self.descriptor().match(line)
        except GrammarError as exc:
            raise CommandSyntaxError(str(exc)) from exc

    def resolve_invoker(self, line: str) -> PipelineStage[Any, Any]:
        return resolve_stage(self, self.resolve_match(line))

    def resolve_invoker_structured(
        self,
        name: Optional[str],
        options: Mapping[str, Any],
        args: Sequence[Any],
    ) -> PipelineStage[Any, Any]:
        try:
            match = self.descriptor().match_structured(name, options, args)
        except GrammarError as exc:
            raise CommandSyntaxError(str(exc)) from exc
        return resolve_stage(self, match)
