"""Shell session: command registry and the line-level API used by hosts."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from .command import DescriptionFormat, ShellCommand
from .context import ContextStack, InteractionSurface
from .errors import CommandSyntaxError, UnknownCommandError
from .grammar import CompletionMatch, GrammarError, split_pipeline
from .logging import log_event, sanitize_error_message
from .pipeline import Pipeline
from .stages import PipelineStage, run_stage

__all__ = ["DescriptionFormat", "ShellSession"]


def _split_command(line: str) -> tuple[str, str]:
    stripped = line.strip()
    if not stripped:
        raise CommandSyntaxError("Empty command line.")
    parts = stripped.split(maxsplit=1)
    return parts[0], parts[1] if len(parts) > 1 else ""


class ShellSession:
    """Commands known to one shell plus the state shared by its invocations.

    The context stack is owned here and is per thread, so sessions never
    see each other's frames.
    """

    def __init__(
        self,
        commands: Iterable[type[ShellCommand]] = (),
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._commands: dict[str, type[ShellCommand]] = {}
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.context_stack = ContextStack()
        self.register_all(commands)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, command_cls: type[ShellCommand]) -> type[ShellCommand]:
        """Register a command class; returns it so it can decorate a class."""
        # Builds the grammar and stage types now rather than on first use.
        command_cls.descriptor()
        self._commands[command_cls.command_name()] = command_cls
        return command_cls

    def register_all(self, commands: Iterable[type[ShellCommand]]) -> None:
        for command_cls in commands:
            self.register(command_cls)

    def command_names(self) -> list[str]:
        return sorted(self._commands)

    def get_command_class(self, name: str) -> Optional[type[ShellCommand]]:
        return self._commands.get(name)

    def create_command(self, name: str) -> ShellCommand:
        command_cls = self._commands.get(name)
        if command_cls is None:
            raise UnknownCommandError(name)
        return command_cls(self)

    # ------------------------------------------------------------------
    # Line-level API
    # ------------------------------------------------------------------

    def complete(self, line: str) -> CompletionMatch:
        """Complete a partial line: command names first, then the command's grammar."""
        segment = split_pipeline(line, partial=True)[-1].lstrip()
        if not any(ch.isspace() for ch in segment):
            candidates = {
                name[len(segment):]: True for name in self.command_names() if name.startswith(segment)
            }
            return CompletionMatch(prefix=segment, candidates=candidates)

        name = segment.split(maxsplit=1)[0]
        command_cls = self._commands.get(name)
        if command_cls is None:
            return CompletionMatch()
        try:
            command = command_cls(self)
        except Exception as error:
            log_event(
                "completion_failed",
                level=logging.ERROR,
                command=name,
                line=line,
                error_type=type(error).__name__,
                error=sanitize_error_message(str(error)),
            )
            logging.error("Completion failed (command=%s): %s", name, error, exc_info=True)
            return CompletionMatch()
        return command.complete(segment[len(name):].lstrip())

    def describe(self, line: str, mode: DescriptionFormat = DescriptionFormat.USAGE) -> str:
        name, rest = _split_command(line)
        return self.create_command(name).describe(rest, mode)

    def resolve_invoker(self, line: str) -> PipelineStage[Any, Any]:
        """Resolve a line, possibly a ``|`` pipeline, into one stage."""
        try:
            segments = split_pipeline(line)
        except GrammarError as exc:
            raise CommandSyntaxError(str(exc)) from exc
        if len(segments) == 1:
            return self._resolve_segment(segments[0])
        if any(not segment for segment in segments):
            raise CommandSyntaxError("Empty command in pipeline.")
        return Pipeline([self._resolve_segment(segment) for segment in segments])

    def _resolve_segment(self, segment: str) -> PipelineStage[Any, Any]:
        name, rest = _split_command(segment)
        return self.create_command(name).resolve_invoker(rest)

    def resolve_invoker_structured(
        self,
        name: str,
        options: Optional[Mapping[str, Any]] = None,
        args: Sequence[Any] = (),
        *,
        sub_command: Optional[str] = None,
    ) -> PipelineStage[Any, Any]:
        """Resolve already-split values; the help option applies here as well."""
        command = self.create_command(name)
        return command.resolve_invoker_structured(sub_command, options or {}, args)

    def execute(self, line: str, consumer: InteractionSurface) -> None:
        """Resolve ``line`` and run it to completion against ``consumer``."""
        stage = self.resolve_invoker(line)
        run_stage(stage, consumer)
