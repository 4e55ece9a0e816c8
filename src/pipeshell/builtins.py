"""Commands every shell session starts with."""

from __future__ import annotations

import re
import time
from typing import Any, Callable, Mapping, Optional

from .command import DescriptionFormat, ShellCommand, argument, command, option
from .context import InteractionContext
from .errors import CommandSyntaxError, ResolutionError
from .grammar import ArgumentDescriptor
from .pipe import PipeCommand

SLEEP_STEP_SECONDS = 0.05


def _require_session(command_obj: ShellCommand) -> Any:
    if command_obj.session is None:
        raise ResolutionError(f"{command_obj.command_name()} needs a shell session.")
    return command_obj.session


class _CompletesCommandNames(ShellCommand):
    def complete_argument(self, arg: ArgumentDescriptor, prefix: str) -> Mapping[str, bool]:
        if self.session is None:
            return {}
        return {
            name[len(prefix):]: True
            for name in self.session.command_names()
            if name.startswith(prefix)
        }


# ============================================================================
# Pipe commands
# ============================================================================


class LineFilter(PipeCommand[str, str]):
    """Forward the lines of each element that match a pattern."""

    def __init__(self, pattern: re.Pattern[str], invert: bool = False) -> None:
        super().__init__()
        self.pattern = pattern
        self.invert = invert

    def provide(self, element: str) -> None:
        for line in str(element).splitlines() or [""]:
            if bool(self.pattern.search(line)) != self.invert:
                self.context.provide(line)


class LineMapper(PipeCommand[str, str]):
    def __init__(self, transform: Callable[[str], str]) -> None:
        super().__init__()
        self.transform = transform

    def provide(self, element: str) -> None:
        self.context.provide(self.transform(str(element)))


class ElementCounter(PipeCommand[object, int]):
    """Emit the number of elements received once the input is closed."""

    def open(self) -> None:
        self.count = 0

    def provide(self, element: object) -> None:
        self.count += 1

    def close(self) -> None:
        self.context.provide(self.count)
        self.context.flush()


# ============================================================================
# Commands
# ============================================================================


class Help(_CompletesCommandNames):
    """List the available commands, or show the usage of one."""

    name = "help"

    @command
    def main(
        self,
        context: InteractionContext[str],
        name: Optional[str] = argument(usage="command to describe", default=None),
    ) -> None:
        """List the available commands, or show the usage of one."""
        session = _require_session(self)
        if name:
            for line in session.describe(name, DescriptionFormat.USAGE).splitlines():
                context.provide(line)
            return

        names = session.command_names()
        width = max((len(entry) for entry in names), default=0)
        context.provide("Available commands:")
        for entry in names:
            summary = session.describe(entry, DescriptionFormat.DESCRIBE)
            context.provide(f"   {entry:<{width}} {summary}".rstrip())


class Man(_CompletesCommandNames):
    """Show the manual page of a command."""

    name = "man"

    @command
    def main(self, context: InteractionContext[str], name: str = argument(usage="command name")) -> None:
        """Show the manual page of a command."""
        session = _require_session(self)
        for line in session.describe(name, DescriptionFormat.MAN).splitlines():
            context.provide(line)


class Echo(ShellCommand):
    """Write the arguments, joined by spaces."""

    name = "echo"

    @command
    def main(self, context: InteractionContext[str], *words: str) -> None:
        """Write the arguments, joined by spaces."""
        context.provide(" ".join(words))


class Grep(ShellCommand):
    """Keep the lines matching a regular expression."""

    name = "grep"

    @command
    def main(
        self,
        pattern: str = argument(usage="regular expression"),
        *,
        ignore_case: bool = option("i", "ignore-case", usage="ignore case distinctions"),
        invert: bool = option("v", "invert-match", usage="keep the lines that do not match"),
    ) -> LineFilter:
        """Keep the lines matching a regular expression."""
        try:
            compiled = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
        except re.error as exc:
            raise CommandSyntaxError(f"Invalid pattern '{pattern}': {exc}") from exc
        return LineFilter(compiled, invert=invert)


class Upper(ShellCommand):
    """Convert each element to upper case."""

    name = "upper"

    @command
    def main(self) -> LineMapper:
        """Convert each element to upper case."""
        return LineMapper(str.upper)


class Count(ShellCommand):
    """Count the elements received."""

    name = "count"

    @command
    def main(self) -> ElementCounter:
        """Count the elements received."""
        return ElementCounter()


class Clear(ShellCommand):
    """Clear the visible terminal lines."""

    name = "clear"

    @command
    def main(self, context: InteractionContext[Any]) -> None:
        """Clear the visible terminal lines."""
        context.writer.clear_screen()
        context.flush()


class Ask(ShellCommand):
    """Prompt for a line of input."""

    name = "ask"

    @command
    def main(
        self,
        context: InteractionContext[str],
        *words: str,
        secret: bool = option("s", "secret", usage="do not echo the typed text"),
        var: Optional[str] = option("var", usage="store the answer in this session attribute"),
    ) -> None:
        """Prompt for a line of input.

        The answer is written out, or stored in a session attribute with
        ``--var``. Secret answers are never written out.
        """
        question = " ".join(words) or "?"
        answer = self.read_line(f"{question} ", echo=not secret)
        if answer is None:
            return
        if var:
            context.attributes[var] = answer
        elif not secret:
            context.provide(answer)


class Sleep(ShellCommand):
    """Wait for a number of seconds."""

    name = "sleep"

    @command
    def main(self, context: InteractionContext[Any], seconds: float = argument(usage="seconds to wait")) -> None:
        """Wait for a number of seconds; cancelling the line stops the wait."""
        if seconds < 0:
            raise CommandSyntaxError("sleep: seconds must not be negative")
        deadline = time.monotonic() + seconds
        while True:
            context.check_cancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(min(remaining, SLEEP_STEP_SECONDS))


BUILTIN_COMMANDS: tuple[type[ShellCommand], ...] = (
    Help,
    Man,
    Echo,
    Grep,
    Upper,
    Count,
    Clear,
    Ask,
    Sleep,
)
