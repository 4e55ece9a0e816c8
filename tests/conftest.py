"""Pytest configuration and fixtures for pipeshell tests."""

import logging
from typing import Any, Optional

import pytest

from pipeshell import InteractionContext, ShellCommand, ShellSession, command, option
from pipeshell.chunks import Text, is_chunk
from pipeshell.errors import ScriptFailure


class RecordingSurface:
    """Interaction surface that records everything it receives."""

    def __init__(self, width: int = 80, height: int = 24, answers: Optional[list] = None):
        self.width = width
        self.height = height
        self.cancelled = False
        self.elements: list = []
        self.flushes = 0
        self.answers = list(answers or [])
        self.prompts: list = []
        self.properties: dict = {}

    def provide(self, element: Any) -> None:
        self.elements.append(element)

    def flush(self) -> None:
        self.flushes += 1

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        self.prompts.append((prompt, echo))
        if not self.answers:
            return None
        return self.answers.pop(0)

    def get_property(self, name: str) -> Any:
        return self.properties.get(name)

    @property
    def chunks(self) -> list:
        return [element for element in self.elements if is_chunk(element)]

    @property
    def values(self) -> list:
        return [element for element in self.elements if not is_chunk(element)]

    @property
    def text(self) -> str:
        return "".join(element.text for element in self.elements if isinstance(element, Text))


class Ok(ShellCommand):
    """Print ok."""

    name = "ok"

    @command
    def main(self) -> str:
        return "ok"


class Greet(ShellCommand):
    """Greet someone."""

    name = "greet"

    @command
    def main(
        self,
        context: InteractionContext[str],
        *,
        loud: bool = option("l", "loud", usage="shout the greeting"),
        name: str = option("n", "name", usage="who to greet", default="world"),
    ) -> None:
        """Greet someone by name."""
        greeting = f"hello {name}"
        context.provide(greeting.upper() if loud else greeting)


class Boom(ShellCommand):
    """Always fail."""

    name = "boom"

    @command
    def main(self) -> None:
        raise ValueError("boom")


class Refuse(ShellCommand):
    """Fail with the scripting failure type."""

    name = "refuse"

    @command
    def main(self) -> None:
        raise ScriptFailure("script said no")


class Repo(ShellCommand):
    """Manage repositories."""

    name = "repo"

    @command
    def add(self, context: InteractionContext[str], path: str, *, force: bool = False) -> None:
        """Add a repository."""
        context.provide(f"added {path}{' (forced)' if force else ''}")

    @command(usage="List repositories")
    def list(self, context: InteractionContext[str]) -> None:
        for entry in ("alpha", "beta"):
            context.provide(entry)


TEST_COMMANDS = (Ok, Greet, Boom, Refuse, Repo)


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo setup_logging() side effects between tests."""
    yield
    logging.disable(logging.NOTSET)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def session():
    """Session with the built-in commands and the test commands."""
    from pipeshell.builtins import BUILTIN_COMMANDS

    return ShellSession((*BUILTIN_COMMANDS, *TEST_COMMANDS))


@pytest.fixture
def make_surface():
    """Factory for surfaces with a custom size or scripted answers."""
    return RecordingSurface
