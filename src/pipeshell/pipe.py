"""Base class for commands that sit in the middle of a pipeline."""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from .context import InteractionContext
from .errors import StageStateError

C = TypeVar("C")
P = TypeVar("P")


class PipeCommand(Generic[C, P]):
    """Consume elements of type ``C`` and produce elements of type ``P``.

    A command method returning ``PipeCommand[C, P]`` (or a subclass fixing
    the parameters) is used as a pipe stage. The default implementation
    forwards every element unchanged.
    """

    def __init__(self) -> None:
        self._context: Optional[InteractionContext[P]] = None
        self.piped = False

    @property
    def context(self) -> InteractionContext[P]:
        if self._context is None:
            raise StageStateError(f"{type(self).__name__} is not open.")
        return self._context

    def do_open(self, context: InteractionContext[P]) -> None:
        self._context = context
        self.open()

    def open(self) -> None:
        """Called once before the first element."""

    def provide(self, element: C) -> None:
        self.context.provide(element)  # type: ignore[arg-type]

    def flush(self) -> None:
        self.context.flush()

    def close(self) -> None:
        """Called once after the last element."""

