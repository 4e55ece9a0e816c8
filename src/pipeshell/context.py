"""Invocation contexts and the per-session context stack."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Generic, Optional, Protocol, TypeVar

from .chunks import CLEAR, Style, Text
from .errors import CancelledError, NoActiveInvocationError, ResolutionError, StageStateError

if TYPE_CHECKING:
    from .session import ShellSession
    from .stages import PipelineStage

P = TypeVar("P")


class InteractionSurface(Protocol):
    """Everything a running stage may reach downstream of itself.

    Implemented by the terminal process context, by pipeline links and by
    ``InteractionContext`` itself (so nested invocations write to the
    context they run in).
    """

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    @property
    def cancelled(self) -> bool:
        ...

    def provide(self, element: Any) -> None:
        ...

    def flush(self) -> None:
        ...

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        ...

    def get_property(self, name: str) -> Any:
        ...


class ChunkWriter:
    """File-like writer that turns text into ``Text`` chunks."""

    def __init__(self, context: "InteractionContext[Any]") -> None:
        self._context = context

    def write(self, text: str) -> int:
        if text:
            self._context.provide(Text(text))
        return len(text)

    def print(self, value: Any) -> None:
        self.write(str(value))

    def println(self, value: Any = "") -> None:
        self.write(f"{value}\n")

    def style(self, style: Style) -> None:
        self._context.provide(style)

    def clear_screen(self) -> None:
        self._context.provide(CLEAR)

    def flush(self) -> None:
        self._context.flush()


class InteractionContext(Generic[P]):
    """Environment a running stage executes within.

    The type parameter names the elements the stage produces; annotating a
    command parameter as ``InteractionContext[str]`` declares that the
    command emits strings.
    """

    def __init__(
        self,
        consumer: InteractionSurface,
        session: Optional["ShellSession"] = None,
    ) -> None:
        self.consumer = consumer
        self.session = session
        self.writer = ChunkWriter(self)

    @property
    def width(self) -> int:
        return self.consumer.width

    @property
    def height(self) -> int:
        return self.consumer.height

    @property
    def cancelled(self) -> bool:
        return self.consumer.cancelled

    @property
    def attributes(self) -> dict[str, Any]:
        """Session state shared by every invocation of the session."""
        if self.session is None:
            return {}
        return self.session.attributes

    def provide(self, element: P) -> None:
        self.consumer.provide(element)

    def flush(self) -> None:
        self.consumer.flush()

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        return self.consumer.read_line(prompt, echo)

    def get_property(self, name: str) -> Any:
        return self.consumer.get_property(name)

    def check_cancelled(self) -> None:
        """Raise ``CancelledError`` once the host has cancelled the line."""
        if self.cancelled:
            raise CancelledError()

    def resolve(self, line: str) -> "PipelineStage[Any, Any]":
        """Resolve a command line against this context's session."""
        if self.session is None:
            raise ResolutionError(f"No session available to resolve: {line}")
        return self.session.resolve_invoker(line)


class ContextStack:
    """Last-in-first-out stack of invocation contexts, one per thread.

    Owned by a session; each executing thread sees only the frames it pushed.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    def _frames(self) -> list[InteractionContext[Any]]:
        frames = getattr(self._local, "frames", None)
        if frames is None:
            frames = []
            self._local.frames = frames
        return frames

    @property
    def depth(self) -> int:
        return len(self._frames())

    @property
    def active(self) -> bool:
        return bool(self._frames())

    def push(self, context: InteractionContext[Any]) -> None:
        self._frames().append(context)

    def pop(self, expected: Optional[InteractionContext[Any]] = None) -> InteractionContext[Any]:
        """Pop the top context; ``expected`` must be that context when given."""
        frames = self._frames()
        if not frames:
            raise NoActiveInvocationError("Cannot pop: no active invocation context.")
        if expected is not None and frames[-1] is not expected:
            raise StageStateError("Context popped by an invocation that did not push it.")
        return frames.pop()

    def current(self) -> InteractionContext[Any]:
        frames = self._frames()
        if not frames:
            raise NoActiveInvocationError()
        return frames[-1]
