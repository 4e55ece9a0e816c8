"""Hand a submitted line to a backend thread and wait for its response.

The front-end thread owns the terminal. For each line it creates a
``ProcessContext`` and starts a ``ShellProcess``; the backend thread runs the
pipeline and ends the context exactly once. Read-line prompts issued by the
running command are sent back to the front end as ``ReadLineRequest`` items
and answered through their own one-slot channel.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import TYPE_CHECKING, Any, Generic, Optional, Protocol, TypeVar, Union

from .logging import log_event, summarize_text
from .response import FailureKind, ResponseStatus, ShellResponse

if TYPE_CHECKING:
    from .session import ShellSession

T = TypeVar("T")

# Interval for checking the inbox while the front end waits.
POLL_INTERVAL_SECONDS = 0.05


class ResponseChannel(Generic[T]):
    """Single-use channel holding at most one value.

    ``send`` succeeds once; later sends are ignored. ``receive`` blocks until
    the value is available and then returns it to every caller.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[T] = queue.Queue(maxsize=1)
        self._send_lock = threading.Lock()
        self._receive_lock = threading.Lock()
        self._sent = False
        self._received = False
        self._value: Optional[T] = None

    @property
    def sent(self) -> bool:
        return self._sent

    def send(self, value: T) -> bool:
        with self._send_lock:
            if self._sent:
                return False
            self._sent = True
        self._queue.put_nowait(value)
        return True

    def receive(self, timeout: Optional[float] = None) -> T:
        with self._receive_lock:
            if not self._received:
                try:
                    self._value = self._queue.get(timeout=timeout)
                except queue.Empty:
                    raise TimeoutError("No value received before the timeout.") from None
                self._received = True
            return self._value  # type: ignore[return-value]


class ReadLineRequest:
    """A prompt issued by the backend, answered on the front-end thread."""

    def __init__(self, prompt: str, echo: bool = True) -> None:
        self.prompt = prompt
        self.echo = echo
        self.reply: ResponseChannel[Optional[str]] = ResponseChannel()


class _End:
    pass


_END = _End()


class TerminalLike(Protocol):
    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def provide(self, element: Any) -> None:
        ...

    def flush(self) -> None:
        ...

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        ...

    def get_property(self, name: str) -> Any:
        ...


class ProcessContext:
    """Surface a running line writes to; also its link back to the front end."""

    def __init__(self, line: str, terminal: TerminalLike) -> None:
        self.line = line
        self.terminal = terminal
        self.response: ResponseChannel[ShellResponse] = ResponseChannel()
        self._inbox: queue.Queue[Union[ReadLineRequest, _End]] = queue.Queue()
        self._cancelled = threading.Event()

    @property
    def width(self) -> int:
        return self.terminal.width

    @property
    def height(self) -> int:
        return self.terminal.height

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def provide(self, element: Any) -> None:
        self.terminal.provide(element)

    def flush(self) -> None:
        self.terminal.flush()

    def get_property(self, name: str) -> Any:
        return self.terminal.get_property(name)

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        """Called on the backend thread; blocks until the front end answers."""
        if self.cancelled:
            return None
        request = ReadLineRequest(prompt, echo)
        self._inbox.put(request)
        return request.reply.receive()

    def cancel(self) -> None:
        self._cancelled.set()

    def end(self, response: ShellResponse) -> bool:
        """Deliver the response; only the first call has any effect."""
        if not self.response.send(response):
            return False
        self._inbox.put(_END)
        return True

    def await_response(self, timeout: Optional[float] = None) -> ShellResponse:
        """Block the front end until the line ends, serving read-line requests.

        Ctrl-C while waiting cancels the line; the wait continues until the
        backend has ended it.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"No response for: {self.line}")
            try:
                item = self._inbox.get(timeout=POLL_INTERVAL_SECONDS)
            except queue.Empty:
                continue
            except KeyboardInterrupt:
                self.cancel()
                continue
            if isinstance(item, _End):
                return self.response.receive()
            self._serve(item)

    def _serve(self, request: ReadLineRequest) -> None:
        answer: Optional[str] = None
        try:
            if not self.cancelled:
                answer = self.terminal.read_line(request.prompt, request.echo)
        except KeyboardInterrupt:
            self.cancel()
        finally:
            request.reply.send(answer)


class ShellProcess:
    """Executes one line of a session on a backend thread."""

    def __init__(self, session: "ShellSession", line: str) -> None:
        self.session = session
        self.line = line
        self._context: Optional[ProcessContext] = None
        self._thread: Optional[threading.Thread] = None

    def execute(self, context: ProcessContext) -> threading.Thread:
        self._context = context
        self._thread = threading.Thread(
            target=self._run,
            args=(context,),
            name="pipeshell-process",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def cancel(self) -> None:
        if self._context is not None:
            self._context.cancel()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, context: ProcessContext) -> None:
        started = time.perf_counter()
        response: Optional[ShellResponse] = None
        try:
            self.session.execute(self.line, context)
            response = ShellResponse.ok()
        except Exception as error:
            response = ShellResponse.from_exception(error)
            if context.cancelled and response.kind is not FailureKind.CANCELLED:
                response = ShellResponse.cancelled()
            if response.kind is FailureKind.INTERNAL:
                logging.error("Unexpected error processing line: %s", error, exc_info=True)
        finally:
            if response is None:
                # Left through a BaseException; the front end still gets an answer.
                response = ShellResponse.cancelled()
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            if response.status is ResponseStatus.CANCELLED:
                log_event(
                    "line_cancelled",
                    line=summarize_text(self.line),
                    elapsed_ms=elapsed_ms,
                )
            log_event(
                "line_processed",
                level=logging.INFO if response.is_success else logging.WARNING,
                line=summarize_text(self.line),
                status=response.status,
                kind=response.kind,
                elapsed_ms=elapsed_ms,
                error=response.message or None,
            )
            context.end(response)
