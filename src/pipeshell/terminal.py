"""Console host: prompt_toolkit front end for a shell session."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional, TextIO

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.history import DummyHistory, FileHistory, History, InMemoryHistory
from prompt_toolkit.patch_stdout import StdoutProxy

from .bridge import ProcessContext, ShellProcess
from .chunks import RESET, Color, ScreenClear, Style, Text, to_chunk
from .constants import DEFAULT_PROMPT, DEFAULT_TERMINAL_HEIGHT, DEFAULT_TERMINAL_WIDTH, EXIT_COMMANDS
from .logging import log_event
from .renderer import ChunkRenderer
from .response import ResponseStatus, ShellResponse
from .session import ShellSession

ERROR_STYLE = Style(foreground=Color.RED)
CANCELLED_STYLE = Style(foreground=Color.YELLOW)


class _RenderingSurface:
    """Renders provided elements and remembers whether output ended a line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._renderer = ChunkRenderer(stream, lambda: self.height)
        self._at_line_start = True
        self.properties: dict[str, Any] = {}

    @property
    def width(self) -> int:
        return DEFAULT_TERMINAL_WIDTH

    @property
    def height(self) -> int:
        return DEFAULT_TERMINAL_HEIGHT

    @property
    def cancelled(self) -> bool:
        return False

    def provide(self, element: Any) -> None:
        chunk = to_chunk(element)
        self._renderer.render(chunk)
        if isinstance(chunk, Text) and chunk.text:
            self._at_line_start = chunk.text.endswith("\n")
        elif isinstance(chunk, ScreenClear):
            self._at_line_start = True

    def flush(self) -> None:
        self._renderer.flush()

    def get_property(self, name: str) -> Any:
        return self.properties.get(name)

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        return None

    def finish_line(self) -> None:
        """Terminate output that did not end with a newline."""
        if not self._at_line_start:
            self.provide(Text("\n"))
        self.flush()


class StreamSurface(_RenderingSurface):
    """Plain-stream surface for non-interactive runs."""

    def __init__(
        self,
        output: TextIO,
        input_stream: Optional[TextIO] = None,
        width: int = DEFAULT_TERMINAL_WIDTH,
        height: int = DEFAULT_TERMINAL_HEIGHT,
    ) -> None:
        super().__init__(output)
        self._input = input_stream
        self._width = width
        self._height = height

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        if self._input is None:
            return None
        try:
            self._stream.write(prompt)
            self._stream.flush()
            line = self._input.readline()
        except OSError:
            return None
        if not line:
            return None
        self._at_line_start = True
        return line.rstrip("\r\n")


class TerminalSurface(_RenderingSurface):
    """The interactive terminal, driven through prompt_toolkit.

    Output goes through a ``StdoutProxy`` so chunks written while a prompt is
    being edited never corrupt the input line.
    """

    def __init__(self, prompt_session: PromptSession, stream: Optional[TextIO] = None) -> None:
        self._owns_stream = stream is None
        super().__init__(stream if stream is not None else StdoutProxy(raw=True))
        self._prompt_session = prompt_session
        # Prompts issued by commands never land in the shell history.
        self._reader: PromptSession = PromptSession(
            history=DummyHistory(),
            input=prompt_session.input,
            output=prompt_session.output,
        )

    def _size(self) -> Optional[Any]:
        try:
            return self._prompt_session.output.get_size()
        except OSError:
            return None

    @property
    def width(self) -> int:
        size = self._size()
        return size.columns if size and size.columns else DEFAULT_TERMINAL_WIDTH

    @property
    def height(self) -> int:
        size = self._size()
        return size.rows if size and size.rows else DEFAULT_TERMINAL_HEIGHT

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        self.flush()
        try:
            line = self._reader.prompt(prompt, is_password=not echo)
        except (EOFError, OSError):
            return None
        self._at_line_start = True
        return line

    def close(self) -> None:
        self.flush()
        if self._owns_stream:
            self._stream.close()


class SessionCompleter(Completer):
    """prompt_toolkit adapter over ``ShellSession.complete``."""

    def __init__(self, session: ShellSession) -> None:
        self._session = session

    def get_completions(self, document: Document, complete_event: CompleteEvent) -> Iterable[Completion]:
        match = self._session.complete(document.text_before_cursor)
        for suffix, finished in sorted(match.candidates.items()):
            text = f"{suffix}{match.delimiter} " if finished else suffix
            yield Completion(text, start_position=0, display=f"{match.prefix}{suffix}")


def _build_history(history_file: Optional[str]) -> History:
    if not history_file:
        return InMemoryHistory()
    path = Path(history_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    return FileHistory(str(path))


def create_prompt_session(
    session: ShellSession,
    history_file: Optional[str] = None,
    **kwargs: Any,
) -> PromptSession:
    """Create the prompt session used to read shell lines."""
    return PromptSession(
        history=_build_history(history_file),
        completer=SessionCompleter(session),
        complete_while_typing=False,
        **kwargs,
    )


class TerminalProcessor:
    """Read lines, run each on a backend thread, report the outcome."""

    def __init__(
        self,
        session: ShellSession,
        prompt_session: PromptSession,
        surface: _RenderingSurface,
        prompt: str = DEFAULT_PROMPT,
    ) -> None:
        self.session = session
        self.prompt_session = prompt_session
        self.surface = surface
        self.prompt = prompt

    def run(self, welcome: Optional[str] = None) -> None:
        if welcome:
            self.surface.provide(Text(f"{welcome}\n"))
            self.surface.flush()
        while True:
            try:
                line = self.prompt_session.prompt(self.prompt)
            except KeyboardInterrupt:
                # Ctrl+C at the prompt only clears the line.
                continue
            except EOFError:
                log_event("session_end", reason="eof")
                break

            stripped = line.strip()
            if not stripped:
                continue
            if stripped in EXIT_COMMANDS:
                log_event("session_end", reason="exit_command")
                break

            self.process(stripped)

    def process(self, line: str) -> ShellResponse:
        context = ProcessContext(line, self.surface)
        process = ShellProcess(self.session, line)
        process.execute(context)
        response = context.await_response()
        process.join()
        self._report(response)
        return response

    def _report(self, response: ShellResponse) -> None:
        self.surface.finish_line()
        message = response.format()
        if not message:
            return
        style = CANCELLED_STYLE if response.status is ResponseStatus.CANCELLED else ERROR_STYLE
        self.surface.provide(style)
        self.surface.provide(Text(message))
        self.surface.provide(RESET)
        self.surface.provide(Text("\n"))
        self.surface.flush()
