"""Low-level rendering of output chunks to a terminal stream."""

from __future__ import annotations

import logging
from typing import Callable, TextIO

from .chunks import Chunk, ScreenClear, Style, Text
from .constants import CSI, CURSOR_HOME, ERASE_LINE
from .logging import log_event


class ChunkRenderer:
    """Write text, style and screen-clear chunks to a terminal stream."""

    def __init__(self, stream: TextIO, get_height: Callable[[], int]) -> None:
        self._stream = stream
        self._get_height = get_height

    def render(self, chunk: Chunk) -> None:
        if isinstance(chunk, Text):
            self._stream.write(chunk.text)
        elif isinstance(chunk, Style):
            try:
                chunk.write_ansi_to(self._stream)
            except Exception as exc:
                log_event(
                    "style_write_failed",
                    level=logging.WARNING,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        elif isinstance(chunk, ScreenClear):
            self._clear_visible_lines()
        else:
            raise TypeError(f"Unsupported chunk: {chunk!r}")

    def _clear_visible_lines(self) -> None:
        # Erase row by row instead of a full-screen erase, which would also
        # wipe the terminal history.
        height = self._get_height()
        for row in range(1, height):
            self._stream.write(f"{CSI}{row};1H")
            self._stream.write(f"{CSI}{ERASE_LINE}")
        self._stream.write(f"{CSI}{CURSOR_HOME}")

    def flush(self) -> None:
        self._stream.flush()
