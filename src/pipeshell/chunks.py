"""Output chunks produced by running stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, TextIO, TypeAlias

from .constants import CSI


class Color(IntEnum):
    BLACK = 0
    RED = 1
    GREEN = 2
    YELLOW = 3
    BLUE = 4
    MAGENTA = 5
    CYAN = 6
    WHITE = 7
    DEFAULT = 9


@dataclass(frozen=True, slots=True)
class Text:
    """Characters appended to the output as-is."""

    text: str


@dataclass(frozen=True, slots=True)
class Style:
    """Formatting directive rendered as an SGR escape sequence.

    ``None`` fields leave the current terminal attribute untouched.
    """

    foreground: Color | None = None
    background: Color | None = None
    bold: bool | None = None
    underline: bool | None = None
    reset: bool = False

    def sgr_codes(self) -> list[int]:
        if self.reset:
            return [0]
        codes: list[int] = []
        if self.bold is not None:
            codes.append(1 if self.bold else 22)
        if self.underline is not None:
            codes.append(4 if self.underline else 24)
        if self.foreground is not None:
            codes.append(30 + self.foreground)
        if self.background is not None:
            codes.append(40 + self.background)
        return codes

    def to_ansi(self) -> str:
        codes = self.sgr_codes()
        if not codes:
            return ""
        return f"{CSI}{';'.join(str(code) for code in codes)}m"

    def write_ansi_to(self, stream: TextIO) -> None:
        sequence = self.to_ansi()
        if sequence:
            stream.write(sequence)


@dataclass(frozen=True, slots=True)
class ScreenClear:
    """Erase the visible lines and home the cursor."""


RESET = Style(reset=True)
CLEAR = ScreenClear()

Chunk: TypeAlias = Text | Style | ScreenClear
CHUNK_TYPES = (Text, Style, ScreenClear)


def is_chunk(element: Any) -> bool:
    return isinstance(element, CHUNK_TYPES)


def to_chunk(element: Any) -> Chunk:
    """Return a chunk for a pipeline element reaching the terminal."""
    if isinstance(element, CHUNK_TYPES):
        return element
    return Text(f"{element}\n")
