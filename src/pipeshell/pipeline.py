"""Chain several stages into one ``a | b | c`` stage."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from .chunks import CHUNK_TYPES, is_chunk
from .context import InteractionSurface
from .errors import PipelineTypeError
from .stages import PipelineStage, StageState
from .type_resolver import ANY, UNIT, StageTypes


def accepts(consumed: type, produced: type) -> bool:
    """Whether a stage consuming ``consumed`` may follow one producing ``produced``."""
    if consumed in (UNIT, ANY) or produced in (UNIT, ANY):
        return True
    return issubclass(produced, consumed)


def _consumes_chunks(consumed: type) -> bool:
    if consumed in (UNIT, ANY):
        return False
    return any(issubclass(chunk_type, consumed) for chunk_type in CHUNK_TYPES)


def _label(stage: PipelineStage[Any, Any]) -> str:
    command = getattr(stage, "command", None)
    if command is not None:
        return command.command_name()
    return type(stage).__name__


class _StageLink:
    """Surface handed to an upstream stage: elements go to the next stage.

    Output chunks skip stages that do not consume chunks and go straight to
    the terminal surface.
    """

    def __init__(self, downstream: PipelineStage[Any, Any], surface: InteractionSurface) -> None:
        self._downstream = downstream
        self._surface = surface
        self._chunks_downstream = _consumes_chunks(downstream.consumed_type)

    @property
    def width(self) -> int:
        return self._surface.width

    @property
    def height(self) -> int:
        return self._surface.height

    @property
    def cancelled(self) -> bool:
        return self._surface.cancelled

    def provide(self, element: Any) -> None:
        if is_chunk(element) and not self._chunks_downstream:
            self._surface.provide(element)
        else:
            self._downstream.provide(element)

    def flush(self) -> None:
        self._downstream.flush()

    def read_line(self, prompt: str, echo: bool = True) -> Optional[str]:
        return self._surface.read_line(prompt, echo)

    def get_property(self, name: str) -> Any:
        return self._surface.get_property(name)


class Pipeline(PipelineStage[Any, Any]):
    """Stages run as one: opened last to first, closed first to last."""

    def __init__(self, stages: Sequence[PipelineStage[Any, Any]]) -> None:
        if not stages:
            raise ValueError("A pipeline needs at least one stage.")
        for upstream, downstream in zip(stages, stages[1:]):
            if not accepts(downstream.consumed_type, upstream.produced_type):
                raise PipelineTypeError(
                    f"'{_label(upstream)}' produces {upstream.produced_type.__name__} "
                    f"but '{_label(downstream)}' consumes {downstream.consumed_type.__name__}."
                )
            upstream.piped = True
        super().__init__(StageTypes(stages[0].consumed_type, stages[-1].produced_type))
        self.stages = list(stages)

    def _do_open(self, consumer: InteractionSurface) -> None:
        surface: InteractionSurface = consumer
        for stage in reversed(self.stages):
            stage.open(surface)
            surface = _StageLink(stage, consumer)

    def _do_provide(self, element: Any) -> None:
        self.stages[0].provide(element)

    def _do_flush(self) -> None:
        # Each link flushes its downstream stage.
        self.stages[0].flush()

    def _do_close(self) -> None:
        first_error: Optional[Exception] = None
        for stage in self.stages:
            if stage.state in (StageState.CREATED, StageState.CLOSED):
                continue
            try:
                stage.close()
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
