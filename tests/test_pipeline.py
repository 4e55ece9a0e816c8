"""Tests for chaining stages with ``|``."""

import pytest

from pipeshell import InteractionContext, ShellCommand, command
from pipeshell.chunks import CLEAR, Style, Text
from pipeshell.errors import CommandSyntaxError, PipelineTypeError, ScriptError
from pipeshell.pipe import PipeCommand
from pipeshell.pipeline import Pipeline, accepts
from pipeshell.stages import StageState, run_stage
from pipeshell.type_resolver import ANY, UNIT


class Numbers(ShellCommand):
    name = "numbers"

    @command
    def main(self, context: InteractionContext[int]) -> None:
        for value in (1, 2, 3):
            context.provide(value)


class Words(ShellCommand):
    name = "words"

    @command
    def main(self, context: InteractionContext[str]) -> None:
        context.writer.style(Style(bold=True))
        context.provide("a")
        context.provide("b")
        context.writer.style(Style(reset=True))


class Collector(PipeCommand[str, str]):
    received: list = []

    def provide(self, element):
        Collector.received.append(element)
        super().provide(element)


class Collect(ShellCommand):
    name = "collect"

    @command
    def main(self) -> Collector:
        return Collector()


class StyledPipe(PipeCommand[Text, Text]):
    def provide(self, element):
        self.context.provide(Text(f"[{element.text}]"))


class Styled(ShellCommand):
    name = "styled"

    @command
    def main(self) -> StyledPipe:
        return StyledPipe()


class FailingClose(PipeCommand[str, str]):
    def close(self):
        raise RuntimeError("close failed")


class BadClose(ShellCommand):
    name = "badclose"

    @command
    def main(self) -> FailingClose:
        return FailingClose()


@pytest.fixture(autouse=True)
def _reset_collector():
    Collector.received = []
    yield


@pytest.fixture
def pipe_session(session):
    session.register_all((Numbers, Words, Collect, Styled, BadClose))
    return session


class TestAccepts:
    def test_unit_and_any_always_accept(self):
        assert accepts(ANY, int)
        assert accepts(str, ANY)
        assert accepts(UNIT, str)

    def test_subclass_accepts(self):
        assert accepts(object, str)
        assert accepts(int, bool)

    def test_mismatch(self):
        assert not accepts(str, int)


class TestConstruction:
    def test_string_stages_chain(self, pipe_session, surface):
        stage = pipe_session.resolve_invoker("words | collect")

        assert isinstance(stage, Pipeline)
        assert stage.consumed_type is UNIT
        assert stage.produced_type is str

        run_stage(stage, surface)

        assert Collector.received == ["a", "b"]
        assert surface.values == ["a", "b"]

    def test_type_mismatch_is_rejected(self, pipe_session):
        with pytest.raises(PipelineTypeError, match="'numbers' produces int but 'grep' consumes str"):
            pipe_session.resolve_invoker("numbers | grep 1")

    def test_upstream_stages_are_marked_piped(self, pipe_session):
        stage = pipe_session.resolve_invoker("words | upper | collect")
        assert [s.piped for s in stage.stages] == [True, True, False]

    def test_empty_segment(self, pipe_session):
        with pytest.raises(CommandSyntaxError, match="Empty command in pipeline"):
            pipe_session.resolve_invoker("words | | collect")

    def test_empty_pipeline(self):
        with pytest.raises(ValueError):
            Pipeline([])


class TestRouting:
    def test_chunks_bypass_stages_that_do_not_consume_them(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("words | upper"), surface)

        assert surface.values == ["A", "B"]
        assert surface.chunks == [Style(bold=True), Style(reset=True)]

    def test_chunk_consumers_receive_chunks(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("ok | styled"), surface)
        assert surface.elements == [Text("[ok]")]

    def test_counter_emits_on_close(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("echo one | grep o | count"), surface)
        assert surface.values == [1]

    def test_counter_accepts_any_element(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("numbers | count"), surface)
        assert surface.values == [3]

    def test_help_in_pipeline_prints_usage(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("words | grep --help"), surface)
        assert "usage: grep" in surface.text
        assert surface.values == []

    def test_flush_reaches_the_surface(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("words | upper"), surface)
        assert surface.flushes >= 1

    def test_clear_passes_through_pipes(self, pipe_session, surface):
        run_stage(pipe_session.resolve_invoker("clear | upper"), surface)
        assert CLEAR in surface.chunks


class TestClose:
    def test_every_stage_is_closed_after_a_failure(self, pipe_session, surface):
        stage = pipe_session.resolve_invoker("words | badclose | collect")

        with pytest.raises(ScriptError, match="close failed"):
            run_stage(stage, surface)

        assert all(s.state is StageState.CLOSED for s in stage.stages)
        assert pipe_session.context_stack.depth == 0

    def test_failure_while_opening_closes_opened_stages(self, pipe_session, surface):
        stage = pipe_session.resolve_invoker("boom | collect")

        with pytest.raises(ScriptError, match="boom"):
            run_stage(stage, surface)

        assert all(s.state is StageState.CLOSED for s in stage.stages)
        assert pipe_session.context_stack.depth == 0
