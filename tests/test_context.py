"""Tests for invocation contexts and the context stack."""

import threading

import pytest

from pipeshell import ContextStack, InteractionContext, ShellCommand, ShellSession, command
from pipeshell.chunks import CLEAR, Style, Text
from pipeshell.errors import CancelledError, NoActiveInvocationError, ResolutionError, StageStateError


class Prompt(ShellCommand):
    name = "prompt"

    @command
    def main(self, context: InteractionContext[str]) -> None:
        context.provide(self.read_line("name? "))


class TestContextStack:
    """The stack is last-in-first-out and private to each thread."""

    def test_push_pop(self, surface):
        stack = ContextStack()
        first = InteractionContext(surface)
        second = InteractionContext(surface)

        stack.push(first)
        stack.push(second)

        assert stack.depth == 2
        assert stack.current() is second
        assert stack.pop() is second
        assert stack.current() is first

    def test_empty_stack(self):
        stack = ContextStack()
        assert not stack.active
        with pytest.raises(NoActiveInvocationError):
            stack.current()
        with pytest.raises(NoActiveInvocationError):
            stack.pop()

    def test_pop_checks_the_expected_frame(self, surface):
        stack = ContextStack()
        first = InteractionContext(surface)
        stack.push(first)
        stack.push(InteractionContext(surface))

        with pytest.raises(StageStateError):
            stack.pop(first)
        assert stack.depth == 2

    def test_frames_are_per_thread(self, surface):
        stack = ContextStack()
        stack.push(InteractionContext(surface))
        seen = []

        thread = threading.Thread(target=lambda: seen.append(stack.depth))
        thread.start()
        thread.join()

        assert seen == [0]
        assert stack.depth == 1

    def test_sessions_do_not_share_stacks(self, surface):
        one, two = ShellSession(), ShellSession()
        one.context_stack.push(InteractionContext(surface))
        assert two.context_stack.depth == 0


class TestInteractionContext:
    def test_delegates_to_consumer(self, make_surface):
        surface = make_surface(width=100, height=40, answers=["yes"])
        surface.properties["term"] = "xterm"
        context = InteractionContext(surface)

        context.provide("x")
        context.flush()

        assert (context.width, context.height) == (100, 40)
        assert context.read_line("ok? ", echo=False) == "yes"
        assert surface.prompts == [("ok? ", False)]
        assert context.get_property("term") == "xterm"
        assert surface.values == ["x"]
        assert surface.flushes == 1

    def test_writer_emits_chunks(self, surface):
        context = InteractionContext(surface)

        context.writer.write("a")
        context.writer.write("")
        context.writer.println("b")
        context.writer.style(Style(bold=True))
        context.writer.clear_screen()

        assert surface.elements == [Text("a"), Text("b\n"), Style(bold=True), CLEAR]

    def test_check_cancelled(self, surface):
        context = InteractionContext(surface)
        context.check_cancelled()
        surface.cancelled = True
        with pytest.raises(CancelledError):
            context.check_cancelled()

    def test_attributes_come_from_the_session(self, surface):
        session = ShellSession(attributes={"user": "ada"})
        context = InteractionContext(surface, session)
        context.attributes["mode"] = "x"
        assert session.attributes == {"user": "ada", "mode": "x"}

    def test_resolve_without_session(self, surface):
        with pytest.raises(ResolutionError):
            InteractionContext(surface).resolve("echo hi")

    def test_resolve_with_session(self, session, surface):
        stage = InteractionContext(surface, session).resolve("echo hi")
        assert stage.produced_type is str


class TestReadLine:
    def test_requires_an_active_context(self, session):
        with pytest.raises(NoActiveInvocationError, match="without an invocation context"):
            session.create_command("ok").read_line("name? ")

    def test_reads_through_the_current_context(self, session, make_surface):
        session.register(Prompt)
        surface = make_surface(answers=["ada"])

        session.execute("prompt", surface)

        assert surface.prompts == [("name? ", True)]
        assert surface.values == ["ada"]
