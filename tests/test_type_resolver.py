"""Tests for resolving stage types from command method signatures."""

from typing import Any, Generic, Optional, TypeVar

from pipeshell.context import InteractionContext
from pipeshell.pipe import PipeCommand
from pipeshell.type_resolver import ANY, UNIT, resolve_stage_types, resolve_type_arguments, to_class

T = TypeVar("T")
N = TypeVar("N", bound=int)


class Half(PipeCommand[str, T], Generic[T]):
    pass


class Full(Half[int]):
    pass


class Unbound(PipeCommand):
    pass


def sink_with_context(self, context: InteractionContext[str], count: int) -> None:
    pass


def sink_without_context(self, count: int) -> None:
    pass


def sink_with_bare_context(self, context: InteractionContext) -> None:
    pass


def sink_with_optional_context(self, context: Optional[InteractionContext[str]] = None) -> None:
    pass


def sink_with_union_context(self, count: int, context: InteractionContext[bytes] | None = None) -> None:
    pass


def pipe_direct(self) -> PipeCommand[str, int]:
    return PipeCommand()


def pipe_subclass(self) -> Full:
    return Full()


def pipe_unbound(self) -> Unbound:
    return Unbound()


def pipe_unit_input(self) -> PipeCommand[None, str]:
    return PipeCommand()


class TestResolveTypeArguments:
    """Walking generic bases binds the parameters of the target generic."""

    def test_direct_parameterization(self):
        assert resolve_type_arguments(PipeCommand[str, int], PipeCommand) == (str, int)

    def test_partially_fixed_subclass(self):
        assert resolve_type_arguments(Half[bytes], PipeCommand) == (str, bytes)

    def test_fully_fixed_subclass(self):
        assert resolve_type_arguments(Full, PipeCommand) == (str, int)

    def test_unbound_subclass_returns_type_variables(self):
        args = resolve_type_arguments(Unbound, PipeCommand)
        assert args is not None
        assert all(isinstance(arg, TypeVar) for arg in args)

    def test_unrelated_type(self):
        assert resolve_type_arguments(str, PipeCommand) is None

    def test_context_parameter(self):
        assert resolve_type_arguments(InteractionContext[str], InteractionContext) == (str,)


class TestToClass:
    def test_unit_and_any(self):
        assert to_class(None) is UNIT
        assert to_class(Any) is ANY

    def test_optional_collapses_to_member(self):
        assert to_class(Optional[str]) is str
        assert to_class(str | None) is str

    def test_wide_union_is_any(self):
        assert to_class(int | str) is ANY

    def test_parameterized_generic_uses_origin(self):
        assert to_class(list[int]) is list

    def test_type_variables(self):
        assert to_class(T) is ANY
        assert to_class(N) is int


class TestResolveStageTypes:
    def test_sink_produces_context_parameter(self):
        types = resolve_stage_types(sink_with_context)
        assert types.consumed is UNIT
        assert types.produced is str
        assert not types.is_pipe

    def test_sink_without_context_produces_anything(self):
        types = resolve_stage_types(sink_without_context)
        assert types.consumed is UNIT
        assert types.produced is ANY

    def test_bare_context_produces_anything(self):
        assert resolve_stage_types(sink_with_bare_context).produced is ANY

    def test_optional_context_parameter(self):
        types = resolve_stage_types(sink_with_optional_context)
        assert (types.consumed, types.produced) == (UNIT, str)

    def test_union_with_none_context_parameter(self):
        assert resolve_stage_types(sink_with_union_context).produced is bytes

    def test_pipe_return_annotation(self):
        types = resolve_stage_types(pipe_direct)
        assert (types.consumed, types.produced) == (str, int)
        assert types.is_pipe

    def test_pipe_through_subclass(self):
        types = resolve_stage_types(pipe_subclass)
        assert (types.consumed, types.produced) == (str, int)

    def test_unbound_pipe_is_any_to_any(self):
        types = resolve_stage_types(pipe_unbound)
        assert (types.consumed, types.produced) == (ANY, ANY)

    def test_pipe_never_consumes_unit(self):
        types = resolve_stage_types(pipe_unit_input)
        assert types.consumed is ANY
        assert types.is_pipe

    def test_explicit_declarations_win(self):
        types = resolve_stage_types(sink_without_context, consumes=bytes, produces=int)
        assert (types.consumed, types.produced) == (bytes, int)
