"""Resolve the consumed and produced element types of a command method."""

from __future__ import annotations

import inspect
import types
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar, Union, get_args, get_origin, get_type_hints

from .context import InteractionContext
from .pipe import PipeCommand

UNIT: type = type(None)
ANY: type = object


@dataclass(frozen=True, slots=True)
class StageTypes:
    consumed: type
    produced: type

    @property
    def is_pipe(self) -> bool:
        return self.consumed is not UNIT


def _substitute(value: Any, bindings: dict[Any, Any]) -> Any:
    if isinstance(value, TypeVar):
        return bindings.get(value, value)
    return value


def resolve_type_arguments(tp: Any, generic: type) -> Optional[tuple[Any, ...]]:
    """Return the arguments ``tp`` binds for ``generic``'s type parameters.

    Follows generic bases, substituting type variables level by level, so a
    subclass that fixes some parameters and leaves others to its own
    subclasses is resolved correctly. Returns ``None`` if ``tp`` does not
    derive from ``generic``.
    """
    return _resolve(tp, generic, {})


def _resolve(tp: Any, generic: type, bindings: dict[Any, Any]) -> Optional[tuple[Any, ...]]:
    origin = get_origin(tp) or tp
    if not inspect.isclass(origin):
        return None
    args = tuple(_substitute(arg, bindings) for arg in get_args(tp))

    if origin is generic:
        if args:
            return args
        return tuple(getattr(generic, "__parameters__", ()))

    if not issubclass(origin, generic):
        return None

    parameters = getattr(origin, "__parameters__", ())
    local_bindings = dict(zip(parameters, args))
    # Only the class's own bases: __orig_bases__ is inherited otherwise.
    bases = origin.__dict__.get("__orig_bases__", origin.__bases__)
    for base in bases:
        resolved = _resolve(base, generic, local_bindings)
        if resolved is not None:
            return resolved
    return None


def to_class(value: Any) -> type:
    """Collapse a type expression to the class used for compatibility checks."""
    if value is None or value is UNIT:
        return UNIT
    if value is Any:
        return ANY
    if isinstance(value, TypeVar):
        bound = value.__bound__
        return to_class(bound) if bound is not None else ANY
    origin = get_origin(value)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(value) if arg is not type(None)]
        return to_class(members[0]) if len(members) == 1 else ANY
    if origin is not None:
        return to_class(origin)
    if inspect.isclass(value):
        return value
    return ANY


def strip_optional(hint: Any) -> Any:
    """Return ``T`` for ``Optional[T]`` or ``T | None``, anything else unchanged."""
    if get_origin(hint) in (Union, types.UnionType):
        members = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return hint


def _is_subclass_expression(hint: Any, base: type) -> bool:
    origin = get_origin(hint) or hint
    return inspect.isclass(origin) and issubclass(origin, base)


def resolve_stage_types(
    func: Callable[..., Any],
    *,
    consumes: Optional[type] = None,
    produces: Optional[type] = None,
    hints: Optional[dict[str, Any]] = None,
) -> StageTypes:
    """Determine the stage types of a command method.

    Explicit ``consumes``/``produces`` declarations win. Otherwise a return
    annotation deriving from ``PipeCommand[C, P]`` yields ``(C, P)``; any
    other method consumes nothing and produces the type parameter of its
    first ``InteractionContext[T]`` parameter, or anything when it has none.
    """
    if hints is None:
        hints = get_type_hints(func)

    consumed: type = UNIT
    produced: type = ANY

    return_hint = strip_optional(hints.get("return"))
    if return_hint is not None and _is_subclass_expression(return_hint, PipeCommand):
        args = resolve_type_arguments(return_hint, PipeCommand) or ()
        if len(args) == 2:
            consumed, produced = to_class(args[0]), to_class(args[1])
        else:
            consumed, produced = ANY, ANY
        if consumed is UNIT:
            # A pipe command always consumes something.
            consumed = ANY
    else:
        for name in inspect.signature(func).parameters:
            hint = strip_optional(hints.get(name))
            if hint is not None and _is_subclass_expression(hint, InteractionContext):
                args = resolve_type_arguments(hint, InteractionContext) or ()
                produced = to_class(args[0]) if args else ANY
                break

    if consumes is not None:
        consumed = to_class(consumes)
    if produces is not None:
        produced = to_class(produces)
    return StageTypes(consumed=consumed, produced=produced)
