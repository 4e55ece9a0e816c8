"""Command grammar: descriptors built from command classes, line matching,
usage/man text and completion.

A command class exposes sub-commands as methods decorated with
``@command``. Parameters map onto the grammar as follows:

- keyword-only parameters are options (``--name``/``-n``);
- positional parameters are arguments, ``*args`` takes every remaining one;
- a parameter annotated ``InteractionContext[T]`` receives the running
  context and is invisible to the grammar.
"""

from __future__ import annotations

import inspect
import shlex
import types
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Literal,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TextIO,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from .constants import HELP_OPTION_NAMES, MAIN_METHOD
from .context import InteractionContext
from .type_resolver import StageTypes, resolve_stage_types, strip_optional

COMMAND_META_ATTR = "__pipeshell_command__"

_TRUE_VALUES = frozenset(("true", "yes", "on", "1"))
_FALSE_VALUES = frozenset(("false", "no", "off", "0"))


class GrammarError(ValueError):
    """Raised when a line does not fit a command's grammar."""


class InvocationError(Exception):
    """Wraps any exception raised by a command method; the cause is chained."""


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# ============================================================================
# Declarations
# ============================================================================


@dataclass(frozen=True, slots=True)
class ParamInfo:
    """Grammar metadata attached to a parameter through its default value."""

    kind: Literal["option", "argument"]
    names: tuple[str, ...] = ()
    usage: str = ""
    default: Any = MISSING


def option(*names: str, usage: str = "", default: Any = MISSING) -> Any:
    """Declare option names and usage for a keyword-only parameter."""
    return ParamInfo("option", tuple(names), usage, default)


def argument(*, usage: str = "", default: Any = MISSING) -> Any:
    """Declare usage (and optionally a default) for a positional parameter."""
    return ParamInfo("argument", (), usage, default)


@dataclass(frozen=True, slots=True)
class CommandMeta:
    name: Optional[str] = None
    usage: str = ""
    man: str = ""
    consumes: Optional[type] = None
    produces: Optional[type] = None


def command(
    func: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    usage: str = "",
    man: str = "",
    consumes: Optional[type] = None,
    produces: Optional[type] = None,
) -> Any:
    """Mark a method as a (sub-)command.

    ``consumes``/``produces`` declare the stage types explicitly instead of
    inferring them from annotations.
    """

    def decorate(target: Callable[..., Any]) -> Callable[..., Any]:
        doc = inspect.getdoc(target) or ""
        meta = CommandMeta(
            name=name,
            usage=usage or (doc.splitlines()[0] if doc else ""),
            man=man or doc,
            consumes=consumes,
            produces=produces,
        )
        setattr(target, COMMAND_META_ATTR, meta)
        return target

    if func is not None:
        return decorate(func)
    return decorate


# ============================================================================
# Descriptors
# ============================================================================


@dataclass(frozen=True, slots=True)
class OptionDescriptor:
    names: tuple[str, ...]
    param: str = ""
    usage: str = ""
    value_type: type = bool
    multi: bool = False
    default: Any = None

    @property
    def is_flag(self) -> bool:
        return self.value_type is bool and not self.multi

    def spellings(self) -> list[str]:
        return [f"-{name}" if len(name) == 1 else f"--{name}" for name in self.names]

    def display(self) -> str:
        text = " | ".join(self.spellings())
        if not self.is_flag:
            text += " VALUE"
        return f"[{text}]"


@dataclass(frozen=True, slots=True)
class ArgumentDescriptor:
    name: str
    usage: str = ""
    value_type: type = str
    multi: bool = False
    required: bool = True
    default: Any = None

    def display(self) -> str:
        text = f"{self.name}..." if self.multi else self.name
        return text if self.required else f"[{text}]"


HELP_OPTION = OptionDescriptor(
    names=HELP_OPTION_NAMES,
    param="",
    usage="command usage",
    value_type=bool,
    default=False,
)


@dataclass(frozen=True, slots=True)
class Binding:
    """How one method parameter is filled at invocation time."""

    param: str
    kind: Literal["context", "option", "argument", "arguments"]
    keyword_only: bool = False


def _parameter_lines(params: Sequence[OptionDescriptor | ArgumentDescriptor]) -> list[str]:
    if not params:
        return []
    width = max(len(param.display()) for param in params)
    return [f"   {param.display():<{width}} {param.usage}".rstrip() for param in params]


def _indent(text: str, prefix: str = "       ") -> list[str]:
    return [f"{prefix}{line}" if line else "" for line in text.splitlines()]


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    function: Callable[..., Any]
    command_name: str
    usage: str = ""
    man: str = ""
    options: tuple[OptionDescriptor, ...] = ()
    arguments: tuple[ArgumentDescriptor, ...] = ()
    bindings: tuple[Binding, ...] = ()
    class_options: tuple[OptionDescriptor, ...] = (HELP_OPTION,)
    stage_types: StageTypes = field(default_factory=lambda: StageTypes(type(None), object))

    @property
    def accepts_any_number(self) -> bool:
        return any(arg.multi for arg in self.arguments)

    def option_for(self, param: str) -> OptionDescriptor:
        for opt in self.options:
            if opt.param == param:
                return opt
        raise KeyError(param)

    def argument_for(self, param: str) -> ArgumentDescriptor:
        for arg in self.arguments:
            if arg.name == param:
                return arg
        raise KeyError(param)

    def argument_at(self, position: int) -> Optional[ArgumentDescriptor]:
        if position < len(self.arguments):
            return self.arguments[position]
        if self.arguments and self.arguments[-1].multi:
            return self.arguments[-1]
        return None

    def synopsis(self) -> str:
        parts = [self.command_name]
        parts += [opt.display() for opt in self.class_options]
        if self.name != MAIN_METHOD:
            parts.append(self.name)
        parts += [opt.display() for opt in self.options]
        parts += [arg.display() for arg in self.arguments]
        return " ".join(parts)

    def usage_text(self) -> str:
        lines = [f"usage: {self.synopsis()}", ""]
        lines += _parameter_lines([*self.class_options, *self.options, *self.arguments])
        return "\n".join(lines) + "\n"

    def man_text(self) -> str:
        title = self.command_name if self.name == MAIN_METHOD else f"{self.command_name} {self.name}"
        lines = ["NAME", f"       {title} - {self.usage}".rstrip(), ""]
        lines += ["SYNOPSIS", f"       {self.synopsis()}", ""]
        if self.man:
            lines += ["DESCRIPTION", *_indent(self.man), ""]
        params = [*self.class_options, *self.options, *self.arguments]
        if params:
            lines.append("PARAMETERS")
            for param in params:
                lines.append(f"       {param.display()}")
                if param.usage:
                    lines.append(f"           {param.usage}")
                lines.append("")
        return "\n".join(lines).rstrip("\n") + "\n"

    def print_usage(self, sink: TextIO) -> None:
        sink.write(self.usage_text())

    def print_man(self, sink: TextIO) -> None:
        sink.write(self.man_text())


class CommandDescriptor:
    """Grammar of one command class: class options plus its sub-commands."""

    def __init__(
        self,
        name: str,
        usage: str = "",
        man: str = "",
        options: tuple[OptionDescriptor, ...] = (HELP_OPTION,),
        methods: Optional[Mapping[str, MethodDescriptor]] = None,
    ) -> None:
        self.name = name
        self.usage = usage
        self.man = man
        self.options = options
        self.methods: dict[str, MethodDescriptor] = dict(methods or {})

    @property
    def main(self) -> Optional[MethodDescriptor]:
        return self.methods.get(MAIN_METHOD)

    @property
    def sub_commands(self) -> dict[str, MethodDescriptor]:
        return {name: method for name, method in self.methods.items() if name != MAIN_METHOD}

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match(self, line: str) -> "CommandMatch":
        """Match the text following the command name."""
        tokens, _ = tokenize(line)
        collected: dict[tuple[str, ...], tuple[OptionDescriptor, list[Any]]] = {}

        index = 0
        while index < len(tokens) and _is_option_of(tokens[index].value, self.options):
            index = _consume_option(tokens, index, self.options, collected)

        method: Optional[MethodDescriptor] = None
        descriptor: MethodDescriptor | CommandDescriptor = self
        if index < len(tokens):
            method = self.sub_commands.get(tokens[index].value)
            if method is not None:
                descriptor = method
                index += 1

        if method is None:
            method = self.main
            if method is None:
                if index < len(tokens):
                    token = tokens[index].value
                    if looks_like_option(token):
                        raise GrammarError(f"Unknown option: {token}")
                    raise GrammarError(self._unknown_sub_command(token))
                return CommandMatch(descriptor=self, options=_option_matches(collected))

        arguments: list[str] = []
        rest = ""
        candidates = (*method.options, *self.options)
        capacity = None if method.accepts_any_number else len(method.arguments)
        accept_options = True
        while index < len(tokens):
            token = tokens[index]
            if accept_options and token.value == "--":
                accept_options = False
                index += 1
                continue
            if accept_options and looks_like_option(token.value):
                index = _consume_option(tokens, index, candidates, collected)
                continue
            if capacity is not None and len(arguments) >= capacity:
                rest = line[token.start:].strip()
                break
            arguments.append(token.value)
            index += 1

        return CommandMatch(
            descriptor=descriptor,
            options=_option_matches(collected),
            arguments=tuple(arguments),
            rest=rest,
            invoker=Invoker(method),
        )

    def match_structured(
        self,
        name: Optional[str],
        options: Mapping[str, Any],
        args: Sequence[Any],
    ) -> "CommandMatch":
        """Match already-split values; ``name`` selects a sub-command."""
        method: Optional[MethodDescriptor]
        descriptor: MethodDescriptor | CommandDescriptor = self
        if name and name != MAIN_METHOD:
            method = self.sub_commands.get(name)
            if method is None:
                raise GrammarError(self._unknown_sub_command(name))
            descriptor = method
        else:
            method = self.main

        candidates = (*(method.options if method else ()), *self.options)
        matches: list[OptionMatch] = []
        for key, value in options.items():
            opt = _find_option(candidates, key.lstrip("-"))
            if opt is None:
                raise GrammarError(f"Unknown option: {key}")
            if isinstance(value, (list, tuple)):
                values = tuple(value)
            else:
                values = (value,)
            matches.append(OptionMatch(opt, values))

        if method is None:
            if args:
                raise GrammarError(f"{self.name} requires a sub-command")
            return CommandMatch(descriptor=self, options=tuple(matches))

        if not method.accepts_any_number and len(args) > len(method.arguments):
            raise GrammarError(f"Too many arguments for {method.synopsis()}")

        return CommandMatch(
            descriptor=descriptor,
            options=tuple(matches),
            arguments=tuple(args),
            invoker=Invoker(method),
        )

    def _unknown_sub_command(self, token: str) -> str:
        available = ", ".join(sorted(self.sub_commands)) or "none"
        return f"Unknown {self.name} command: '{token}'. Available: {available}"

    # ------------------------------------------------------------------
    # Usage / man
    # ------------------------------------------------------------------

    def synopsis(self) -> str:
        parts = [self.name] + [opt.display() for opt in self.options]
        main = self.main
        if main is not None:
            parts += [opt.display() for opt in main.options]
            parts += [arg.display() for arg in main.arguments]
        if self.sub_commands:
            parts.append("COMMAND [ARGS]")
        return " ".join(parts)

    def _sub_command_lines(self) -> list[str]:
        subs = self.sub_commands
        if not subs:
            return []
        width = max(len(name) for name in subs)
        return [f"   {name:<{width}} {subs[name].usage}".rstrip() for name in sorted(subs)]

    def usage_text(self) -> str:
        lines = [f"usage: {self.synopsis()}", ""]
        main = self.main
        params: list[OptionDescriptor | ArgumentDescriptor] = list(self.options)
        if main is not None:
            params += [*main.options, *main.arguments]
        lines += _parameter_lines(params)
        sub_lines = self._sub_command_lines()
        if sub_lines:
            lines += ["", f"The most commonly used {self.name} commands are:", *sub_lines]
        return "\n".join(lines) + "\n"

    def man_text(self) -> str:
        lines = ["NAME", f"       {self.name} - {self.usage}".rstrip(), ""]
        lines += ["SYNOPSIS", f"       {self.synopsis()}", ""]
        if self.man:
            lines += ["DESCRIPTION", *_indent(self.man), ""]
        main = self.main
        params: list[OptionDescriptor | ArgumentDescriptor] = list(self.options)
        if main is not None:
            params += [*main.options, *main.arguments]
        lines.append("PARAMETERS")
        for param in params:
            lines.append(f"       {param.display()}")
            if param.usage:
                lines.append(f"           {param.usage}")
            lines.append("")
        subs = self.sub_commands
        if subs:
            lines.append("COMMANDS")
            for name in sorted(subs):
                lines.append(f"       {name}")
                if subs[name].usage:
                    lines.append(f"           {subs[name].usage}")
                lines.append("")
        return "\n".join(lines).rstrip("\n") + "\n"

    def print_usage(self, sink: TextIO) -> None:
        sink.write(self.usage_text())

    def print_man(self, sink: TextIO) -> None:
        sink.write(self.man_text())

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete(self, line: str, completer: Optional["Completer"] = None) -> "CompletionMatch":
        tokens, quote = tokenize(line, partial=True)
        completing_new = not tokens or (quote is None and line[-1:].isspace())
        prefix = "" if completing_new else tokens[-1].value
        done = [token.value for token in (tokens if completing_new else tokens[:-1])]
        walk = self._walk(done)

        if walk.pending_option is not None:
            return CompletionMatch(delimiter=quote or "", prefix=prefix)

        candidates: dict[str, bool] = {}
        if prefix.startswith("-") and quote is None:
            pool = (*(walk.method.options if walk.method else ()), *self.options)
            for opt in pool:
                for spelling in opt.spellings():
                    if spelling.startswith(prefix):
                        candidates[spelling[len(prefix):]] = True
            return CompletionMatch(prefix=prefix, candidates=candidates)

        if not walk.sub_chosen and walk.position == 0:
            for name in sorted(self.sub_commands):
                if name.startswith(prefix):
                    candidates[name[len(prefix):]] = True

        if walk.method is not None and completer is not None:
            arg = walk.method.argument_at(walk.position)
            if arg is not None:
                candidates.update(completer.complete_argument(arg, prefix))

        return CompletionMatch(delimiter=quote or "", prefix=prefix, candidates=candidates)

    def _walk(self, values: list[str]) -> "_Walk":
        index = _skip_options(values, 0, self.options)
        method: Optional[MethodDescriptor]
        sub_chosen = False
        if index < len(values) and values[index] in self.sub_commands:
            method = self.sub_commands[values[index]]
            sub_chosen = True
            index += 1
        else:
            method = self.main
        if method is None:
            return _Walk(None, sub_chosen, len(values) - index, None)

        candidates = (*method.options, *self.options)
        position = 0
        pending: Optional[OptionDescriptor] = None
        while index < len(values):
            value = values[index]
            index += 1
            if looks_like_option(value):
                opt = _find_option(candidates, _option_name(value))
                if opt is not None and not opt.is_flag and "=" not in value:
                    if index < len(values):
                        index += 1
                    else:
                        pending = opt
                continue
            position += 1
        return _Walk(method, sub_chosen, position, pending)


@dataclass(frozen=True, slots=True)
class _Walk:
    method: Optional[MethodDescriptor]
    sub_chosen: bool
    position: int
    pending_option: Optional[OptionDescriptor]


# ============================================================================
# Matches and invocation
# ============================================================================


@dataclass(frozen=True, slots=True)
class OptionMatch:
    option: OptionDescriptor
    values: tuple[Any, ...] = ()


@dataclass(frozen=True)
class CommandMatch:
    """Result of matching a line against a command's grammar."""

    descriptor: Union[MethodDescriptor, CommandDescriptor]
    options: tuple[OptionMatch, ...] = ()
    arguments: tuple[Any, ...] = ()
    rest: str = ""
    invoker: Optional["Invoker"] = None

    def has_option(self, name: str) -> bool:
        return any(name in match.option.names for match in self.options)


def _convert(raw: Any, value_type: type, label: str) -> Any:
    if not isinstance(raw, str) or value_type in (str, object):
        return raw
    if value_type is bool:
        lowered = raw.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise GrammarError(f"Invalid value '{raw}' for {label}: expected a boolean")
    try:
        return value_type(raw)
    except (TypeError, ValueError) as exc:
        raise GrammarError(
            f"Invalid value '{raw}' for {label}: expected {value_type.__name__}"
        ) from exc


class Invoker:
    """Runs one command method with values taken from a match."""

    def __init__(self, method: MethodDescriptor) -> None:
        self.method = method

    @property
    def name(self) -> str:
        return self.method.name

    @property
    def stage_types(self) -> StageTypes:
        return self.method.stage_types

    def invoke(
        self,
        owner: Any,
        match: CommandMatch,
        resolver: Callable[[type], Any],
    ) -> Any:
        """Call the method on ``owner``.

        Binding failures raise ``GrammarError``; anything the method body
        raises is wrapped in ``InvocationError``.
        """
        args, kwargs = self._bind(match, resolver)
        try:
            return self.method.function(owner, *args, **kwargs)
        except Exception as exc:
            raise InvocationError(f"{self.method.command_name} {self.method.name} failed") from exc

    def _bind(
        self,
        match: CommandMatch,
        resolver: Callable[[type], Any],
    ) -> tuple[list[Any], dict[str, Any]]:
        matched = {m.option.param: m for m in match.options if m.option.param}
        positional = list(match.arguments)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for binding in self.method.bindings:
            if binding.kind == "arguments":
                arg = self.method.argument_for(binding.param)
                args.extend(_convert(raw, arg.value_type, arg.name) for raw in positional)
                positional = []
                continue

            if binding.kind == "context":
                value = resolver(InteractionContext)
            elif binding.kind == "option":
                value = self._option_value(self.method.option_for(binding.param), matched.get(binding.param))
            else:
                arg = self.method.argument_for(binding.param)
                if positional:
                    raw = positional.pop(0)
                    value = (
                        [_convert(item, arg.value_type, arg.name) for item in [raw, *positional]]
                        if arg.multi
                        else _convert(raw, arg.value_type, arg.name)
                    )
                    if arg.multi:
                        positional = []
                elif arg.required:
                    raise GrammarError(f"Missing argument '{arg.name}'. Usage: {self.method.synopsis()}")
                else:
                    value = arg.default

            if binding.keyword_only:
                kwargs[binding.param] = value
            else:
                args.append(value)

        return args, kwargs

    @staticmethod
    def _option_value(opt: OptionDescriptor, match: Optional[OptionMatch]) -> Any:
        label = opt.spellings()[-1]
        if match is None:
            return list(opt.default) if opt.multi and opt.default else opt.default
        if opt.is_flag:
            return True if not match.values else _convert(match.values[-1], bool, label)
        if opt.multi:
            return [_convert(value, opt.value_type, label) for value in match.values]
        return _convert(match.values[-1], opt.value_type, label)


# ============================================================================
# Completion types
# ============================================================================


@dataclass(frozen=True, slots=True)
class CompletionMatch:
    """Completion candidates for the token under the cursor.

    ``candidates`` maps each suffix to append to whether it completes the
    token (the caller then closes the delimiter and adds a space).
    """

    delimiter: str = ""
    prefix: str = ""
    candidates: Mapping[str, bool] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.candidates


class Completer(Protocol):
    def complete_argument(self, arg: ArgumentDescriptor, prefix: str) -> Mapping[str, bool]:
        ...


# ============================================================================
# Tokenizing
# ============================================================================


@dataclass(frozen=True, slots=True)
class Token:
    value: str
    start: int
    end: int


def _lex(line: str, *, partial: bool, punctuation: str = "") -> tuple[list[Token], Optional[str]]:
    lexer = shlex.shlex(line, posix=True, punctuation_chars=punctuation)
    lexer.whitespace_split = True
    lexer.commenters = ""

    tokens: list[Token] = []
    position = 0
    while True:
        start = position
        while start < len(line) and line[start] in lexer.whitespace:
            start += 1
        try:
            value = lexer.get_token()
        except ValueError as exc:
            if not partial:
                raise GrammarError(f"Invalid command syntax: {exc}") from exc
            if lexer.state in lexer.escape:
                return _with_trailing_escape(line, punctuation)
            tokens.append(Token(lexer.token, start, len(line)))
            return tokens, lexer.state
        if value is None:
            return tokens, None
        # One delimiter has been read past the token unless the line ended.
        position = lexer.instream.tell() - (0 if lexer.state is None else 1)
        tokens.append(Token(value, start, position))


def _with_trailing_escape(line: str, punctuation: str) -> tuple[list[Token], Optional[str]]:
    tokens, quote = _lex(line[:-1], partial=True, punctuation=punctuation)
    if tokens and tokens[-1].end == len(line) - 1 and not _is_operator(line, tokens[-1], punctuation):
        last = tokens.pop()
        tokens.append(Token(last.value + "\\", last.start, len(line)))
    else:
        tokens.append(Token("\\", len(line) - 1, len(line)))
    return tokens, quote


def _is_operator(line: str, token: Token, punctuation: str) -> bool:
    return bool(punctuation and token.value) and (
        line[token.start:token.end] == token.value and not token.value.strip(punctuation)
    )


def tokenize(line: str, *, partial: bool = False) -> tuple[list[Token], Optional[str]]:
    """Split a line shell-style, keeping where each token starts.

    Returns the tokens and, when ``partial`` is set, the quote character
    left open at the end of the line (``None`` otherwise).
    """
    return _lex(line, partial=partial)


def split_pipeline(line: str, *, partial: bool = False) -> list[str]:
    """Split a line on every ``|`` that is not quoted or escaped.

    Segments are stripped unless ``partial`` is set; a partial line may also
    end inside a quote.
    """
    tokens, _ = _lex(line, partial=partial, punctuation="|")
    cuts = [
        token.start + offset
        for token in tokens
        if _is_operator(line, token, "|")
        for offset in range(len(token.value))
    ]
    bounds = [-1, *cuts, len(line)]
    segments = [line[begin + 1:end] for begin, end in zip(bounds, bounds[1:])]
    if partial:
        return segments
    return [segment.strip() for segment in segments]


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def looks_like_option(value: str) -> bool:
    return value.startswith("-") and len(value) > 1 and value != "--" and not _is_number(value)


def _option_name(raw: str) -> str:
    if raw.startswith("--"):
        return raw[2:].partition("=")[0]
    return raw[1:]


def _find_option(candidates: Sequence[OptionDescriptor], name: str) -> Optional[OptionDescriptor]:
    for opt in candidates:
        if name in opt.names:
            return opt
    return None


def _is_option_of(value: str, candidates: Sequence[OptionDescriptor]) -> bool:
    return looks_like_option(value) and _find_option(candidates, _option_name(value)) is not None


def _consume_option(
    tokens: Sequence[Token],
    index: int,
    candidates: Sequence[OptionDescriptor],
    collected: dict[tuple[str, ...], tuple[OptionDescriptor, list[Any]]],
) -> int:
    raw = tokens[index].value
    name = _option_name(raw)
    inline: Optional[str] = None
    if raw.startswith("--") and "=" in raw:
        inline = raw.partition("=")[2]

    opt = _find_option(candidates, name)
    if opt is None:
        raise GrammarError(f"Unknown option: {raw}")
    index += 1

    values: list[Any] = []
    if inline is not None:
        values.append(inline)
    elif not opt.is_flag:
        if index >= len(tokens):
            raise GrammarError(f"Option {raw} requires a value")
        values.append(tokens[index].value)
        index += 1

    if opt.names in collected and opt.multi:
        collected[opt.names][1].extend(values)
    else:
        collected[opt.names] = (opt, values)
    return index


def _skip_options(values: Sequence[str], index: int, candidates: Sequence[OptionDescriptor]) -> int:
    while index < len(values) and _is_option_of(values[index], candidates):
        opt = _find_option(candidates, _option_name(values[index]))
        index += 1
        if opt is not None and not opt.is_flag and "=" not in values[index - 1]:
            index += 1
    return index


def _option_matches(
    collected: Mapping[tuple[str, ...], tuple[OptionDescriptor, list[Any]]],
) -> tuple[OptionMatch, ...]:
    return tuple(OptionMatch(opt, tuple(values)) for opt, values in collected.values())


# ============================================================================
# Building descriptors from classes
# ============================================================================


def _value_type(hint: Any) -> tuple[type, bool]:
    if hint is None or hint is inspect.Parameter.empty:
        return str, False
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(members) == 1:
            return _value_type(members[0])
        return str, False
    if origin in (list, tuple, set, frozenset) or (
        inspect.isclass(origin) and issubclass(origin, Sequence) and origin is not str
    ):
        args = [arg for arg in get_args(hint) if arg is not Ellipsis]
        item = args[0] if args and inspect.isclass(args[0]) else str
        return item, True
    if inspect.isclass(hint):
        return hint, False
    return str, False


def _default_option_names(param: str) -> tuple[str, ...]:
    return (param.replace("_", "-"),)


def _is_context_hint(hint: Any) -> bool:
    hint = strip_optional(hint)
    origin = get_origin(hint) or hint
    return inspect.isclass(origin) and issubclass(origin, InteractionContext)


def build_method_descriptor(
    func: Callable[..., Any],
    name: str,
    meta: CommandMeta,
    command_name: str,
    class_options: tuple[OptionDescriptor, ...] = (HELP_OPTION,),
) -> MethodDescriptor:
    hints = get_type_hints(func)
    parameters = list(inspect.signature(func).parameters.values())[1:]

    options: list[OptionDescriptor] = []
    arguments: list[ArgumentDescriptor] = []
    bindings: list[Binding] = []

    for param in parameters:
        hint = hints.get(param.name, param.annotation)
        keyword_only = param.kind is inspect.Parameter.KEYWORD_ONLY
        info = param.default if isinstance(param.default, ParamInfo) else None
        if info is not None:
            default = info.default
        elif param.default is not inspect.Parameter.empty:
            default = param.default
        else:
            default = MISSING
        usage = info.usage if info is not None else ""

        if _is_context_hint(hint):
            bindings.append(Binding(param.name, "context", keyword_only))
            continue
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            raise TypeError(f"{func.__qualname__}: **{param.name} is not supported by the grammar")

        value_type, multi = _value_type(hint)
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            arguments.append(
                ArgumentDescriptor(param.name, usage, value_type, multi=True, required=False, default=())
            )
            bindings.append(Binding(param.name, "arguments"))
        elif keyword_only or (info is not None and info.kind == "option"):
            if default is MISSING:
                default = [] if multi else (False if value_type is bool else None)
            names = info.names if info is not None and info.names else _default_option_names(param.name)
            options.append(OptionDescriptor(names, param.name, usage, value_type, multi, default))
            bindings.append(Binding(param.name, "option", keyword_only))
        else:
            arguments.append(
                ArgumentDescriptor(
                    param.name,
                    usage,
                    value_type,
                    multi=multi,
                    required=default is MISSING,
                    default=None if default is MISSING else default,
                )
            )
            bindings.append(Binding(param.name, "argument"))

    stage_types = resolve_stage_types(
        func,
        consumes=meta.consumes,
        produces=meta.produces,
        hints=hints,
    )
    return MethodDescriptor(
        name=name,
        function=func,
        command_name=command_name,
        usage=meta.usage,
        man=meta.man,
        options=tuple(options),
        arguments=tuple(arguments),
        bindings=tuple(bindings),
        class_options=class_options,
        stage_types=stage_types,
    )


def build_command_descriptor(cls: type, name: str, usage: str = "", man: str = "") -> CommandDescriptor:
    """Build the grammar of a command class from its ``@command`` methods."""
    class_options = (HELP_OPTION,)
    methods: dict[str, MethodDescriptor] = {}
    for attr_name, func in inspect.getmembers(cls, inspect.isfunction):
        meta = getattr(func, COMMAND_META_ATTR, None)
        if meta is None:
            continue
        method_name = meta.name or attr_name
        methods[method_name] = build_method_descriptor(func, method_name, meta, name, class_options)
    return CommandDescriptor(name, usage, man, class_options, methods)
