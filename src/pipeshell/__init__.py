"""pipeshell: typed command pipelines for an embedded interactive shell."""

from .chunks import CLEAR, Color, ScreenClear, Style, Text
from .command import ShellCommand, argument, command, option
from .context import ContextStack, InteractionContext
from .errors import (
    CancelledError,
    CommandSyntaxError,
    NoActiveInvocationError,
    ResolutionError,
    ScriptError,
    ScriptFailure,
    ShellError,
)
from .pipe import PipeCommand
from .pipeline import Pipeline
from .response import ShellResponse
from .session import DescriptionFormat, ShellSession
from .stages import HelpStage, PipelineStage, PipeStage, SinkStage

__version__ = "0.1.0"

__all__ = [
    "CLEAR",
    "CancelledError",
    "Color",
    "CommandSyntaxError",
    "ContextStack",
    "DescriptionFormat",
    "HelpStage",
    "InteractionContext",
    "NoActiveInvocationError",
    "PipeCommand",
    "PipeStage",
    "Pipeline",
    "PipelineStage",
    "ResolutionError",
    "ScreenClear",
    "ScriptError",
    "ScriptFailure",
    "ShellCommand",
    "ShellError",
    "ShellResponse",
    "ShellSession",
    "SinkStage",
    "Style",
    "Text",
    "argument",
    "command",
    "option",
]
