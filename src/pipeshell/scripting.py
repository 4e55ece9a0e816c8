"""Load user command scripts from a directory."""

from __future__ import annotations

import importlib.util
import inspect
import logging
import re
import sys
from pathlib import Path
from types import ModuleType

from .command import ShellCommand
from .constants import SCRIPT_FILE_EXTENSION
from .errors import ScriptError, ScriptFailure
from .logging import log_event, sanitize_error_message

_MODULE_NAME_RE = re.compile(r"\W")


class ScriptLoader:
    """Find ``*.py`` scripts and collect the ``ShellCommand`` classes they define.

    Every script sees ``ScriptFailure`` as a global without importing it.
    """

    def __init__(self, scripts_dir: str | Path) -> None:
        self.scripts_dir = Path(scripts_dir)

    def discover(self) -> list[Path]:
        if not self.scripts_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.scripts_dir.glob(f"*{SCRIPT_FILE_EXTENSION}")
            if path.is_file() and not path.name.startswith("_")
        )

    def load_module(self, path: Path) -> ModuleType:
        module_name = f"pipeshell_script_{_MODULE_NAME_RE.sub('_', path.stem)}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ScriptError(f"Failed to load module spec from {path}")
        module = importlib.util.module_from_spec(spec)
        module.ScriptFailure = ScriptFailure  # type: ignore[attr-defined]
        sys.modules[spec.name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(spec.name, None)
            raise
        return module

    @staticmethod
    def commands_in(module: ModuleType) -> list[type[ShellCommand]]:
        found: list[type[ShellCommand]] = []
        for value in vars(module).values():
            if (
                inspect.isclass(value)
                and issubclass(value, ShellCommand)
                and value.__module__ == module.__name__
            ):
                # Builds the grammar now so a broken signature fails the load.
                if value.descriptor().methods:
                    found.append(value)
        return found

    def load(self) -> list[type[ShellCommand]]:
        """Load every script; scripts that fail to load are logged and skipped."""
        commands: list[type[ShellCommand]] = []
        for path in self.discover():
            try:
                loaded = self.commands_in(self.load_module(path))
            except Exception as error:
                log_event(
                    "script_load_failed",
                    level=logging.WARNING,
                    script=path,
                    error_type=type(error).__name__,
                    error=sanitize_error_message(str(error)),
                )
                logging.warning("Could not load script %s: %s", path, error, exc_info=True)
                continue
            log_event(
                "script_loaded",
                script=path,
                commands=[command_cls.command_name() for command_cls in loaded],
            )
            commands.extend(loaded)
        return commands
