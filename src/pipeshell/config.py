"""Shell settings: profile loading and path mapping."""

from __future__ import annotations

import json
import re
import unicodedata
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from .constants import DEFAULT_LOGS_DIR, DEFAULT_PROMPT, REPL_HISTORY_FILE
from .errors import ConfigError

_WINDOWS_DRIVE_RELATIVE_RE = re.compile(r"^[A-Za-z]:[^/\\]")
_PATH_FIELDS = ("history_file", "log_file", "logs_dir", "scripts_dir")


class ShellSettings(BaseModel):
    """Runtime settings for one interactive shell."""

    model_config = ConfigDict(extra="forbid")

    prompt: str = DEFAULT_PROMPT
    history_file: str | None = REPL_HISTORY_FILE
    log_file: str | None = None
    logs_dir: str = DEFAULT_LOGS_DIR
    scripts_dir: str | None = None
    welcome: bool = True


def _runtime_app_root() -> Path:
    return Path(__file__).resolve().parent


def _is_windows_rooted_not_qualified(path: str) -> bool:
    if _WINDOWS_DRIVE_RELATIVE_RE.match(path):
        return True
    return path.startswith("\\") and not path.startswith("\\\\")


def map_path(path: str, profile_dir: str | Path | None = None) -> str:
    """Resolve a path string to an absolute path string.

    ~ or ~/...  -> user home directory
    @ or @/...  -> runtime app root (package directory)
    Absolute    -> used as-is
    Relative    -> resolved relative to profile_dir if given; error otherwise
    """
    normalized = unicodedata.normalize("NFC", path)
    if "\0" in normalized:
        raise ConfigError("Path cannot contain NUL bytes")

    if _is_windows_rooted_not_qualified(normalized):
        raise ConfigError(
            f"Invalid path: {path}. Windows rooted path must be fully qualified."
        )

    if normalized.startswith("@"):
        suffix = re.sub(r"[\\/]+", "/", normalized[1:]).lstrip("/")
        result = (_runtime_app_root() / suffix) if suffix else _runtime_app_root()
        return str(result.resolve())

    candidate = Path(re.sub(r"[\\/]+", "/", normalized)).expanduser()
    if candidate.is_absolute():
        return str(candidate.resolve())

    if profile_dir is not None:
        return str((Path(profile_dir) / candidate).resolve())

    raise ConfigError(
        "Relative paths are not supported here. "
        "Use an absolute path or start with '~/' or '@/'."
    )


def _map_path_fields(data: dict[str, Any], profile_dir: Path | None) -> dict[str, Any]:
    mapped = dict(data)
    for field_name in _PATH_FIELDS:
        value = mapped.get(field_name)
        if isinstance(value, str) and value:
            mapped[field_name] = map_path(value, profile_dir)
    return mapped


def default_settings() -> ShellSettings:
    """Return settings with every default path mapped to an absolute path."""
    return ShellSettings.model_validate(
        _map_path_fields(ShellSettings().model_dump(), None)
    )


def load_settings(path: str | Path) -> ShellSettings:
    """Load settings from a JSON profile file.

    Relative paths inside the profile resolve against the profile's directory.
    """
    profile_path = Path(path)
    try:
        text = profile_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read profile {profile_path}: {exc}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in profile {profile_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("Profile must be a JSON object")

    try:
        settings = ShellSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid profile {profile_path}: {exc}") from exc

    mapped = _map_path_fields(settings.model_dump(), profile_path.resolve().parent)
    return ShellSettings.model_validate(mapped)
