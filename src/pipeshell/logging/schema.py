"""Preferred key order for structured log events."""

from __future__ import annotations

DEFAULT_EVENT_KEY_ORDER: tuple[str, ...] = (
    "ts_utc",
    "level",
    "logger",
    "ts",
    "message",
)

EVENT_KEY_ORDER: dict[str, tuple[str, ...]] = {
    "session_start": (
        "ts_utc",
        "level",
        "logger",
        "ts",
        "profile_file",
        "log_file",
        "scripts_dir",
        "command_count",
    ),
    "command_resolved": (
        "ts_utc",
        "level",
        "logger",
        "ts",
        "command",
        "stage",
        "consumed_type",
        "produced_type",
    ),
    "line_processed": (
        "ts_utc",
        "level",
        "logger",
        "ts",
        "line",
        "status",
        "kind",
        "elapsed_ms",
        "error",
    ),
    "completion_failed": (
        "ts_utc",
        "level",
        "logger",
        "ts",
        "command",
        "line",
        "error_type",
        "error",
    ),
    "style_write_failed": (
        "ts_utc",
        "level",
        "logger",
        "ts",
        "error_type",
        "error",
    ),
}
