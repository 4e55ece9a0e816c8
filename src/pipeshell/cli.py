"""CLI bootstrap entry point for pipeshell."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional, TextIO

from . import __version__
from .bridge import ProcessContext, ShellProcess
from .builtins import BUILTIN_COMMANDS
from .config import ShellSettings, default_settings, load_settings, map_path
from .constants import APP_NAME
from .errors import ConfigError
from .logging import build_run_log_path, log_event, sanitize_error_message, setup_logging
from .scripting import ScriptLoader
from .session import ShellSession
from .terminal import StreamSurface, TerminalProcessor, TerminalSurface, create_prompt_session

__all__ = ["build_session", "main", "run_command"]


def _map_cli_arg(path: Optional[str], arg_name: str) -> Optional[str]:
    """Map a CLI path argument; relative paths resolve against the working directory."""
    if path is None:
        return None
    try:
        return map_path(path, ".")
    except ConfigError as e:
        raise ConfigError(f"Invalid {arg_name} path: {e}") from e


def build_session(settings: ShellSettings, scripts_dir: Optional[str] = None) -> ShellSession:
    """Create a session with the built-in commands plus any script commands."""
    session = ShellSession(BUILTIN_COMMANDS)
    directory = scripts_dir or settings.scripts_dir
    if directory:
        session.register_all(ScriptLoader(directory).load())
    return session


def run_command(
    session: ShellSession,
    line: str,
    output: TextIO,
    errors: TextIO,
    input_stream: Optional[TextIO] = None,
) -> int:
    """Run one line without the interactive front end; returns the exit code."""
    surface = StreamSurface(output, input_stream)
    context = ProcessContext(line, surface)
    process = ShellProcess(session, line)
    process.execute(context)
    response = context.await_response()
    process.join()
    surface.finish_line()
    message = response.format()
    if message:
        print(message, file=errors)
    return response.exit_code


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the pipeshell CLI."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="pipeshell - interactive shell with typed command pipelines",
    )
    parser.add_argument("-p", "--profile", help="Path to a JSON profile file (optional)")
    parser.add_argument("-l", "--log", help="Path to log file (optional; logging is off without one)")
    parser.add_argument("-s", "--scripts", help="Directory of command scripts to load (optional)")
    parser.add_argument("-c", "--command", help="Run one command line and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args(argv)
    app_started = time.perf_counter()

    try:
        mapped_profile_path = _map_cli_arg(args.profile, "profile")
        mapped_log_path = _map_cli_arg(args.log, "log")
        mapped_scripts_dir = _map_cli_arg(args.scripts, "scripts")

        settings = load_settings(mapped_profile_path) if mapped_profile_path else default_settings()
        effective_log_path = mapped_log_path or settings.log_file
        if effective_log_path is None and mapped_profile_path:
            effective_log_path = build_run_log_path(settings.logs_dir)
        setup_logging(effective_log_path)

        session = build_session(settings, mapped_scripts_dir)
        log_event(
            "session_start",
            level=logging.INFO,
            profile_file=mapped_profile_path,
            log_file=effective_log_path,
            scripts_dir=mapped_scripts_dir or settings.scripts_dir,
            command_count=len(session.command_names()),
        )

        if args.command is not None:
            exit_code = run_command(session, args.command, sys.stdout, sys.stderr, sys.stdin)
            log_event(
                "session_end",
                level=logging.INFO,
                reason="command",
                exit_code=exit_code,
                uptime_ms=round((time.perf_counter() - app_started) * 1000, 1),
            )
            sys.exit(exit_code)

        prompt_session = create_prompt_session(session, settings.history_file)
        surface = TerminalSurface(prompt_session)
        welcome = (
            f"{APP_NAME} {__version__}. Type 'help' for commands, 'exit' to quit."
            if settings.welcome
            else None
        )
        try:
            TerminalProcessor(session, prompt_session, surface, settings.prompt).run(welcome)
        finally:
            surface.close()

    except KeyboardInterrupt:
        log_event(
            "session_end",
            level=logging.INFO,
            reason="keyboard_interrupt",
            uptime_ms=round((time.perf_counter() - app_started) * 1000, 1),
        )
        print("\nInterrupted")
        sys.exit(0)
    except Exception as e:
        message = sanitize_error_message(str(e))
        print(f"Error: {message}", file=sys.stderr)
        log_event(
            "session_end",
            level=logging.ERROR,
            reason="fatal_error",
            error_type=type(e).__name__,
            error=message,
            uptime_ms=round((time.perf_counter() - app_started) * 1000, 1),
        )
        logging.error("Fatal error: %s", e, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
