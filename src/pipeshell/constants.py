"""Application-level constants for pipeshell.

This module keeps only cross-cutting app/file/terminal constants.
"""

# ============================================================================
# Application identity
# ============================================================================

APP_NAME = "pipeshell"

# ============================================================================
# Default directories and paths
# ============================================================================

# User data directory (created in home directory)
USER_DATA_DIR = f"~/.{APP_NAME}"

# REPL command history file
REPL_HISTORY_FILE = f"{USER_DATA_DIR}/history"

DEFAULT_LOGS_DIR = f"{USER_DATA_DIR}/logs"

LOG_FILE_EXTENSION = ".log"
SCRIPT_FILE_EXTENSION = ".py"

DATETIME_FORMAT_FILENAME = "%Y-%m-%d_%H-%M-%S"

# ============================================================================
# Shell behavior
# ============================================================================

DEFAULT_PROMPT = "% "

# Option names that request usage instead of running a command.
HELP_OPTION_NAMES = ("h", "help")

# Method name used when a line names no sub-command.
MAIN_METHOD = "main"

EXIT_COMMANDS = frozenset(("exit", "quit"))

# ============================================================================
# Terminal escape sequences
# ============================================================================

CSI = "\033["
ERASE_LINE = "K"
CURSOR_HOME = "1;1H"
# Full-screen erase. Never emitted: it also wipes the terminal's scrollback.
ERASE_SCREEN = "2J"

DEFAULT_TERMINAL_WIDTH = 80
DEFAULT_TERMINAL_HEIGHT = 24
