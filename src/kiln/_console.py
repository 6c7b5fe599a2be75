"""Console output — timestamped, colour-aware log lines on stderr.

Detects ``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
import time


# ---------------------------------------------------------------------------
# ANSI helpers: respect NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


COLOR = _supports_color()

RESET = "\033[0m" if COLOR else ""
BOLD = "\033[1m" if COLOR else ""
DIM = "\033[2m" if COLOR else ""
RED = "\033[31m" if COLOR else ""
GREEN = "\033[32m" if COLOR else ""
YELLOW = "\033[33m" if COLOR else ""
CYAN = "\033[36m" if COLOR else ""
MAGENTA = "\033[35m" if COLOR else ""
ORANGE = "\033[38;5;208m" if COLOR else ""
BG_RED = "\033[41;97m" if COLOR else ""


def _stamp() -> str:
    return f"{DIM}[{time.strftime('%H:%M:%S')}]{RESET}"


def log(message: str) -> None:
    """Print a ``[HH:MM:SS] message`` line to stderr."""
    print(f"{_stamp()} {message}", file=sys.stderr)


def log_error(message: str) -> None:
    """Print an error line with a red background marker."""
    print(f"{_stamp()} {BG_RED} ERROR {RESET} {RED}{message}{RESET}", file=sys.stderr)


def log_warning(message: str) -> None:
    """Print a warning line."""
    print(f"{_stamp()} {YELLOW}!{RESET} {message}", file=sys.stderr)


def plural(count: int, word: str) -> str:
    """``1 file`` / ``3 files``."""
    return f"{count} {word}" if count == 1 else f"{count} {word}s"
