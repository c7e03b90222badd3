"""
ANSI colors for console log output.

Colors are disabled when stdout is not a TTY, when ``NO_COLOR`` is set
(https://no-color.org/), or when ``TRANSLATE_MS_NO_COLOR=1``.
"""
from __future__ import annotations

import os
import sys


class Colors:
    """ANSI escape sequences. Always close with RESET."""
    RESET = "\033[0m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


def supports_color() -> bool:
    """Return True when ANSI colors should be written to stdout."""
    if os.getenv("TRANSLATE_MS_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False
    return True


# Re-evaluated by configure_logging(); tests may flip it directly.
USE_COLORS = supports_color()


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "WARNING": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
}


def get_tag_color(tag: str) -> str:
    """Color for a log tag such as INFO or FAIL."""
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)
