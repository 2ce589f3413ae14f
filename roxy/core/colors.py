"""
ANSI color helpers for the interactive terminal.
Colors only apply when the target stream (stdout unless given) is a TTY.
"""
import sys
from typing import Optional, TextIO


class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    MAGENTA = "\033[35m"

    BRIGHT_GREEN = "\033[92m"
    BRIGHT_BLUE = "\033[94m"


def is_tty(stream: Optional[TextIO] = None) -> bool:
    stream = stream if stream is not None else sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def colorize(text: str, color: str, bold: bool = False, stream: Optional[TextIO] = None) -> str:
    """Wrap text in a color code when writing to a terminal."""
    if not is_tty(stream):
        return text
    prefix = Colors.BOLD if bold else ""
    return f"{prefix}{color}{text}{Colors.RESET}"


def dim(text: str, stream: Optional[TextIO] = None) -> str:
    if not is_tty(stream):
        return text
    return f"{Colors.DIM}{text}{Colors.RESET}"


def success(text: str, stream: Optional[TextIO] = None) -> str:
    return colorize(text, Colors.GREEN, stream=stream)


def error(text: str, stream: Optional[TextIO] = None) -> str:
    return colorize(text, Colors.RED, bold=True, stream=stream)


def warning(text: str, stream: Optional[TextIO] = None) -> str:
    return colorize(text, Colors.YELLOW, stream=stream)


def tool(text: str, stream: Optional[TextIO] = None) -> str:
    """Tool names in tool-result notices."""
    return colorize(text, Colors.MAGENTA, stream=stream)


def prompt(text: str) -> str:
    return colorize(text, Colors.BRIGHT_BLUE, bold=True)


def agent_prompt(text: str) -> str:
    return colorize(text, Colors.BRIGHT_GREEN, bold=True)
