"""Terminal helpers shared by the API launcher and the CLI shell."""

import sys
from enum import Enum
from typing import (
    Any,
    TextIO,
)

_RESET = "\033[0m"


class AnsiColors(Enum):
    """ANSI color codes for terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"


def paint(text: str, color: AnsiColors, stream: TextIO | None = None) -> str:
    """Wrap *text* in *color* when *stream* (stdout by default) is a terminal."""
    stream = stream or sys.stdout
    if not stream.isatty():
        return text
    return f"{color.value}{text}{_RESET}"


def colored_print(text: str, color: AnsiColors, **kwargs: Any) -> None:
    """print() *text* in *color*; keyword arguments go to print()."""
    print(paint(text, color, kwargs.get("file")), **kwargs)
