"""Terminal colouring shared by the API banner and the CLI client."""

from enum import Enum
from typing import Any


class AnsiColors(Enum):
    """Foreground colour escapes."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    GREY = "\033[90m"


RESET = "\033[0m"

# Plan step status -> colour used when the CLI reports a transition
STATUS_COLORS = {
    "pending": AnsiColors.GREY,
    "active": AnsiColors.YELLOW,
    "completed": AnsiColors.GREEN,
    "failed": AnsiColors.RED,
}


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """``print`` *text* wrapped in *color*; extra arguments go to ``print`` unchanged."""
    print(f"{color.value}{text}{RESET}", *args, **kwargs)


def status_color(status: str) -> AnsiColors:
    return STATUS_COLORS.get(status, AnsiColors.BLUE)
