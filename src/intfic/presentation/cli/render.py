"""Shared CLI rendering helpers."""
from __future__ import annotations

import os
import sys
import time
from typing import Callable, Sequence, TextIO

from intfic.domain.defs import ColorTag

ANSI_RESET = "\033[0m"
ANSI_COLORS = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "purple": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
}

TYPE_DELAY_SECONDS = 0.024
LINE_DELAY_SECONDS = 0.6

PROMPT_INDENT = "  "
PROMPT_COLOR: ColorTag = "cyan"


def debug_enabled() -> bool:
    """Return True only when INTFIC_DEBUG is explicitly set to '1'."""
    return os.getenv("INTFIC_DEBUG") == "1"


def colorize(text: str, color: ColorTag | None) -> str:
    """Wrap text in the ANSI sequence for ``color``; uncolored text is returned as-is."""
    code = ANSI_COLORS.get(color) if color else None
    if not code or not text:
        return text
    return f"{code}{text}{ANSI_RESET}"


class ConsoleOutput:
    """Paints story text to a terminal stream.

    A line that starts with two spaces is a prompt: it is preceded by a blank
    line and its uncolored runs are painted in cyan.

    In ``typewriter`` mode characters are written one at a time with a short
    pause, and each finished line pauses a little longer.
    """

    def __init__(
        self,
        *,
        text_mode: str = "instant",
        stream: TextIO | None = None,
        use_color: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._text_mode = text_mode
        self._stream = stream or sys.stdout
        self._use_color = use_color
        self._sleep = sleep
        self._at_line_start = True
        self._line_color: ColorTag | None = None

    def render(self, text: str, color: ColorTag | None) -> None:
        if self._at_line_start and color is None and text.startswith(PROMPT_INDENT):
            self._stream.write("\n")
            self._line_color = PROMPT_COLOR
        self._at_line_start = False
        color = color or self._line_color
        if self._text_mode != "typewriter":
            self._stream.write(self._paint(text, color))
            self._stream.flush()
            return
        for char in text:
            self._stream.write(self._paint(char, color))
            self._stream.flush()
            self._sleep(TYPE_DELAY_SECONDS)

    def end_line(self) -> None:
        self._stream.write("\n")
        self._stream.flush()
        self._at_line_start = True
        self._line_color = None
        if self._text_mode == "typewriter":
            self._sleep(LINE_DELAY_SECONDS)

    def _paint(self, text: str, color: ColorTag | None) -> str:
        return colorize(text, color) if self._use_color else text


def render_heading(title: str) -> None:
    """Print a consistent section heading."""
    print(f"\n=== {title} ===")


def render_choices(choices: Sequence[str]) -> None:
    """Display numbered story choices."""
    if not choices:
        return
    print()
    for idx, label in enumerate(choices, start=1):
        print(f"{idx}) {label}")
    print()
