"""Shared terminal drawing helpers."""

from __future__ import annotations

import curses
import unicodedata
from typing import Iterator

ART = (
    ":::::::  :::::::  :::::    :::::::      ::   ::    ::     ::: :::  :::::::  :::::::",
    "+:       +:   :+  +:  :+   +:           +:+  :+   +: :+   +:: :+:  +:       +:     ",
    "#+       #+   +#  #+   +#  #+#+#+#      #+#+ +#  #+#+#+#  #+ + #+  #+#+#+#  #+#+#+#",
    "#+       #+   +#  #+  +#   #+           #+ +#+#  #+   +#  #+   #+  #+            +#",
    "#######  #######  #####    ####***      ##   ##  ##   ##  ##   ##  #######  #######",
)

INVALID_TOKEN_MESSAGE = "Token is invalid or expired"
PRESS_KEY_MESSAGE = "Press any key to continue..."


def _display_width(text: str) -> int:
    return sum(
        2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in text
    )


def _quiet(func, *args) -> None:
    """Call a curses function, ignoring drawing and setup errors."""
    try:
        func(*args)
    except curses.error:
        pass


def centered_x(width: int, text: str) -> int:
    """Column at which ``text`` starts when centred in ``width`` columns."""
    return max(0, (width - _display_width(text)) // 2)


def border_cells(height: int, width: int) -> Iterator[tuple[int, int, str]]:
    """Yield ``(y, x, char)`` for every cell of a box outline."""
    if height <= 0 or width <= 0:
        return
    last_y, last_x = height - 1, width - 1
    for y in range(height):
        for x in range(width):
            on_row = y in (0, last_y)
            on_col = x in (0, last_x)
            if on_row and on_col:
                yield y, x, "+"
            elif on_row:
                yield y, x, "-"
            elif on_col:
                yield y, x, "|"


def draw_border(win) -> None:
    height, width = win.getmaxyx()
    for y, x, ch in border_cells(height, width):
        _quiet(win.addch, y, x, ch)


def draw_art(win, y: int, x: int) -> None:
    for offset, line in enumerate(ART):
        _quiet(win.addstr, y + offset, x, line)


def show_invalid_token(stdscr) -> None:
    """Show a boxed expired-token warning and wait for a key."""
    _quiet(curses.noecho)
    _quiet(curses.curs_set, 0)
    stdscr.keypad(True)

    max_y, max_x = stdscr.getmaxyx()
    box_height, box_width = 7, 40
    top = (max_y - box_height) // 2
    left = (max_x - box_width) // 2
    for y, x, ch in border_cells(box_height, box_width):
        _quiet(stdscr.addch, top + y, left + x, ch)

    middle = top + box_height // 2
    _quiet(stdscr.addstr, middle - 1, left + centered_x(box_width, INVALID_TOKEN_MESSAGE),
           INVALID_TOKEN_MESSAGE)
    _quiet(stdscr.addstr, middle + 1, left + centered_x(box_width, PRESS_KEY_MESSAGE),
           PRESS_KEY_MESSAGE)
    stdscr.refresh()
    stdscr.getch()