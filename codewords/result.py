"""End-of-game screen and the request that records the result."""

from __future__ import annotations

import curses
import logging
import time

from .game_screen import _pair
from .game_state import Result
from .protocol import Scene
from .ui import _display_width, _quiet, draw_border

RECV_SIZE = 255
ENTER_PROMPT = "Enter"
POLL_SECONDS = 0.1

_BANNERS = {
    Result.WIN: "Y O U   W I N !",
    Result.LOSE: "Y O U   L O S E !",
}
_OUTCOMES = {Result.WIN: "WIN", Result.LOSE: "LOSS"}
_WINNERS = {0: "빨간 팀이 이겼습니다", 1: "파란 팀이 이겼습니다"}
_WINNER_COLORS = {0: 2, 1: 3}
_EXIT_KEYS = (ord("q"), 10, 13)
_COLOR_PAIRS = (
    (1, curses.COLOR_YELLOW, curses.COLOR_BLACK),
    (2, curses.COLOR_RED, curses.COLOR_BLACK),
    (3, curses.COLOR_BLUE, curses.COLOR_BLACK),
)

log = logging.getLogger(__name__)


def _centered(width: int, text: str) -> int:
    return (width - _display_width(text)) // 2


def result_banner(result) -> str:
    """Large headline for the player's own result."""
    return _BANNERS.get(result, "")


def winner_message(winner_team: int) -> str:
    """Sentence naming the winning team, or empty for an unknown team."""
    return _WINNERS.get(winner_team, "")


def format_result_request(token: str, result) -> str:
    """Request that records the player's result on the game channel."""
    outcome = _OUTCOMES.get(result)
    if outcome is None:
        raise ValueError(f"not a game result: {result!r}")
    return f"RESULT|{token}|{outcome}"


def send_game_result(link, token: str, result) -> Scene:
    """Report the result and return the scene to go to next."""
    try:
        request = format_result_request(token, result)
    except ValueError:
        return Scene.ERROR
    try:
        link.sendall(request.encode("utf-8"))
        data = link.recv(RECV_SIZE)
    except OSError as exc:
        log.error("result request failed: %s", exc)
        return Scene.ERROR
    if not data:
        log.error("connection closed before the result was acknowledged")
        return Scene.ERROR
    reply = data.decode("utf-8", errors="replace")
    if reply == "INVALID_TOKEN":
        link.close()
        return Scene.INVALID_TOKEN
    if reply == "ERROR":
        link.close()
        return Scene.ERROR
    log.info("Response from server: %s", reply)
    return Scene.MAIN


def draw_result(win, red_score: int, blue_score: int, result, winner_team: int) -> None:
    """Draw the banner, the winning team, both scores and the prompt."""
    max_y, max_x = win.getmaxyx()

    banner = result_banner(result)
    _quiet(win.addstr, max_y // 8, _centered(max_x, banner), banner, _pair(1))

    message = winner_message(winner_team)
    if message:
        _quiet(win.addstr, max_y // 3, _centered(max_x, message), message,
               _pair(_WINNER_COLORS[winner_team]))

    red_text = f"RED TEAM : {red_score}"
    blue_text = f"BLUE TEAM : {blue_score}"
    score_y = max_y // 2
    score_x = _centered(max_x, red_text)
    _quiet(win.addstr, score_y, score_x, red_text, _pair(2))
    _quiet(win.addstr, score_y + 1, score_x, blue_text, _pair(3))

    _quiet(win.addstr, max_y // 4 * 3, _centered(max_x, ENTER_PROMPT), ENTER_PROMPT, 0)


def _debug_line(win, message: str) -> None:
    max_y, max_x = win.getmaxyx()
    _quiet(win.addstr, max_y - 2, 2, f"DEBUG: {message:<{max(max_x - 4, 0)}}", _pair(1))
    win.refresh()


def result_screen(stdscr, red_score: int, blue_score: int, result, winner_team: int) -> Scene:
    """Show the final result until the player presses Enter or q."""
    _quiet(curses.cbreak)
    _quiet(curses.noecho)
    _quiet(curses.curs_set, 0)
    _quiet(curses.start_color)
    for number, fg, bg in _COLOR_PAIRS:
        _quiet(curses.init_pair, number, fg, bg)
    stdscr.keypad(True)

    def paint() -> None:
        stdscr.erase()
        draw_border(stdscr)
        draw_result(stdscr, red_score, blue_score, result, winner_team)
        stdscr.refresh()

    stdscr.clear()
    paint()
    stdscr.nodelay(True)

    while True:
        key = stdscr.getch()
        if key == curses.KEY_RESIZE:
            _quiet(curses.update_lines_cols)
            paint()
            continue
        if key != -1:
            _debug_line(stdscr, f"입력 감지: ch = {key}")
            if key in _EXIT_KEYS:
                break
        time.sleep(POLL_SECONDS)

    stdscr.nodelay(False)
    return Scene.MAIN