"""Lobby: the player's record, nickname editing and random matching."""

from __future__ import annotations

import curses
import enum
import logging
import select
import threading
import time
from typing import Optional

from .game_screen import GameScreen, _pair
from .game_state import GameState, LineBuffer
from .protocol import (
    ProtocolError,
    Scene,
    _atoi,
    match_progress,
    parse_game_init,
    parse_nickname_check,
    parse_nickname_edit_response,
    parse_user_info,
)
from .ui import _display_width, _quiet, draw_art, draw_border
from .waiting import TaskStatus, WaitingResult, WaitingScreen

LOBBY_MAX_INPUT = 32
RECV_SIZE = 255
MATCH_RECV_SIZE = 1023
CANCEL_RECV_SIZE = 127
ART_WIDTH = 83
ART_LINES = 5
NICK_LABEL = "닉네임 : "
EDIT_BUTTON = "[닉네임 수정]"
MATCH_BUTTON = "[ 랜덤 매칭 시작 ]"
MSG_TAKEN = "이미 사용 중인 닉네임입니다."
MSG_EDITED = "닉네임이 성공적으로 수정되었습니다."
MSG_PENDING = "엔터 혹은 [닉네임 수정] 버튼을 선택하여야 닉네임이 수정됩니다."

ACTION_QUIT = "quit"
ACTION_MATCH = "match"
ACTION_EDIT = "edit"
ACTION_ESCAPE = "escape"

_ENTER_KEYS = (10, curses.KEY_ENTER)
_BACKSPACE_KEYS = (127, curses.KEY_BACKSPACE)
_STOP_POLL = 0.2
_STOP_GRACE = 1.0

_AVAILABLE = parse_nickname_check("NICKNAME_AVAILABLE")
_TAKEN = parse_nickname_check("NICKNAME_TAKEN")
_EDIT_OK = parse_nickname_edit_response("NICKNAME_EDIT_OK")
_EDIT_INVALID = parse_nickname_edit_response("INVALID_TOKEN")

log = logging.getLogger(__name__)


def _receive(link, size: int) -> str:
    data = link.recv(size)
    if not data:
        raise ConnectionError("server closed the connection")
    return data.decode("utf-8", errors="replace")


def fetch_user_info(link, token: str):
    """Authenticate with the token and return the player's record."""
    link.sendall(f"TOKEN|{token}".encode("utf-8"))
    reply = _receive(link, RECV_SIZE)
    if reply == "INVALID_TOKEN":
        raise PermissionError("token is invalid or expired")
    if reply == "ERROR":
        raise ProtocolError("server reported an error")
    return parse_user_info(reply)


def check_nickname(link, nickname: str):
    """Ask whether ``nickname`` is free."""
    link.sendall(f"CHECK_NICKNAME|{nickname}".encode("utf-8"))
    return parse_nickname_check(_receive(link, RECV_SIZE))


def edit_nickname(link, token: str, nickname: str):
    """Ask the account service to rename the player."""
    link.sendall(f"EDIT_NICK|{token}|{nickname}".encode("utf-8"))
    return parse_nickname_edit_response(_receive(link, RECV_SIZE))


def cancel_matching(link, token: str) -> bool:
    """Leave the waiting queue; True when the server confirms."""
    link.sendall(f"MATCHING_CANCEL|{token}".encode("utf-8"))
    return _receive(link, CANCEL_RECV_SIZE).strip() == "CANCEL_OK"


def wait_for_match(link, token: str, nickname: str, status, screen):
    """Join the queue and follow it until the game starts.

    Returns the game's seating, or None when matching failed.
    """
    screen.set_message("매칭 대기 중...")
    link.sendall(f"CMD|QUERY_WAIT|{token}".encode("utf-8"))
    lines = LineBuffer()
    info = None

    def fail(message: str) -> None:
        screen.set_message(message)
        status.update(100, True, False)

    while True:
        try:
            data = link.recv(MATCH_RECV_SIZE)
        except OSError:
            data = b""
        if not data:
            fail("서버 응답 없음")
            return None
        for line in lines.feed(data):
            if line.startswith("WAIT_REPLY|"):
                status.update(match_progress(_atoi(line[len("WAIT_REPLY|"):])), False, False)
            elif line == "QUEUE_FULL":
                status.update(90, False, False)
                screen.set_cancel_enabled(False)
                link.sendall(b"READY_TO_GO\n")
                screen.set_message("모든 유저 준비 중...")
            elif line.startswith("GAME_INIT|"):
                try:
                    info = parse_game_init(line, nickname)
                except (ProtocolError, ValueError):
                    info = None
                if info is None:
                    fail("게임 정보 파싱 실패")
                    return None
                link.sendall(b"READY_TO_GO\n")
                screen.set_message("게임 준비 완료. 대기 중...")
            elif line.startswith("GAME_START|"):
                if info is None:
                    fail("게임 정보 파싱 실패")
                    return None
                link.sendall(f"SESSION_READY|{token}\n".encode("utf-8"))
                screen.set_message("🎮 게임 시작 준비 중...")
                status.update(100, True, True)
                return info


class LobbyField(enum.Enum):
    NICKNAME_INPUT = enum.auto()
    NICKNAME_EDIT_BUTTON = enum.auto()
    MATCH_BUTTON = enum.auto()


def _key_code(key) -> int:
    if isinstance(key, str):
        return ord(key) if len(key) == 1 else -1
    return key


class LobbyForm:
    """Focus, nickname input and feedback state of the lobby."""

    def __init__(self, nickname: str = "") -> None:
        self.field = LobbyField.MATCH_BUTTON
        self.nickname = nickname[:LOBBY_MAX_INPUT - 1]
        self.edit_pending = False
        self.modified = False
        self.touched = False
        self.availability = None
        self.edit_result = None

    def handle_key(self, key) -> Optional[str]:
        """Apply one key; return an action for the caller, if any."""
        code = _key_code(key)
        if code == ord("q"):
            return ACTION_QUIT
        field = self.field

        if code == curses.KEY_UP and field is LobbyField.MATCH_BUTTON:
            self.field = LobbyField.NICKNAME_INPUT
            self.touched = True
            return None
        if code in (curses.KEY_UP, curses.KEY_DOWN):
            if field in (LobbyField.NICKNAME_INPUT, LobbyField.NICKNAME_EDIT_BUTTON):
                self.field = LobbyField.MATCH_BUTTON
            return None
        if code == curses.KEY_LEFT:
            if field is LobbyField.NICKNAME_EDIT_BUTTON:
                self.field = LobbyField.NICKNAME_INPUT
            return None
        if code == curses.KEY_RIGHT:
            if field is LobbyField.NICKNAME_INPUT:
                self.field = LobbyField.NICKNAME_EDIT_BUTTON
            return None
        if code in _ENTER_KEYS:
            return ACTION_MATCH if field is LobbyField.MATCH_BUTTON else ACTION_EDIT
        if code in _BACKSPACE_KEYS:
            if field is LobbyField.NICKNAME_INPUT and self.nickname:
                self.nickname = self.nickname[:-1]
            return None

        self.touched = True
        if code == 27:
            return ACTION_ESCAPE
        if 32 <= code <= 126:
            self.edit_pending = True
            self.modified = False
            if (field is LobbyField.NICKNAME_INPUT
                    and len(self.nickname) < LOBBY_MAX_INPUT - 1):
                self.nickname += chr(code)
        return None

    def draw(self, win, info) -> None:
        """Draw logo, nickname row, feedback, record, win rate and match button."""
        editing = self.field is LobbyField.NICKNAME_INPUT
        _quiet(curses.curs_set, 1 if editing else 0)
        max_y, max_x = win.getmaxyx()
        win.erase()
        draw_border(win)

        logo_x = (max_x - ART_WIDTH) // 2
        logo_y = (max_y - ART_LINES - 8) // 4
        draw_art(win, logo_y, logo_x)

        input_x = logo_x + 18
        input_y = logo_y + ART_LINES + 4
        value_x = input_x + _display_width(NICK_LABEL)

        at_match = self.field is LobbyField.MATCH_BUTTON
        if (at_match and self.modified) or self.edit_pending:
            _quiet(win.addstr, input_y, input_x, NICK_LABEL, 0)
            _quiet(win.addstr, input_y, value_x, self.nickname, 0)
        elif at_match and not self.touched:
            _quiet(win.addstr, input_y, input_x, f"{NICK_LABEL}{info.nickname}", 0)
        else:
            _quiet(win.addstr, input_y, input_x, NICK_LABEL, 0)
            _quiet(win.addstr, input_y, value_x,
                   f"{self.nickname:<{LOBBY_MAX_INPUT}}", 0)

        button_attr = (curses.A_REVERSE
                       if self.field is LobbyField.NICKNAME_EDIT_BUTTON else 0)
        _quiet(win.addstr, input_y, input_x + 39, EDIT_BUTTON, button_attr)

        if self.availability is not None and self.availability == _TAKEN:
            _quiet(win.addstr, input_y + 1, input_x + 8, MSG_TAKEN, _pair(1))
        elif self.edit_result is not None and self.edit_result == _EDIT_OK:
            _quiet(win.addstr, input_y + 1, input_x + 8, MSG_EDITED, _pair(2))
            self.edit_pending = False
            self.touched = False
        elif self.touched:
            _quiet(win.addstr, input_y + 1, input_x + 8, MSG_PENDING, _pair(2))

        record = f"전적: 승 {info.wins} / 패 {info.losses}"
        _quiet(win.addstr, input_y + 5, (max_x - _display_width(record)) // 2, record, 0)

        total = info.wins + info.losses
        rate = info.wins / total * 100.0 if total > 0 else 0.0
        rate_line = f"승률: {rate:.2f}%"
        _quiet(win.addstr, input_y + 9, (max_x - _display_width(rate_line)) // 2 - 2,
               rate_line, 0)

        match_attr = curses.A_REVERSE if at_match else 0
        _quiet(win.addstr, input_y + 13, (max_x - _display_width(MATCH_BUTTON)) // 2,
               MATCH_BUTTON, match_attr)

        win.refresh()
        if editing:
            _quiet(win.move, input_y, value_x + _display_width(self.nickname))


def _apply_edit(form: LobbyForm, game_link, secure_link, token: str) -> Optional[Scene]:
    """Check and submit the typed nickname; return a scene to leave to, if any."""
    try:
        availability = check_nickname(game_link, form.nickname)
    except (ProtocolError, OSError):
        return Scene.ERROR
    form.availability = availability
    if availability == _TAKEN:
        return None
    if availability != _AVAILABLE:
        return Scene.ERROR
    try:
        result = edit_nickname(secure_link, token, form.nickname)
    except (ProtocolError, OSError):
        return Scene.ERROR
    form.edit_result = result
    if result == _EDIT_INVALID:
        return Scene.INVALID_TOKEN
    if result != _EDIT_OK:
        return Scene.ERROR
    form.edit_pending = False
    form.modified = True
    return None


class _StoppableLink:
    """Socket view whose reads give up once ``stop`` is set."""

    def __init__(self, link, stop: threading.Event) -> None:
        self._link = link
        self._stop = stop

    def sendall(self, data: bytes) -> None:
        self._link.sendall(data)

    def recv(self, size: int) -> bytes:
        while True:
            if self._stop.is_set():
                raise ConnectionAbortedError("matching stopped")
            readable, _, _ = select.select([self._link], [], [], _STOP_POLL)
            if readable:
                return self._link.recv(size)


def _match(stdscr, game_link, token: str, nickname: str) -> Optional[Scene]:
    screen = WaitingScreen()
    screen.set_cancel_enabled(True)
    status = TaskStatus()
    stop = threading.Event()
    finished = threading.Event()
    found: dict = {}
    link = _StoppableLink(game_link, stop)

    def worker(*_args) -> None:
        try:
            found["info"] = wait_for_match(link, token, nickname, status, screen)
        finally:
            finished.set()

    result = screen.run(stdscr, status, worker)
    canceled = result is not WaitingResult.SUCCESS and not finished.is_set()
    stop.set()
    finished.wait(_STOP_GRACE)

    info = found.get("info")
    if result is WaitingResult.SUCCESS and info is not None:
        stdscr.nodelay(False)
        return GameScreen(stdscr, GameState(info), game_link, token).run()

    if canceled:
        try:
            confirmed: Optional[bool] = cancel_matching(game_link, token)
        except OSError:
            confirmed = None
        if confirmed:
            message = "매칭이 취소되었습니다."
        elif confirmed is False:
            message = "매칭 취소 실패"
        else:
            message = "서버 응답 없음"
        screen.set_message(message)
        screen.draw(stdscr, 0)
        time.sleep(1)
    return None


def lobby_screen(stdscr, game_link, secure_link, token: str) -> Scene:
    """Run the lobby until the player quits, starts a game or an error occurs."""
    _quiet(curses.cbreak)
    _quiet(curses.noecho)
    _quiet(curses.curs_set, 0)
    _quiet(curses.start_color)
    _quiet(curses.init_pair, 1, curses.COLOR_RED, curses.COLOR_BLACK)
    _quiet(curses.init_pair, 2, curses.COLOR_GREEN, curses.COLOR_BLACK)
    stdscr.keypad(True)
    stdscr.erase()

    try:
        info = fetch_user_info(game_link, token)
    except PermissionError:
        game_link.close()
        return Scene.INVALID_TOKEN
    except (ProtocolError, OSError) as exc:
        log.error("could not load the player record: %s", exc)
        game_link.close()
        return Scene.ERROR

    form = LobbyForm(info.nickname)
    while True:
        form.draw(stdscr, info)
        key = stdscr.getch()
        if key == curses.KEY_RESIZE:
            _quiet(curses.update_lines_cols)
            stdscr.clear()
            continue
        action = form.handle_key(key)
        if action == ACTION_QUIT:
            return Scene.MAIN
        if action == ACTION_ESCAPE:
            stdscr.getch()
            stdscr.getch()
        elif action == ACTION_MATCH:
            nickname = form.nickname if form.modified else info.nickname
            scene = _match(stdscr, game_link, token, nickname)
            if scene is not None:
                return scene
            stdscr.nodelay(False)
            stdscr.keypad(True)
            _quiet(curses.noecho)
        elif action == ACTION_EDIT:
            scene = _apply_edit(form, game_link, secure_link, token)
            if scene is not None:
                return scene