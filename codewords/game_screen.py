"""Terminal screen for a running game: board, teams, chat and input line."""

from __future__ import annotations

import curses
import logging
import select
import threading
import time
from typing import Optional, Sequence

from .game_state import ChatLog, GameState, InputMode, LineBuffer
from .protocol import Card, Scene
from .ui import _display_width, _quiet

BOARD_SIZE = 5
CARD_WIDTH = 12
CARD_HEIGHT = 4
MAX_INPUT_LEN = 100
CHAT_VISIBLE_LINES = 10
RECV_SIZE = 1023
CARD_REQUEST = "GET_ALL_CARDS\n"
USED_LABEL = "완료"
CARD_EDGE = "+--------+"
CARD_BODY = "|        |"
CHAT_HEADER = "-------------------<채팅 로그>-------------------"
CHAT_HELP = "Tab으로 채팅 전환 Ctrl+A로 신고모드 전환 / ↑↓ 스크롤"
BLANK_CHAT_LINE = " " * 20
RED_REMAINING = 9
BLUE_REMAINING = 8

_COLOR_PAIRS = (
    (1, curses.COLOR_BLACK, curses.COLOR_WHITE),
    (2, curses.COLOR_WHITE, curses.COLOR_RED),
    (3, curses.COLOR_WHITE, curses.COLOR_BLUE),
    (4, curses.COLOR_WHITE, curses.COLOR_MAGENTA),
)
_ARROWS = (curses.KEY_UP, curses.KEY_DOWN, curses.KEY_LEFT, curses.KEY_RIGHT)
_ENTER_KEYS = ("\n", 10)
_BACKSPACE_KEYS = ("\x7f", 127, curses.KEY_BACKSPACE)
_TAB_KEYS = ("\t", 9)
_REPORT_KEYS = ("\x01", 1)
_MODE_LABELS = {
    InputMode.CHAT: "채팅 입력:",
    InputMode.HINT: "힌트를 입력하세요: ",
    InputMode.LINK: "연결 수를 입력하세요: ",
    InputMode.ANSWER: "정답을 입력하세요:",
}
_CARD_COLORS = {1: 2, 2: 3, 3: 4}

log = logging.getLogger(__name__)


def _pair(number: int) -> int:
    """Attribute for a colour pair, or plain text when colours are unavailable."""
    try:
        return curses.color_pair(number)
    except curses.error:
        return 0


def card_color(card_type: int, revealed: bool) -> int:
    """Colour pair of a card: its team colour once revealed, otherwise pair 1."""
    if not revealed:
        return 1
    return _CARD_COLORS.get(card_type, 1)


def card_label(name: str, used: bool) -> str:
    return USED_LABEL if used else name


def mode_label(mode: InputMode) -> str:
    """Prompt shown in front of the input line for ``mode``."""
    return _MODE_LABELS.get(mode, "")


def cursor_position(mode: InputMode, term_height: int, chat_y: int,
                    board_x: int) -> tuple[int, int]:
    """Row and column where the input line of ``mode`` starts."""
    if mode is InputMode.CHAT:
        return chat_y + 14, 2
    if mode in (InputMode.HINT, InputMode.LINK, InputMode.ANSWER):
        return chat_y + 14, board_x
    if mode is InputMode.REPORT:
        return term_height - 2, 4
    return term_height - 2, 2


def _draw_card(win, y: int, x: int, card: Card, revealed: bool) -> None:
    attr = _pair(card_color(card.kind, revealed))
    _quiet(win.addstr, y, x, CARD_EDGE, attr)
    _quiet(win.addstr, y + 1, x, CARD_BODY, attr)
    padding = (8 - len(card.name.encode("utf-8"))) // 2
    _quiet(win.addstr, y + 1, x + 1 + padding, card_label(card.name, card.used), attr)
    _quiet(win.addstr, y + 2, x, CARD_EDGE, attr)


def draw_board(win, cards: Sequence[Card], offset_x: int, offset_y: int,
               reveal_all: bool) -> None:
    """Draw the 5x5 grid; hidden cards stay neutral unless ``reveal_all``."""
    for index, card in enumerate(cards[:BOARD_SIZE * BOARD_SIZE]):
        row, col = divmod(index, BOARD_SIZE)
        _draw_card(win, offset_y + row * CARD_HEIGHT, offset_x + col * CARD_WIDTH,
                   card, reveal_all or card.used)


def draw_team_panel(win, state: GameState, y: int, x: int) -> None:
    """Team headers with words left, player names, report cursor and report notice."""
    with state.lock:
        reporting = state.mode is InputMode.REPORT
        selected = state.report_selected_index
        players = state.info.players

        _quiet(win.addstr, y, x, f"레드 팀      남은 단어 - {RED_REMAINING - state.red_score}",
               _pair(2))
        for i in range(3):
            attr = curses.A_REVERSE if reporting and selected == i else 0
            _quiet(win.addstr, y + 1 + i, x + 2, f"{players[i].nickname}     신고", attr)

        _quiet(win.addstr, y + 5, x, f"블루 팀      남은 단어 - {BLUE_REMAINING - state.blue_score}",
               _pair(3))
        for i in range(3, 6):
            attr = curses.A_REVERSE if reporting and selected == i else 0
            _quiet(win.addstr, y + 3 + i, x + 2, f"{players[i].nickname}      신고", attr)

        if state.report_completed == 1:
            _quiet(win.addstr, 11, 4,
                   f"[신고 완료] {players[selected].nickname} 님을 신고했습니다.", 0)
            state.report_completed = 0
        elif state.report_completed == -1:
            _quiet(win.addstr, 11, 4, "신고 중 오류가 발생했습니다.", 0)
            state.report_completed = 0


def draw_chat(win, chat: ChatLog, y: int, x: int) -> None:
    """Chat header, the visible window of the log and the key help line."""
    y += 1
    _quiet(win.addstr, y, x, CHAT_HEADER, 0)
    entries = chat.visible(CHAT_VISIBLE_LINES)
    for row in range(CHAT_VISIBLE_LINES):
        line_y = y + row + 1
        if row < len(entries):
            entry = entries[row]
            if entry.color is not None:
                _quiet(win.addstr, line_y, x, entry.text, _pair(entry.color))
                _quiet(win.clrtoeol)
            else:
                _quiet(win.addstr, line_y, x, entry.text, 0)
        else:
            _quiet(win.addstr, line_y, x, BLANK_CHAT_LINE, 0)
    _quiet(win.addstr, y + CHAT_VISIBLE_LINES - 11, x, CHAT_HELP, 0)


class GameScreen:
    """Runs the game view: a listener thread for the server and a key loop."""

    def __init__(self, stdscr, state: GameState, sock, token: str,
                 poll_interval: float = 1.0, card_retry: float = 3.0,
                 key_timeout_ms: int = 50) -> None:
        self.stdscr = stdscr
        self.state = state
        self.sock = sock
        self.token = token
        self.poll_interval = poll_interval
        self.card_retry = card_retry
        self.key_timeout_ms = key_timeout_ms
        self.input_text = ""
        self.running = True
        self.listener_alive = False
        self._lines = LineBuffer()
        self._send_lock = threading.Lock()

    def _send(self, message: str) -> None:
        with self._send_lock:
            try:
                self.sock.sendall(message.encode("utf-8"))
            except OSError as exc:
                log.warning("send failed: %s", exc)

    def _mark_redraw(self) -> None:
        with self.state.lock:
            self.state.needs_redraw = True

    def listen(self) -> None:
        """Read server lines and apply them until the game ends or the link drops."""
        self.listener_alive = True
        last_request: Optional[float] = None
        try:
            while self.running and not self.state.game_over:
                if not self.state.cards_initialized:
                    now = time.monotonic()
                    if last_request is None or now - last_request >= self.card_retry:
                        if self.state.cards_valid():
                            with self.state.lock:
                                self.state.cards_initialized = True
                        else:
                            self._send(CARD_REQUEST)
                            last_request = now
                try:
                    readable, _, _ = select.select([self.sock], [], [], self.poll_interval)
                except (OSError, ValueError) as exc:
                    log.error("select failed: %s", exc)
                    break
                if not readable:
                    continue
                try:
                    data = self.sock.recv(RECV_SIZE)
                except OSError:
                    data = b""
                if not data:
                    log.error("connection to the game server closed")
                    break
                for line in self._lines.feed(data):
                    for reply in self.state.handle_line(line):
                        self._send(reply)
                        if reply == CARD_REQUEST:
                            last_request = time.monotonic()
        finally:
            self.listener_alive = False

    def handle_key(self, key) -> Optional[str]:
        """Apply one key press; return the message sent to the server, if any."""
        state = self.state
        if key in _ARROWS:
            if state.mode is InputMode.REPORT:
                if key == curses.KEY_UP:
                    state.move_report_selection(-1)
                elif key == curses.KEY_DOWN:
                    state.move_report_selection(1)
            elif state.mode is InputMode.CHAT:
                if key == curses.KEY_UP:
                    state.chat.scroll_up()
                elif key == curses.KEY_DOWN:
                    state.chat.scroll_down()
                self._mark_redraw()
            return None

        if key == curses.KEY_RESIZE:
            self._mark_redraw()
            return None

        if key in _ENTER_KEYS:
            text, self.input_text = self.input_text, ""
            message = state.submit(text, self.token)
            self._mark_redraw()
            if message:
                self._send(message)
            return message

        if key in _BACKSPACE_KEYS:
            self.input_text = self.input_text[:-1]
            self._mark_redraw()
            return None

        if key in _TAB_KEYS:
            state.toggle_mode()
            self.input_text = ""
            return None

        if key in _REPORT_KEYS:
            state.enter_report_mode()
            self.input_text = ""
            return None

        if (isinstance(key, str) and len(key) == 1 and key.isprintable()
                and len(self.input_text) < MAX_INPUT_LEN - 1):
            self.input_text += key
            self._mark_redraw()
        return None

    def redraw(self) -> bool:
        """Redraw when flagged; return True if the screen was drawn."""
        state = self.state
        with state.lock:
            if not state.needs_redraw:
                return False
            state.needs_redraw = False
            if state.game_over:
                self.running = False
                return False
            turn_team, phase = state.turn_team, state.phase
            mode = state.mode
            my_turn = state.is_my_turn()
            reveal = state.me.is_leader
            cards = list(state.cards)

        win = self.stdscr
        win.clear()
        term_y, term_x = win.getmaxyx()
        board_x = int((term_x - CARD_WIDTH * BOARD_SIZE) / 2)
        board_y = 2
        chat_y = board_y + BOARD_SIZE * CARD_HEIGHT + 2

        team = "레드팀" if turn_team == 0 else "블루팀"
        role = "팀장" if phase == 0 else "팀원"
        _quiet(win.addstr, 0, 2, f"[{team} {role} 차례]", 0)

        draw_team_panel(win, state, 2, 2)
        draw_board(win, cards, board_x, board_y, reveal)
        draw_chat(win, state.chat, chat_y, 2)

        _quiet(curses.curs_set, 1 if my_turn or mode is InputMode.CHAT else 0)
        y, x = cursor_position(mode, term_y, chat_y, board_x)
        label = mode_label(mode)
        input_x = x + _display_width(label)
        _quiet(win.addstr, y, x, label, 0)
        _quiet(win.addstr, y, input_x, self.input_text, 0)
        _quiet(win.move, y, input_x + _display_width(self.input_text))
        win.refresh()
        return True

    def run(self) -> Scene:
        """Play until the server announces the end of the game."""
        stdscr = self.stdscr
        _quiet(curses.start_color)
        for number, fg, bg in _COLOR_PAIRS:
            _quiet(curses.init_pair, number, fg, bg)
        _quiet(curses.cbreak)
        _quiet(curses.noecho)
        stdscr.keypad(True)
        stdscr.timeout(self.key_timeout_ms)

        self.state.reset()
        self.running = True
        threading.Thread(target=self.listen, daemon=True).start()

        while self.running:
            try:
                key = stdscr.get_wch()
            except curses.error:
                key = None
            if key is not None:
                self.handle_key(key)
            self.redraw()

        time.sleep(0.05)
        return Scene.RESULT