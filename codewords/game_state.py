"""Client-side game state driven by server lines and player input."""

from __future__ import annotations

import enum
import re
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .protocol import (
    MAX_CARDS,
    Card,
    GameInitInfo,
    PlayerEntry,
    ProtocolError,
    _atoi,
    parse_all_cards,
)

CHAT_LOG_SIZE = 100
CHAT_ENTRY_BYTES = 127
LEFTOVER_BYTES = 4095
HINT_WORD_LEN = 31
ANSWER_LEN = 31
SYSTEM_TEAM = 2
REPORT_SLOTS = 6
RED_COLOR = 2
BLUE_COLOR = 3
_MAX_VALID_KIND = 3

_GAME_OVER = re.compile(r"GAME_OVER\|[ \t\n\v\f\r]*([+-]?\d+)")


def _truncate_bytes(text: str, limit: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    return encoded[:limit].decode("utf-8", errors="ignore")


def _take(text: str, count: int) -> tuple[list[str], str]:
    """Take up to ``count`` non-empty '|' fields; return them and the rest."""
    tokens: list[str] = []
    pos = 0
    for _ in range(count):
        while pos < len(text) and text[pos] == "|":
            pos += 1
        if pos >= len(text):
            return tokens, ""
        end = text.find("|", pos)
        if end == -1:
            tokens.append(text[pos:])
            pos = len(text)
        else:
            tokens.append(text[pos:end])
            pos = end + 1
    return tokens, text[pos:]


class Result(enum.Enum):
    WIN = enum.auto()
    LOSE = enum.auto()


class InputMode(enum.Enum):
    NONE = enum.auto()
    HINT = enum.auto()
    LINK = enum.auto()
    ANSWER = enum.auto()
    CHAT = enum.auto()
    REPORT = enum.auto()


class LineBuffer:
    """Collects received bytes and hands back complete, non-empty lines."""

    def __init__(self, limit: int = LEFTOVER_BYTES) -> None:
        self.limit = limit
        self._pending = b""

    @property
    def pending(self) -> bytes:
        return self._pending

    def feed(self, data) -> list[str]:
        if isinstance(data, str):
            data = data.encode("utf-8")
        room = max(self.limit - len(self._pending), 0)
        self._pending += data[:room]
        *complete, self._pending = self._pending.split(b"\n")
        return [line.decode("utf-8", errors="replace") for line in complete if line]


@dataclass
class ChatEntry:
    text: str
    color: Optional[int] = None


class ChatLog:
    """Bounded chat history with a scroll offset counted from the newest line."""

    def __init__(self, capacity: int = CHAT_LOG_SIZE) -> None:
        self.capacity = capacity
        self._entries: deque[ChatEntry] = deque(maxlen=capacity)
        self.scroll_offset = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self):
        with self._lock:
            return iter(list(self._entries))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.scroll_offset = 0

    def append(self, text: str, color: Optional[int] = None) -> None:
        limit = CHAT_ENTRY_BYTES
        if color is not None:
            limit -= len(f"\x01{color}\x01".encode("utf-8"))
        with self._lock:
            self._entries.append(ChatEntry(_truncate_bytes(text, max(limit, 0)), color))
            self.scroll_offset = 0

    def scroll_up(self) -> None:
        with self._lock:
            if self.scroll_offset + 1 < len(self._entries):
                self.scroll_offset += 1

    def scroll_down(self) -> None:
        with self._lock:
            if self.scroll_offset > 0:
                self.scroll_offset -= 1

    def visible(self, lines: int = 10) -> list[ChatEntry]:
        """Entries shown in a window of ``lines`` rows at the current scroll."""
        with self._lock:
            entries = list(self._entries)
            count = len(entries)
            start = count - lines - self.scroll_offset if count > lines else 0
            start = max(start, 0)
            return entries[start:start + lines]


def chat_visible(sender_team: int, sender_is_leader: bool,
                 my_team: int, my_is_leader: bool) -> bool:
    """Whether a chat line reaches this player: leaders' talk is for leaders only."""
    if sender_team == SYSTEM_TEAM:
        return True
    return not sender_is_leader or bool(my_is_leader)


def _blank_cards() -> list[Card]:
    return [Card() for _ in range(MAX_CARDS)]


@dataclass
class GameState:
    """Everything the game screen shows, updated from server lines and input."""

    info: GameInitInfo
    cards: list[Card] = field(default_factory=_blank_cards)
    red_score: int = 0
    blue_score: int = 0
    result: Result = Result.WIN
    winner_team: int = -1
    turn_team: int = -1
    phase: int = -1
    game_over: bool = False
    hint_word: str = ""
    hint_count: int = 0
    answer_text: str = ""
    report_selected_index: int = 0
    report_completed: int = 0
    cards_initialized: bool = False
    mode: InputMode = InputMode.NONE
    needs_redraw: bool = True
    chat: ChatLog = field(default_factory=ChatLog)

    def __post_init__(self) -> None:
        self.lock = threading.RLock()

    @property
    def me(self) -> PlayerEntry:
        return self.info.players[self.info.my_index]

    def reset(self) -> None:
        with self.lock:
            self.cards = _blank_cards()
            self.red_score = 0
            self.blue_score = 0
            self.result = Result.WIN
            self.winner_team = -1
            self.turn_team = -1
            self.phase = -1
            self.game_over = False
            self.hint_word = ""
            self.hint_count = 0
            self.answer_text = ""
            self.report_selected_index = 0
            self.report_completed = 0
            self.cards_initialized = False
            self.mode = InputMode.NONE
            self.needs_redraw = True
            self.chat.clear()

    def cards_valid(self) -> bool:
        with self.lock:
            return all(card.name and 0 <= card.kind <= _MAX_VALID_KIND
                       for card in self.cards)

    def is_my_turn(self) -> bool:
        me = self.me
        if me.team != self.turn_team:
            return False
        return (self.phase == 0 and me.is_leader) or (self.phase == 1 and not me.is_leader)

    def mode_for_turn(self) -> InputMode:
        me = self.me
        if me.team == self.turn_team and me.is_leader and self.phase == 0:
            return InputMode.HINT
        if me.team == self.turn_team and not me.is_leader and self.phase == 1:
            return InputMode.ANSWER
        return InputMode.NONE

    # server lines -------------------------------------------------------

    def handle_line(self, line: str) -> list[str]:
        """Apply one server line; return the messages to send back."""
        if not line:
            return []
        with self.lock:
            if line.startswith("SESSION_ACK"):
                return ["GET_ALL_CARDS\n"]
            if line.startswith("ALL_CARDS|"):
                self._all_cards(line)
            elif line.startswith("CARD_UPDATE|"):
                self._card_update(line[len("CARD_UPDATE|"):])
            elif line.startswith("TURN_UPDATE|"):
                self._turn_update(line[len("TURN_UPDATE|"):])
            elif line.startswith("HINT|"):
                self._hint(line[len("HINT|"):])
            elif line.startswith("CHAT|"):
                self._chat(line[len("CHAT|"):])
            elif line.startswith("REPORT_OK|"):
                self._report_ok(line[len("REPORT_OK|"):])
            elif line.startswith("GAME_OVER|"):
                return self._game_over(line)
            elif line.startswith("REPORT_ERROR"):
                self.chat.append("[신고 실패] 요청을 처리할 수 없습니다.")
                self.report_completed = -1
                self.needs_redraw = True
            return []

    def _all_cards(self, line: str) -> None:
        try:
            cards = parse_all_cards(line)
        except ProtocolError:
            return
        self.cards = cards
        self.cards_initialized = True
        self.needs_redraw = True

    def _card_update(self, payload: str) -> None:
        tokens, _ = _take(payload, 2)
        if len(tokens) == 2:
            index = _atoi(tokens[0])
            if 0 <= index < MAX_CARDS:
                self.cards[index].used = bool(_atoi(tokens[1]))
        self.needs_redraw = True

    def _turn_update(self, payload: str) -> None:
        tokens, _ = _take(payload, 4)
        if len(tokens) < 4:
            return
        new_team, new_phase, red, blue = (_atoi(t) for t in tokens)
        self.red_score = red
        self.blue_score = blue
        if new_team == SYSTEM_TEAM:
            self.needs_redraw = True
            return
        changed = (new_team, new_phase) != (self.turn_team, self.phase)
        self.turn_team = new_team
        self.phase = new_phase
        if changed:
            team = "레드" if new_team == 0 else "블루"
            role = "팀장" if new_phase == 0 else "팀원"
            self.chat.append(f"[{team}팀의 {role} 턴입니다.]")
        self.mode = self.mode_for_turn()
        self.needs_redraw = True

    def _hint(self, payload: str) -> None:
        tokens, _ = _take(payload, 3)
        if len(tokens) < 3:
            return
        self.turn_team = _atoi(tokens[0])
        self.hint_word = tokens[1][:HINT_WORD_LEN]
        self.hint_count = _atoi(tokens[2])
        self.chat.append(
            f"[팀장 입력 힌트: {self.hint_word}, 연결 수 - {self.hint_count}, "
            f"{self.hint_count}번 시도 가능합니다.]"
        )
        self.needs_redraw = True

    def _chat(self, payload: str) -> None:
        tokens, content = _take(payload, 3)
        if len(tokens) < 3 or not content:
            return
        sender_team = _atoi(tokens[0])
        sender_is_leader = bool(_atoi(tokens[1]))
        nickname = tokens[2]
        me = self.me
        if not chat_visible(sender_team, sender_is_leader, me.team, me.is_leader):
            return
        if sender_team == SYSTEM_TEAM:
            self.chat.append(f"[{content}]")
        else:
            color = RED_COLOR if sender_team == 0 else BLUE_COLOR
            self.chat.append(f"{nickname}: {content}", color)
        self.needs_redraw = True

    def _report_ok(self, payload: str) -> None:
        count_text, sep, rest = payload.partition("|")
        count = _atoi(count_text)
        if sep:
            if rest == "SUSPENDED":
                self.chat.append(
                    f"[신고 완료] 누적 {count}회 - 해당 유저는 다음 게임부터 참여가 제한됩니다."
                )
        else:
            self.chat.append(f"[신고 완료] 누적 신고 {count}회")
        self.report_completed = 1
        self.needs_redraw = True

    def _game_over(self, line: str) -> list[str]:
        match = _GAME_OVER.match(line)
        self.winner_team = int(match.group(1)) if match else -1
        self.result = Result.WIN if self.me.team == self.winner_team else Result.LOSE
        self.game_over = True
        self.needs_redraw = True
        return ["GAME_QUIT\n"]

    # player input -------------------------------------------------------

    def toggle_mode(self) -> InputMode:
        """Tab: leave chat for the turn's input, or enter chat from anything else."""
        with self.lock:
            if self.mode is InputMode.CHAT:
                turn_mode = self.mode_for_turn()
                if turn_mode is InputMode.HINT and self.hint_word:
                    turn_mode = InputMode.LINK
                self.mode = turn_mode
            else:
                self.mode = InputMode.CHAT
            self.needs_redraw = True
            return self.mode

    def enter_report_mode(self) -> None:
        with self.lock:
            self.mode = InputMode.REPORT
            self.needs_redraw = True

    def move_report_selection(self, step: int) -> int:
        """Move the report cursor while reporting, kept within the six players."""
        with self.lock:
            if self.mode is InputMode.REPORT:
                target = self.report_selected_index + step
                self.report_selected_index = min(max(target, 0), REPORT_SLOTS - 1)
                self.needs_redraw = True
            return self.report_selected_index

    def submit(self, text: str, token: str) -> Optional[str]:
        """Apply an entered line in the current mode; return a message to send."""
        with self.lock:
            mode = self.mode
            if mode is InputMode.CHAT:
                return f"CHAT|{text}\n" if text else None
            if mode is InputMode.HINT:
                self.hint_word = text[:HINT_WORD_LEN]
                self.mode = InputMode.LINK
                return None
            if mode is InputMode.LINK:
                self.hint_count = _atoi(text)
                self.mode = InputMode.NONE
                return f"HINT|{self.hint_word}|{self.hint_count}\n"
            if mode is InputMode.ANSWER:
                self.answer_text = text[:ANSWER_LEN]
                return f"ANSWER|{self.answer_text}\n"
            if mode is InputMode.REPORT:
                nickname = self.info.players[self.report_selected_index].nickname
                self.mode = InputMode.CHAT
                return f"REPORT|{token}|{nickname}\n"
            return None