"""Server-side state and rules of one running game."""

from __future__ import annotations

import collections
import enum
import random
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from .protocol import CARD_NAME_LEN, MAX_CARDS, Card, CardType, _atoi

MAX_EVENTS = 64
EVENT_DATA_LEN = 127
HINT_WORD_LEN = 31
MESSAGE_LIMIT = 1024
SYSTEM_TEAM = 2
SYSTEM_NAME = "SYSTEM"
RED_TARGET = 9
BLUE_TARGET = 8
CARD_COUNTS = (
    (CardType.RED, 9),
    (CardType.BLUE, 8),
    (CardType.NEUTRAL, 7),
    (CardType.ASSASSIN, 1),
)


def _send(sock, data: str) -> None:
    """Send text on a socket, ignoring closed or missing peers."""
    if sock is None:
        return
    try:
        sock.sendall(data.encode("utf-8"))
    except OSError:
        pass


class EventType(enum.Enum):
    NONE = 0
    CHAT = 1
    HINT = 2
    ANSWER = 3
    REPORT = 4


@dataclass
class GameEvent:
    """One client request waiting to be applied to the game."""

    type: EventType
    player_index: int
    data: str = ""

    def __post_init__(self) -> None:
        self.data = self.data[:EVENT_DATA_LEN]


@dataclass
class SessionPlayer:
    nickname: str
    role_num: int
    team: int
    is_leader: bool
    sock: object = None
    token: str = ""


class EventQueueFull(RuntimeError):
    """The session's event queue has no room left."""


def shuffled_types(rng: Optional[random.Random] = None) -> list[CardType]:
    """The 25 card types of a board, in random order."""
    rng = rng or random.Random()
    types = [kind for kind, count in CARD_COUNTS for _ in range(count)]
    rng.shuffle(types)
    return types


def assign_cards(words: Sequence[str], rng: Optional[random.Random] = None) -> list[Card]:
    """Deal a board from the first 25 words, each used once, with shuffled types."""
    rng = rng or random.Random()
    words = list(words)
    if len(words) < MAX_CARDS:
        raise ValueError(f"need {MAX_CARDS} words, got {len(words)}")
    types = shuffled_types(rng)
    order = rng.sample(range(MAX_CARDS), MAX_CARDS)
    return [
        Card(words[w][:CARD_NAME_LEN], int(kind), False)
        for w, kind in zip(order, types)
    ]


def _chunks(word: str) -> Iterable[str]:
    for start in range(0, len(word), CARD_NAME_LEN):
        yield word[start:start + CARD_NAME_LEN]


def load_words(path) -> list[str]:
    """Read 25 whitespace-separated words; longer words split into 31-char pieces."""
    text = Path(path).read_text(encoding="utf-8")
    words = [piece for word in text.split() for piece in _chunks(word)]
    if len(words) < MAX_CARDS:
        raise ValueError(f"word file needs {MAX_CARDS} words, found {len(words)}")
    return words[:MAX_CARDS]


class GameSession:
    """Board, scores, turn state and event queue of one game."""

    def __init__(self, players: Sequence[SessionPlayer], cards: Sequence[Card]) -> None:
        self.players = list(players)
        self.cards = list(cards)
        self.red_score = 0
        self.blue_score = 0
        self.turn_team = 0
        self.phase = 0
        self.remaining_tries = 0
        self.hint_word = ""
        self.hint_count = 0
        self.game_over = False
        self._events: collections.deque[GameEvent] = collections.deque()
        self._event_lock = threading.Lock()
        self._game_lock = threading.Lock()

    def enqueue(self, event: GameEvent) -> None:
        with self._event_lock:
            if len(self._events) >= MAX_EVENTS - 1:
                raise EventQueueFull("event queue is full")
            self._events.append(event)

    def next_event(self) -> Optional[GameEvent]:
        with self._event_lock:
            return self._events.popleft() if self._events else None

    def broadcast(self, message: str) -> None:
        full = message + "\n"
        encoded = full.encode("utf-8")
        if len(encoded) > MESSAGE_LIMIT - 1:
            full = encoded[:MESSAGE_LIMIT - 1].decode("utf-8", errors="ignore")
        for player in self.players:
            _send(player.sock, full)

    def _system_chat(self, text: str) -> None:
        self.broadcast(f"CHAT|{SYSTEM_TEAM}|0|{SYSTEM_NAME}|{text}")

    def _turn_update(self, team: int) -> None:
        self.broadcast(
            f"TURN_UPDATE|{team}|{self.phase}|{self.red_score}|{self.blue_score}"
        )

    def start(self) -> None:
        """Announce the game start and the opening turn."""
        self._system_chat("게임 시작!")
        self._turn_update(self.turn_team)

    def _give_hint(self, data: str) -> None:
        fields = [f for f in data[len("HINT|"):].split("|") if f]
        if len(fields) < 2:
            return
        word, number = fields[0], fields[1]
        self.hint_word = word[:HINT_WORD_LEN]
        self.hint_count = _atoi(number)
        self.remaining_tries = self.hint_count
        self.phase = 1
        self.broadcast(f"HINT|{self.turn_team}|{word}|{self.hint_count}")
        self._turn_update(self.turn_team)

    def _answer(self, player: SessionPlayer, answer: str) -> None:
        index = next(
            (i for i, card in enumerate(self.cards)
             if not card.used and card.name == answer),
            None,
        )
        if index is None:
            _send(player.sock,
                  f"CHAT|{SYSTEM_TEAM}|0|{SYSTEM_NAME}|"
                  "선택한 단어가 보드에 없습니다. 다시 입력하세요.\n")
            return

        card = self.cards[index]
        card.used = True
        self.broadcast(f"CARD_UPDATE|{index}|1")

        text = None
        if card.kind == CardType.RED:
            self.red_score += 1
            if self.turn_team == 0:
                text = "레드팀 1득점"
            else:
                self.remaining_tries = 0
                text = "블루팀 1실점"
        elif card.kind == CardType.BLUE:
            self.blue_score += 1
            if self.turn_team == 1:
                text = "블루팀 1득점"
            else:
                self.remaining_tries = 0
                text = "레드팀 1실점"
        elif card.kind == CardType.NEUTRAL:
            self.remaining_tries = 0
            text = "민간인 카드 선택, 턴을 종료합니다"
        elif card.kind == CardType.ASSASSIN:
            self.game_over = True
            self._system_chat("암살자 카드 선택, 사망하셨습니다.")
            return
        if text is not None:
            self._system_chat(text)

        self.remaining_tries -= 1
        if self.remaining_tries <= 0:
            self.turn_team = 1 - self.turn_team
            self.phase = 0
            self._turn_update(self.turn_team)
        else:
            self._turn_update(SYSTEM_TEAM)
            team = "레드" if self.turn_team == 0 else "블루"
            self._system_chat(f"{team}팀 남은 횟수 : {self.remaining_tries}")

    def handle_event(self, event: GameEvent) -> None:
        """Apply one event to the game, ignoring requests made out of turn."""
        with self._game_lock:
            player = self.players[event.player_index]
            in_turn = player.team == self.turn_team
            if (event.type is EventType.HINT and self.phase == 0
                    and player.is_leader and in_turn):
                self._give_hint(event.data)
            elif (event.type is EventType.ANSWER and self.phase == 1
                    and not player.is_leader and in_turn):
                self._answer(player, event.data[len("ANSWER|"):])
            elif event.type is EventType.CHAT:
                self.broadcast(
                    f"CHAT|{player.team}|{int(player.is_leader)}|"
                    f"{player.nickname}|{event.data[len('CHAT|'):]}"
                )
            if self.red_score >= RED_TARGET or self.blue_score >= BLUE_TARGET:
                self.game_over = True

    def winner(self) -> int:
        """Winning team; with no score reached, the team not in turn wins."""
        if self.red_score >= RED_TARGET:
            return 0
        if self.blue_score >= BLUE_TARGET:
            return 1
        return 1 - self.turn_team

    def finish(self, save_result: Callable[[str, str], object]) -> int:
        """Announce the winner and record every player's result."""
        winner = self.winner()
        self.broadcast(f"GAME_OVER|{winner}")
        for player in self.players:
            save_result(player.nickname, "WIN" if player.team == winner else "LOSS")
        return winner

    def run(self, save_result: Callable[[str, str], object],
            poll_interval: float = 0.05) -> int:
        """Process events until the game ends; return the winning team."""
        self.start()
        while not self.game_over:
            event = self.next_event()
            if event is None:
                time.sleep(poll_interval)
                continue
            self.handle_event(event)
        return self.finish(save_result)