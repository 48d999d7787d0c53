"""Waiting queue, ready synchronisation and registry of running games."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .game_session import GameSession, SessionPlayer, _send
from .protocol import PLAYER_NICKNAME_LEN, ROOM_PLAYERS

TOKEN_LEN = 64
MAX_SESSIONS = 10
UNKNOWN_NICKNAME = "UNKNOWN"


class WaitResult(enum.Enum):
    CONTINUE = enum.auto()
    GAME_STARTED = enum.auto()
    GAME_ENDED = enum.auto()
    CANCELLED = enum.auto()
    ERROR = enum.auto()


@dataclass(frozen=True)
class QueuedPlayer:
    sock: object
    token: str


class WaitingQueue:
    """Players waiting for a room; a full room is handed to ``on_full``."""

    def __init__(self, room_size: int = ROOM_PLAYERS,
                 on_full: Optional[Callable[[list[QueuedPlayer]], object]] = None) -> None:
        self.room_size = room_size
        self.on_full = on_full
        self._players: list[QueuedPlayer] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._players)

    def join(self, sock, token: str) -> WaitResult:
        with self._lock:
            self._players.append(QueuedPlayer(sock, token[:TOKEN_LEN - 1]))
            count = len(self._players)
            if count >= self.room_size:
                players = list(self._players)
                self._players.clear()
                if self.on_full is not None:
                    self.on_full(players)
                for player in players:
                    _send(player.sock, "QUEUE_FULL\n")
                return WaitResult.GAME_STARTED
            for player in self._players:
                _send(player.sock, f"WAIT_REPLY|{count}\n")
            return WaitResult.CONTINUE

    def cancel(self, sock, token: str) -> WaitResult:
        with self._lock:
            index = next(
                (i for i, p in enumerate(self._players)
                 if p.sock == sock and p.token == token),
                None,
            )
            if index is None:
                return WaitResult.ERROR
            del self._players[index]
            count = len(self._players)
            for player in self._players:
                _send(player.sock, f"WAIT_REPLY|{count}\n")
            return WaitResult.CANCELLED


class ReadyBarrier:
    """Two-phase ready count: first a room's worth of readies, then a second."""

    def __init__(self, room_size: int = ROOM_PLAYERS) -> None:
        self.room_size = room_size
        self.phase1 = 0
        self.phase2 = 0
        self._cond = threading.Condition()

    def mark_ready(self) -> None:
        with self._cond:
            if self.phase1 < self.room_size:
                self.phase1 += 1
            else:
                self.phase2 += 1
            self._cond.notify_all()

    def wait_phase1(self, count: Optional[int] = None, poll_interval: float = 0.01) -> None:
        target = self.room_size if count is None else count
        with self._cond:
            while self.phase1 != target:
                self._cond.wait(poll_interval)

    def wait_phase2(self, count: Optional[int] = None, poll_interval: float = 0.01) -> None:
        target = self.room_size if count is None else count
        with self._cond:
            while self.phase2 != target:
                self._cond.wait(poll_interval)

    def reset(self) -> None:
        with self._cond:
            self.phase1 = 0
            self.phase2 = 0
            self._cond.notify_all()


class SessionRegistry:
    """Fixed slots for the games currently being played."""

    def __init__(self, capacity: int = MAX_SESSIONS) -> None:
        self._slots: list[Optional[GameSession]] = [None] * capacity
        self._lock = threading.Lock()

    def register(self, session: GameSession) -> int:
        """Store ``session`` in the first free slot and return its id."""
        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot is None:
                    self._slots[index] = session
                    return index
        raise RuntimeError("all session slots are in use")

    def unregister(self, session: GameSession) -> None:
        with self._lock:
            for index, slot in enumerate(self._slots):
                if slot is session:
                    self._slots[index] = None
                    return

    def find_by_token(self, token: str) -> Optional[GameSession]:
        with self._lock:
            for session in self._slots:
                if session is not None and any(p.token == token for p in session.players):
                    return session
        return None


def build_players(queued: Sequence[QueuedPlayer],
                  nickname_lookup: Callable[[str], Optional[str]]) -> list[SessionPlayer]:
    """Seat queued players: first half red, second half blue, first of each leads."""
    half = len(queued) // 2
    players = []
    for index, entry in enumerate(queued):
        nickname = nickname_lookup(entry.token) or UNKNOWN_NICKNAME
        players.append(SessionPlayer(
            nickname=nickname[:PLAYER_NICKNAME_LEN],
            role_num=index,
            team=0 if index < half else 1,
            is_leader=index in (0, half),
            sock=entry.sock,
            token=entry.token,
        ))
    return players


def _tokens(players: Iterable[QueuedPlayer]) -> list[str]:
    return [p.token for p in players]