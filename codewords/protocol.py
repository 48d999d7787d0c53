"""Wire messages exchanged between the game client and server."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Iterable, Sequence

NICKNAME_LEN = 31
PLAYER_NICKNAME_LEN = 63
CARD_NAME_LEN = 31
MAX_CARDS = 25
ROOM_PLAYERS = 6
MESSAGE_LIMIT = 1024

_INT_PREFIX = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")


def _atoi(text: str) -> int:
    """Read a leading integer the lenient way: junk yields 0."""
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _fields(payload: str) -> list[str]:
    """Split on '|' dropping empty fields."""
    return [field for field in payload.split("|") if field]


class Scene(enum.Enum):
    """Screens the client moves between."""

    LOGIN = enum.auto()
    SIGNUP = enum.auto()
    MAIN = enum.auto()
    RESULT = enum.auto()
    ERROR = enum.auto()
    INVALID_TOKEN = enum.auto()
    EXIT = enum.auto()


class ProtocolError(ValueError):
    """A message did not have the expected shape."""


class CardType(enum.IntEnum):
    RED = 1
    BLUE = 2
    NEUTRAL = 3
    ASSASSIN = 4


@dataclass
class Card:
    name: str = ""
    kind: int = 0
    used: bool = False


@dataclass
class PlayerEntry:
    nickname: str
    role_num: int
    team: int
    is_leader: bool


@dataclass
class GameInitInfo:
    players: tuple[PlayerEntry, ...]
    my_index: int = 0


@dataclass
class UserInfo:
    nickname: str
    wins: int
    losses: int

    def win_rate(self) -> float:
        """Percentage of games won, 0.0 when none were played."""
        total = self.wins + self.losses
        if total <= 0:
            return 0.0
        return self.wins / total * 100.0


class Availability(enum.IntEnum):
    AVAILABLE = 0
    DUPLICATED = -1
    ERROR = -2
    NOT_CHECKED = -3


class NicknameEditResult(enum.IntEnum):
    NONE = -1
    SUCCESS = 0
    ERROR = 1
    INVALID_TOKEN = 2


def parse_user_info(response: str) -> UserInfo:
    """Parse ``NICKNAME|<nick>|WINS|<n>|LOSSES|<n>``."""
    _, sep, rest = response.partition("|")
    if not sep:
        raise ProtocolError(f"no fields in user info: {response!r}")
    nickname, sep, rest = rest.partition("|")
    if not sep:
        raise ProtocolError(f"missing nickname terminator: {response!r}")
    if not rest.startswith("WINS|"):
        raise ProtocolError(f"missing WINS field: {response!r}")
    rest = rest[len("WINS|"):]
    wins = _atoi(rest)
    _, sep, rest = rest.partition("|")
    if not sep:
        raise ProtocolError(f"missing LOSSES field: {response!r}")
    if not rest.startswith("LOSSES|"):
        raise ProtocolError(f"missing LOSSES field: {response!r}")
    losses = _atoi(rest[len("LOSSES|"):])
    return UserInfo(nickname[:NICKNAME_LEN], wins, losses)


def format_user_info(info: UserInfo) -> str:
    return f"NICKNAME|{info.nickname}|WINS|{info.wins}|LOSSES|{info.losses}"


def parse_game_init(message: str, my_name: str) -> GameInitInfo:
    """Parse the six-player ``GAME_INIT`` line and locate ``my_name`` in it."""
    prefix = "GAME_INIT|"
    if not message.startswith(prefix):
        raise ProtocolError(f"not a GAME_INIT message: {message!r}")
    fields = _fields(message[len(prefix):])
    if len(fields) < ROOM_PLAYERS * 4:
        raise ProtocolError(f"GAME_INIT needs {ROOM_PLAYERS} players")
    players = []
    my_index = 0
    for index in range(ROOM_PLAYERS):
        nickname, role, team, leader = fields[index * 4:index * 4 + 4]
        nickname = nickname[:PLAYER_NICKNAME_LEN]
        players.append(
            PlayerEntry(nickname, _atoi(role), _atoi(team), bool(_atoi(leader)))
        )
        if nickname == my_name:
            my_index = index
    return GameInitInfo(tuple(players), my_index)


def format_game_init(players: Iterable[PlayerEntry]) -> str:
    """Build the ``GAME_INIT`` line, without its trailing newline."""
    message = "GAME_INIT" + "".join(
        f"|{p.nickname}|{p.role_num}|{p.team}|{int(p.is_leader)}" for p in players
    )
    return message[:MESSAGE_LIMIT - 1]


def encode_all_cards(cards: Sequence[Card]) -> str:
    """Build the ``ALL_CARDS`` line, without its trailing newline."""
    message = "ALL_CARDS"
    for card in cards:
        entry = f"|{card.name}|{card.kind}|{int(card.used)}"
        if len(message) + len(entry) >= MESSAGE_LIMIT - 1:
            break
        message += entry
    return message


def parse_all_cards(line: str) -> list[Card]:
    """Parse an ``ALL_CARDS`` line into exactly 25 cards."""
    prefix = "ALL_CARDS|"
    if not line.startswith(prefix):
        raise ProtocolError(f"not an ALL_CARDS message: {line!r}")
    fields = _fields(line[len(prefix):])
    if len(fields) != MAX_CARDS * 3:
        raise ProtocolError(
            f"ALL_CARDS has {len(fields)} fields, expected {MAX_CARDS * 3}"
        )
    triples = zip(*[iter(fields)] * 3)
    return [
        Card(name[:CARD_NAME_LEN], _atoi(kind), bool(_atoi(used)))
        for name, kind, used in triples
    ]


def parse_nickname_check(response: str) -> Availability:
    if response.startswith("NICKNAME_AVAILABLE"):
        return Availability.AVAILABLE
    if response.startswith("NICKNAME_TAKEN"):
        return Availability.DUPLICATED
    return Availability.ERROR


def parse_nickname_edit_response(response: str) -> NicknameEditResult:
    if "NICKNAME_EDIT_OK" in response:
        return NicknameEditResult.SUCCESS
    if response == "INVALID_TOKEN":
        return NicknameEditResult.INVALID_TOKEN
    return NicknameEditResult.ERROR


def match_progress(count: int) -> int:
    """Progress percentage for ``count`` queued players, held below 100."""
    progress = abs(count) * 100 // ROOM_PLAYERS
    if count < 0:
        progress = -progress
    return 90 if progress >= 100 else progress