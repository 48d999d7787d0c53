# codewords

Building blocks for a team word-guessing board game for six players,
played over the network from a terminal.

Two teams, red and blue, each have a leader and two members. The board
holds 25 word cards: 9 red, 8 blue, 7 neutral and one assassin. On its
turn a team's leader gives a one-word hint and a number of links. The
members then guess words from the board. Picking your own team's card
scores. Picking the other team's card gives that team a point and ends
the turn. Picking a neutral card ends the turn. Picking the assassin ends
the game, and the team not in turn wins. Red wins at 9 points, blue at 8.

## Installing

```
pip install .
```

The package needs only the Python standard library (Python 3.10 or later).

## The modules

- `codewords.protocol`: the line protocol shared by client and server.
  - Parsers and formatters for user info (`parse_user_info`,
    `format_user_info`), game setup (`parse_game_init`,
    `format_game_init`) and the card list (`encode_all_cards`,
    `parse_all_cards`).
  - Nickname replies: `parse_nickname_check` and
    `parse_nickname_edit_response`.
  - `match_progress`.
  - The data classes `Card`, `PlayerEntry`, `GameInitInfo` and `UserInfo`.
  - A malformed message raises `ProtocolError`.
- `codewords.game_session`: the rules of a running game.
  - `GameSession` holds the board, the scores, the turn and an event queue.
  - `assign_cards` deals a board from 25 words.
  - `load_words` reads them from a file.
- `codewords.matchmaking`: pieces for forming rooms.
  - `WaitingQueue` hands a full room to a callback.
  - `ReadyBarrier` counts two rounds of readiness.
  - `SessionRegistry` holds a fixed number of slots for running games.
  - `build_players` seats queued players into teams.
- `codewords.game_state`: the client's view of a game.
  - `GameState.handle_line` applies server lines.
  - `GameState.submit` turns typed input into requests.
  - `ChatLog` keeps a bounded, scrollable chat history.
  - `LineBuffer` splits received bytes into lines.
- `codewords.game_screen`: `GameScreen`, the curses game view.
  - It draws the board, the team panel and the chat log.
  - A listener thread reads from the game socket while keys are handled.
- `codewords.lobby`: the curses lobby (`lobby_screen`).
  - It shows the player's record and allows nickname editing.
  - It starts random matching through `wait_for_match` and hands over to
    the game screen.
- `codewords.waiting`: `WaitingScreen`, a progress screen that runs a
  worker thread with a shared `TaskStatus`.
- `codewords.result`: the end-of-game screen (`result_screen`).
  - `send_game_result` reports a result over a connection.
- `codewords.ui`: shared drawing helpers.
  - The logo art, box borders and `show_invalid_token`.

## Example

Running a game's rules without any network:

```python
import random
from codewords.game_session import (
    EventType, GameEvent, GameSession, SessionPlayer, assign_cards,
)

words = [f"word{i}" for i in range(25)]
cards = assign_cards(words, random.Random(1))
players = [
    SessionPlayer(f"p{i}", i, 0 if i < 3 else 1, i in (0, 3))
    for i in range(6)
]
session = GameSession(players, cards)
session.handle_event(GameEvent(EventType.HINT, 0, "HINT|river|2"))
print(session.phase, session.hint_word, session.remaining_tries)  # 1 river 2
```

Players without a socket receive nothing. With sockets attached, every
broadcast is sent to each of them as one line.

## What this package does not do

- It has no network server. Nothing here listens on a port, accepts
  clients or routes their requests to `WaitingQueue`, `ReadyBarrier`,
  `SessionRegistry` and `GameSession`. That wiring is left to the caller.
- It stores no accounts. It has no sign-up, login, token issuing, reports
  or saved game results. `GameSession.finish` and `GameSession.run` only
  call the `save_result` function they are given.
- It has no login or sign-up screens.
- It installs no command. The curses screens are functions that take a
  curses window and already-connected sockets.

## Tests

```
pip install ".[test]"
pytest
```