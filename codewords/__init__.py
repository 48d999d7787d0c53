"""Team word-guessing board game: protocol, game rules, matchmaking pieces and curses client screens."""

__version__ = "0.1.0"