"""Progress screen shown while a background task runs."""

from __future__ import annotations

import curses
import enum
import threading
import time
from typing import Callable

from .ui import _quiet, centered_x, draw_border

MESSAGE_LIMIT = 255
CANCEL_MESSAGE = "Press Q to cancel"
_CANCEL_KEYS = (ord("q"), ord("Q"))


class WaitingResult(enum.Enum):
    SUCCESS = enum.auto()
    CANCELED = enum.auto()
    FAILED = enum.auto()


class TaskStatus:
    """Progress shared between a worker thread and the waiting screen."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.progress = 0
        self.done = False
        self.success = False

    def update(self, progress: int, done: bool, success: bool) -> None:
        with self._lock:
            self.progress = progress
            self.done = done
            self.success = success

    def snapshot(self) -> tuple[int, bool, bool]:
        with self._lock:
            return self.progress, self.done, self.success


def progress_bar(progress: int, length: int) -> str:
    """Render ``[###---]`` for a 0-100 progress value."""
    filled = min(max(progress * length // 100, 0), length)
    return "[" + "#" * filled + "-" * (length - filled) + "]"


class WaitingScreen:
    """Message, progress bar and optional cancel hint."""

    def __init__(self, message: str = "Loading...", bar_length: int = 30,
                 poll_interval: float = 0.5) -> None:
        self._lock = threading.Lock()
        self.message = message[:MESSAGE_LIMIT]
        self.cancel_enabled = True
        self.bar_length = bar_length
        self.poll_interval = poll_interval

    def set_message(self, message: str) -> None:
        with self._lock:
            self.message = message[:MESSAGE_LIMIT]

    def set_cancel_enabled(self, enabled: bool) -> None:
        with self._lock:
            self.cancel_enabled = enabled

    def outcome(self, key: int, progress: int, done: bool,
                success: bool) -> WaitingResult | None:
        """Decide whether waiting ends; ``None`` means keep waiting."""
        if key in _CANCEL_KEYS and self.cancel_enabled:
            return WaitingResult.CANCELED
        if progress >= 100:
            if not done:
                return WaitingResult.CANCELED
            return WaitingResult.SUCCESS if success else WaitingResult.FAILED
        return None

    def draw(self, win, progress: int) -> None:
        win.clear()
        lines, cols = win.getmaxyx()
        y_center, x_center = lines // 2, cols // 2
        with self._lock:
            message, cancel_enabled = self.message, self.cancel_enabled
        _quiet(win.addstr, y_center - 2, centered_x(cols, message), message)
        bar_start = x_center - (self.bar_length // 2 + 1)
        _quiet(win.addstr, y_center, bar_start, progress_bar(progress, self.bar_length))
        if cancel_enabled:
            _quiet(win.addstr, y_center + 2, centered_x(cols, CANCEL_MESSAGE), CANCEL_MESSAGE)
        draw_border(win)
        win.refresh()

    def run(self, stdscr, status: TaskStatus,
            worker: Callable[[TaskStatus], object]) -> WaitingResult:
        """Run ``worker(status)`` in a thread and animate until it settles."""
        thread = threading.Thread(target=worker, args=(status,), daemon=True)
        try:
            thread.start()
        except RuntimeError:
            return WaitingResult.FAILED

        _quiet(curses.noecho)
        _quiet(curses.curs_set, 0)
        stdscr.nodelay(True)
        stdscr.keypad(True)

        while True:
            key = stdscr.getch()
            progress, done, success = status.snapshot()
            result = self.outcome(key, progress, done, success)
            if result is WaitingResult.CANCELED and progress < 100:
                return result
            self.draw(stdscr, progress)
            if result is not None:
                return result
            time.sleep(self.poll_interval)