from unittest.mock import MagicMock

import pytest

from codewords.game_state import Result
from codewords.protocol import Scene
from codewords.result import (
    draw_result,
    format_result_request,
    result_banner,
    send_game_result,
    winner_message,
)


class FakeLink:
    def __init__(self, *replies):
        self.replies = [r.encode("utf-8") if isinstance(r, str) else r for r in replies]
        self.sent = []
        self.closed = False

    def sendall(self, data):
        self.sent.append(data.decode("utf-8"))

    def recv(self, size):
        return self.replies.pop(0) if self.replies else b""

    def close(self):
        self.closed = True


def _texts(win):
    return [c.args[2] for c in win.addstr.call_args_list if len(c.args) >= 3]


def test_banners():
    assert result_banner(Result.WIN) == "Y O U   W I N !"
    assert result_banner(Result.LOSE) == "Y O U   L O S E !"
    assert result_banner(None) == ""


def test_winner_messages():
    assert winner_message(0) == "빨간 팀이 이겼습니다"
    assert winner_message(1) == "파란 팀이 이겼습니다"
    assert winner_message(-1) == ""


def test_format_result_request():
    assert format_result_request("token", Result.WIN) == "RESULT|token|WIN"
    assert format_result_request("token", Result.LOSE) == "RESULT|token|LOSS"


def test_format_result_request_rejects_unknown():
    with pytest.raises(ValueError):
        format_result_request("token", None)


def test_send_game_result_ok():
    link = FakeLink("RECORDED")
    assert send_game_result(link, "token", Result.WIN) is Scene.MAIN
    assert link.sent == ["RESULT|token|WIN"]
    assert link.closed is False


def test_send_game_result_invalid_token_closes():
    link = FakeLink("INVALID_TOKEN")
    assert send_game_result(link, "token", Result.LOSE) is Scene.INVALID_TOKEN
    assert link.closed is True


def test_send_game_result_error_reply():
    link = FakeLink("ERROR")
    assert send_game_result(link, "token", Result.LOSE) is Scene.ERROR
    assert link.closed is True


def test_send_game_result_disconnect():
    link = FakeLink()
    assert send_game_result(link, "token", Result.WIN) is Scene.ERROR


def test_send_game_result_bad_result_sends_nothing():
    link = FakeLink("RECORDED")
    assert send_game_result(link, "token", None) is Scene.ERROR
    assert link.sent == []


def test_draw_result_shows_scores_and_winner():
    win = MagicMock()
    win.getmaxyx.return_value = (40, 100)
    draw_result(win, 3, 8, Result.LOSE, 1)
    texts = _texts(win)
    assert "Y O U   L O S E !" in texts
    assert "파란 팀이 이겼습니다" in texts
    assert "RED TEAM : 3" in texts
    assert "BLUE TEAM : 8" in texts
    assert "Enter" in texts


def test_draw_result_scores_share_column():
    win = MagicMock()
    win.getmaxyx.return_value = (40, 100)
    draw_result(win, 1, 2, Result.WIN, 0)
    calls = {c.args[2]: c.args[:2] for c in win.addstr.call_args_list if len(c.args) >= 3}
    red_y, red_x = calls["RED TEAM : 1"]
    blue_y, blue_x = calls["BLUE TEAM : 2"]
    assert red_x == blue_x
    assert blue_y == red_y + 1
    assert "빨간 팀이 이겼습니다" in calls