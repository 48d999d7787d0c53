import curses
from unittest.mock import MagicMock

import pytest

from codewords.game_session import SessionPlayer
from codewords.lobby import (
    ACTION_EDIT,
    ACTION_ESCAPE,
    ACTION_MATCH,
    ACTION_QUIT,
    LobbyField,
    LobbyForm,
    _apply_edit,
    cancel_matching,
    check_nickname,
    edit_nickname,
    fetch_user_info,
    wait_for_match,
)
from codewords.protocol import (
    ProtocolError,
    Scene,
    format_game_init,
    match_progress,
    parse_game_init,
    parse_nickname_check,
    parse_nickname_edit_response,
    parse_user_info,
)

USER_REPLY = "NICKNAME|alice|WINS|3|LOSSES|1"


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


class FakeStatus:
    def __init__(self):
        self.updates = []

    def update(self, progress, done, success):
        self.updates.append((progress, done, success))


class FakeScreen:
    def __init__(self):
        self.messages = []
        self.cancel_enabled = True

    def set_message(self, message):
        self.messages.append(message)

    def set_cancel_enabled(self, enabled):
        self.cancel_enabled = enabled


def _players():
    return [SessionPlayer(f"p{i}", i, 0 if i < 3 else 1, i in (0, 3)) for i in range(6)]


def _texts(win):
    return [c.args[2] for c in win.addstr.call_args_list if len(c.args) >= 3]


def test_fetch_user_info_round_trip():
    link = FakeLink(USER_REPLY)
    info = fetch_user_info(link, "token")
    assert info == parse_user_info(USER_REPLY)
    assert link.sent == ["TOKEN|token"]


def test_fetch_user_info_invalid_token():
    with pytest.raises(PermissionError):
        fetch_user_info(FakeLink("INVALID_TOKEN"), "token")


def test_fetch_user_info_error_reply():
    with pytest.raises(ProtocolError):
        fetch_user_info(FakeLink("ERROR"), "token")


def test_fetch_user_info_disconnect():
    with pytest.raises(ConnectionError):
        fetch_user_info(FakeLink(), "token")


def test_check_nickname_sends_request():
    link = FakeLink("NICKNAME_TAKEN")
    assert check_nickname(link, "bob") == parse_nickname_check("NICKNAME_TAKEN")
    assert link.sent == ["CHECK_NICKNAME|bob"]


def test_edit_nickname_sends_request():
    link = FakeLink("NICKNAME_EDIT_OK")
    assert edit_nickname(link, "token", "bob") == parse_nickname_edit_response("NICKNAME_EDIT_OK")
    assert link.sent == ["EDIT_NICK|token|bob"]


def test_cancel_matching():
    link = FakeLink("CANCEL_OK\n")
    assert cancel_matching(link, "token") is True
    assert link.sent == ["MATCHING_CANCEL|token"]
    assert cancel_matching(FakeLink("WAIT_REPLY|2\n"), "token") is False


def test_wait_for_match_full_flow():
    init_line = format_game_init(_players())
    link = FakeLink("WAIT_REPLY|3\n", "QUEUE_FULL\n", init_line + "\n", "GAME_START|0\n")
    status, screen = FakeStatus(), FakeScreen()
    info = wait_for_match(link, "token", "p2", status, screen)
    assert info == parse_game_init(init_line, "p2")
    assert status.updates[0] == (match_progress(3), False, False)
    assert status.updates[1] == (90, False, False)
    assert status.updates[-1] == (100, True, True)
    assert screen.cancel_enabled is False
    assert link.sent == ["CMD|QUERY_WAIT|token", "READY_TO_GO\n", "READY_TO_GO\n",
                         "SESSION_READY|token\n"]


def test_wait_for_match_lines_split_across_reads():
    init_line = format_game_init(_players())
    half = len(init_line) // 2
    link = FakeLink(init_line[:half], init_line[half:] + "\nGAME_START|1\n")
    status = FakeStatus()
    info = wait_for_match(link, "token", "p0", status, FakeScreen())
    assert info == parse_game_init(init_line, "p0")
    assert status.updates[-1] == (100, True, True)


def test_wait_for_match_bad_init():
    link = FakeLink("GAME_INIT|x\n")
    status, screen = FakeStatus(), FakeScreen()
    assert wait_for_match(link, "token", "p0", status, screen) is None
    assert status.updates[-1] == (100, True, False)
    assert screen.messages[-1] == "게임 정보 파싱 실패"


def test_wait_for_match_disconnect():
    status, screen = FakeStatus(), FakeScreen()
    assert wait_for_match(FakeLink(), "token", "p0", status, screen) is None
    assert status.updates == [(100, True, False)]
    assert screen.messages[-1] == "서버 응답 없음"


def test_form_navigation_and_typing():
    form = LobbyForm("al")
    assert form.field is LobbyField.MATCH_BUTTON
    assert form.handle_key(curses.KEY_UP) is None
    assert form.field is LobbyField.NICKNAME_INPUT
    form.handle_key("x")
    assert form.nickname == "alx"
    assert form.edit_pending is True
    form.handle_key(127)
    assert form.nickname == "al"
    form.handle_key(curses.KEY_RIGHT)
    assert form.field is LobbyField.NICKNAME_EDIT_BUTTON
    assert form.handle_key(10) == ACTION_EDIT
    form.handle_key(curses.KEY_DOWN)
    assert form.field is LobbyField.MATCH_BUTTON
    assert form.handle_key(10) == ACTION_MATCH


def test_form_up_from_input_returns_to_match():
    form = LobbyForm("al")
    form.handle_key(curses.KEY_UP)
    form.handle_key(curses.KEY_UP)
    assert form.field is LobbyField.MATCH_BUTTON


def test_form_quit_and_escape():
    form = LobbyForm("al")
    assert form.handle_key("q") == ACTION_QUIT
    assert form.handle_key(27) == ACTION_ESCAPE
    assert form.touched is True


def test_form_typing_only_in_input_and_limited():
    form = LobbyForm("al")
    form.handle_key("z")
    assert form.nickname == "al"
    form.handle_key(curses.KEY_UP)
    for _ in range(40):
        form.handle_key("a")
    assert len(form.nickname) == 31


def test_draw_shows_pending_hint_and_record():
    info = parse_user_info(USER_REPLY)
    form = LobbyForm(info.nickname)
    form.handle_key(curses.KEY_UP)
    win = MagicMock()
    win.getmaxyx.return_value = (40, 120)
    form.draw(win, info)
    texts = _texts(win)
    assert "엔터 혹은 [닉네임 수정] 버튼을 선택하여야 닉네임이 수정됩니다." in texts
    assert "전적: 승 3 / 패 1" in texts
    assert "[ 랜덤 매칭 시작 ]" in texts
    assert any(t.startswith("승률: ") for t in texts)


def test_apply_edit_success():
    form = LobbyForm("bob")
    game_link = FakeLink("NICKNAME_AVAILABLE")
    secure_link = FakeLink("NICKNAME_EDIT_OK")
    assert _apply_edit(form, game_link, secure_link, "token") is None
    assert form.modified is True
    assert form.edit_pending is False
    assert secure_link.sent == ["EDIT_NICK|token|bob"]

    form.touched = True
    win = MagicMock()
    win.getmaxyx.return_value = (40, 120)
    form.draw(win, parse_user_info(USER_REPLY))
    assert "닉네임이 성공적으로 수정되었습니다." in _texts(win)
    assert form.touched is False


def test_apply_edit_taken_skips_edit():
    form = LobbyForm("bob")
    secure_link = FakeLink("NICKNAME_EDIT_OK")
    assert _apply_edit(form, FakeLink("NICKNAME_TAKEN"), secure_link, "token") is None
    assert form.availability == parse_nickname_check("NICKNAME_TAKEN")
    assert secure_link.sent == []


def test_apply_edit_invalid_token():
    form = LobbyForm("bob")
    scene = _apply_edit(form, FakeLink("NICKNAME_AVAILABLE"), FakeLink("INVALID_TOKEN"), "token")
    assert scene is Scene.INVALID_TOKEN


def test_apply_edit_check_failure():
    form = LobbyForm("bob")
    assert _apply_edit(form, FakeLink(), FakeLink(), "token") is Scene.ERROR