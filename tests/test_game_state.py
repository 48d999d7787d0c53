import pytest

from codewords.game_state import (
    ChatLog,
    GameState,
    InputMode,
    LineBuffer,
    Result,
    chat_visible,
)
from codewords.protocol import Card, GameInitInfo, PlayerEntry, encode_all_cards


def make_state(my_index=0):
    players = tuple(
        PlayerEntry(f"p{i}", i, 0 if i < 3 else 1, i in (0, 3)) for i in range(6)
    )
    return GameState(GameInitInfo(players, my_index))


def full_board():
    return [Card(f"w{i}", i % 4, i % 2 == 0) for i in range(25)]


def test_line_buffer_joins_partial_lines():
    buf = LineBuffer()
    assert buf.feed(b"SESSION_") == []
    assert buf.feed(b"ACK\nCHAT|2") == ["SESSION_ACK"]
    assert buf.pending == b"CHAT|2"


def test_line_buffer_skips_empty_lines_and_accepts_text():
    buf = LineBuffer()
    assert buf.feed("a\n\nb\n") == ["a", "b"]
    assert buf.pending == b""


def test_line_buffer_limit_drops_overflow():
    buf = LineBuffer(limit=4)
    assert buf.feed(b"abcdef") == []
    assert buf.pending == b"abcd"


def test_chat_log_keeps_newest_entries():
    log = ChatLog(capacity=3)
    for i in range(5):
        log.append(f"m{i}")
    assert [e.text for e in log] == ["m2", "m3", "m4"]


def test_chat_log_scroll_bounds_and_reset_on_append():
    log = ChatLog()
    log.scroll_down()
    assert log.scroll_offset == 0
    for i in range(3):
        log.append(f"m{i}")
    for _ in range(5):
        log.scroll_up()
    assert log.scroll_offset == 2
    log.append("new")
    assert log.scroll_offset == 0


def test_chat_log_visible_window():
    log = ChatLog()
    for i in range(15):
        log.append(f"m{i}")
    assert [e.text for e in log.visible(10)] == [f"m{i}" for i in range(5, 15)]
    log.scroll_up()
    assert [e.text for e in log.visible(10)] == [f"m{i}" for i in range(4, 14)]


def test_chat_log_truncates_long_entries():
    log = ChatLog()
    log.append("x" * 300)
    log.append("y" * 300, 2)
    texts = [e.text for e in log]
    assert len(texts[0]) == 127
    assert len(texts[1]) < 127


@pytest.mark.parametrize(
    "sender_team, sender_leader, my_team, my_leader, expected",
    [
        (2, True, 0, False, True),
        (0, False, 0, False, True),
        (0, True, 0, True, True),
        (0, True, 0, False, False),
        (1, False, 0, True, True),
        (1, True, 0, True, True),
        (1, True, 0, False, False),
    ],
)
def test_chat_visible(sender_team, sender_leader, my_team, my_leader, expected):
    assert chat_visible(sender_team, sender_leader, my_team, my_leader) is expected


def test_session_ack_requests_cards():
    state = make_state()
    assert state.handle_line("SESSION_ACK") == ["GET_ALL_CARDS\n"]


def test_all_cards_round_trip():
    state = make_state()
    board = full_board()
    assert state.handle_line(encode_all_cards(board)) == []
    assert state.cards == board
    assert state.cards_initialized is True


def test_all_cards_with_wrong_count_is_ignored():
    state = make_state()
    state.handle_line("ALL_CARDS|a|1|0")
    assert state.cards_initialized is False
    assert all(card.name == "" for card in state.cards)


def test_card_update_marks_card_used():
    state = make_state()
    state.handle_line("CARD_UPDATE|4|1")
    assert state.cards[4].used is True
    state.handle_line("CARD_UPDATE|99|1")
    assert sum(card.used for card in state.cards) == 1


def test_turn_update_sets_leader_hint_mode_and_announces():
    state = make_state(0)
    state.handle_line("TURN_UPDATE|0|0|0|0")
    assert state.mode is InputMode.HINT
    assert state.is_my_turn() is True
    assert [e.text for e in state.chat] == ["[레드팀의 팀장 턴입니다.]"]
    state.handle_line("TURN_UPDATE|0|0|1|0")
    assert len(state.chat) == 1
    assert state.red_score == 1


def test_turn_update_for_member_gives_answer_mode():
    state = make_state(1)
    state.handle_line("TURN_UPDATE|0|1|0|0")
    assert state.mode is InputMode.ANSWER
    state.handle_line("TURN_UPDATE|1|0|0|0")
    assert state.mode is InputMode.NONE
    assert state.is_my_turn() is False


def test_system_turn_update_only_changes_scores():
    state = make_state(0)
    state.handle_line("TURN_UPDATE|0|1|3|2")
    state.handle_line("TURN_UPDATE|2|1|4|5")
    assert (state.turn_team, state.red_score, state.blue_score) == (0, 4, 5)


def test_hint_line_records_and_announces():
    state = make_state()
    state.handle_line("HINT|1|apple|2")
    assert (state.turn_team, state.hint_word, state.hint_count) == (1, "apple", 2)
    assert "apple" in list(state.chat)[-1].text


def test_chat_line_colored_and_system():
    state = make_state(1)
    state.handle_line("CHAT|1|0|p4|hello|there")
    state.handle_line("CHAT|2|0|SYSTEM|start")
    state.handle_line("CHAT|0|1|p0|secret")
    entries = list(state.chat)
    assert [(e.text, e.color) for e in entries] == [
        ("p4: hello|there", 3),
        ("[start]", None),
    ]


def test_report_ok_suspended_and_plain():
    state = make_state()
    state.handle_line("REPORT_OK|3|SUSPENDED")
    state.handle_line("REPORT_OK|1")
    texts = [e.text for e in state.chat]
    assert texts[-1] == "[신고 완료] 누적 신고 1회"
    assert texts[0].startswith("[신고 완료] 누적 3회")
    assert state.report_completed == 1


def test_report_error_marks_failure():
    state = make_state()
    state.handle_line("REPORT_ERROR|USER_NOT_FOUND")
    assert state.report_completed == -1


@pytest.mark.parametrize("winner, expected", [(0, Result.WIN), (1, Result.LOSE)])
def test_game_over_sets_result_and_quits(winner, expected):
    state = make_state(0)
    assert state.handle_line(f"GAME_OVER|{winner}") == ["GAME_QUIT\n"]
    assert state.winner_team == winner
    assert state.result is expected
    assert state.game_over is True


def test_toggle_mode_between_chat_and_turn_input():
    state = make_state(0)
    state.handle_line("TURN_UPDATE|0|0|0|0")
    assert state.toggle_mode() is InputMode.CHAT
    assert state.toggle_mode() is InputMode.HINT
    state.toggle_mode()
    state.hint_word = "apple"
    assert state.toggle_mode() is InputMode.LINK


def test_hint_then_link_submission():
    state = make_state(0)
    state.handle_line("TURN_UPDATE|0|0|0|0")
    assert state.submit("apple", "token") is None
    assert state.mode is InputMode.LINK
    assert state.submit("2", "token") == "HINT|apple|2\n"
    assert state.mode is InputMode.NONE


def test_chat_and_answer_submission():
    state = make_state(1)
    state.mode = InputMode.CHAT
    assert state.submit("", "token") is None
    assert state.submit("hi", "token") == "CHAT|hi\n"
    state.mode = InputMode.ANSWER
    assert state.submit("pear", "token") == "ANSWER|pear\n"


def test_report_selection_and_submission():
    state = make_state()
    assert state.move_report_selection(1) == 0
    state.enter_report_mode()
    for _ in range(10):
        state.move_report_selection(1)
    assert state.report_selected_index == 5
    assert state.submit("", "token") == "REPORT|token|p5\n"
    assert state.mode is InputMode.CHAT


def test_cards_valid_and_reset():
    state = make_state()
    assert state.cards_valid() is False
    state.cards = [Card(f"w{i}", 1, False) for i in range(25)]
    assert state.cards_valid() is True
    state.handle_line("TURN_UPDATE|0|0|2|3")
    state.reset()
    assert state.cards_valid() is False
    assert (state.red_score, state.turn_team, len(state.chat)) == (0, -1, 0)
    assert state.mode is InputMode.NONE