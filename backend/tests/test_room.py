"""Unit tests for room membership and the move/reset state machine."""

import pytest

from xo_rooms.game import Mark
from xo_rooms.room import Role, Room


@pytest.fixture
def room():
    return Room(id="ABC123")


@pytest.fixture
def full_room(room):
    room.assign_role("conn1", "u1", "Alice")
    room.assign_role("conn2", "u2", "Bob")
    return room


def test_assignment_order(room):
    assert room.assign_role("conn1", "u1", "Alice") is Role.X
    assert room.assign_role("conn2", "u2", "Bob") is Role.O
    assert room.assign_role("conn3", "u3", "Carol") is Role.SPECTATOR
    assert room.role_of("conn1") is Role.X
    assert room.role_of("conn2") is Role.O
    assert room.role_of("conn3") is Role.SPECTATOR
    assert room.role_of("nobody") is None
    assert room.player_count == 2
    assert room.spectator_count == 1


def test_reconnect_reclaims_same_mark(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    full_room.assign_role("conn4", "u4", "Dave")
    assert full_room.assign_role("conn2-new", "u2", "Bob") is Role.O
    assert full_room.role_of("conn2-new") is Role.O
    assert full_room.role_of("conn2") is None
    assert full_room.player_count == 2
    assert full_room.spectator_count == 2


def test_stale_connection_does_not_evict_reclaimed_seat(full_room):
    full_room.assign_role("conn1-new", "u1", "Alice")
    result = full_room.remove_player("conn1")
    assert result.removed_role is None
    assert full_room.role_of("conn1-new") is Role.X
    assert full_room.get_state().name_x == "Alice"


def test_new_room_state(room):
    room.assign_role("conn1", "u1", "Alice")
    state = room.get_state()
    assert state.board == (None,) * 9
    assert state.next_mark is Mark.X
    assert state.name_x == "Alice"
    assert state.name_o is None
    assert state.winner is None
    assert not state.is_tie


def test_move_scenario(full_room):
    assert full_room.make_move("conn1", 4)
    assert full_room.board[4] is Mark.X
    assert full_room.next_mark is Mark.O
    assert not full_room.make_move("conn2", 4)
    assert full_room.board[4] is Mark.X
    assert full_room.next_mark is Mark.O
    assert full_room.make_move("conn2", 0)
    assert full_room.board[0] is Mark.O


@pytest.mark.parametrize("index", [-1, 9, 42, "4", None, 1.0, True])
def test_invalid_index_rejected(full_room, index):
    assert not full_room.make_move("conn1", index)
    assert full_room.board == [None] * 9
    assert full_room.next_mark is Mark.X


def test_wrong_turn_and_spectator_rejected(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    assert not full_room.make_move("conn2", 0)
    assert not full_room.make_move("conn3", 0)
    assert not full_room.make_move("stranger", 0)
    assert full_room.board == [None] * 9


def test_no_moves_after_win(full_room):
    for conn, index in [("conn1", 0), ("conn2", 3), ("conn1", 1), ("conn2", 4)]:
        assert full_room.make_move(conn, index)
    assert full_room.get_state().winner is None
    assert full_room.make_move("conn1", 2)
    state = full_room.get_state()
    assert state.winner is Mark.X
    assert not state.is_tie
    board_before = list(full_room.board)
    assert not full_room.make_move("conn2", 5)
    assert full_room.board == board_before
    assert full_room.get_state().winner is Mark.X


def test_tie_detected(full_room):
    # X O X / X O O / O X X
    moves = [("conn1", 0), ("conn2", 1), ("conn1", 2), ("conn2", 4), ("conn1", 3),
             ("conn2", 5), ("conn1", 7), ("conn2", 6), ("conn1", 8)]
    for conn, index in moves:
        assert full_room.make_move(conn, index)
    state = full_room.get_state()
    assert state.winner is None
    assert state.is_tie


def test_reset_alternates_starting_mark(full_room):
    full_room.make_move("conn1", 4)
    assert full_room.reset("conn2")
    assert full_room.board == [None] * 9
    assert full_room.starting_mark is Mark.O
    assert full_room.next_mark is Mark.O
    assert not full_room.make_move("conn1", 0)
    assert full_room.make_move("conn2", 0)
    assert full_room.reset("conn1")
    assert full_room.starting_mark is Mark.X
    assert full_room.next_mark is Mark.X


def test_spectator_cannot_reset(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    full_room.make_move("conn1", 4)
    assert not full_room.reset("conn3")
    assert not full_room.reset("stranger")
    assert full_room.board[4] is Mark.X
    assert full_room.starting_mark is Mark.X


def test_promotion_is_fifo(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    full_room.assign_role("conn4", "u4", "Dave")
    result = full_room.remove_player("conn1")
    assert result.removed_role is Role.X
    assert result.promoted_conn_id == "conn3"
    assert full_room.role_of("conn3") is Role.X
    assert full_room.role_of("conn4") is Role.SPECTATOR
    assert full_room.get_state().name_x == "Carol"


def test_promoted_identity_reclaims_after_reconnect(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    full_room.remove_player("conn2")
    assert full_room.role_of("conn3") is Role.O
    assert full_room.assign_role("conn3-new", "u3", "Carol") is Role.O


def test_disconnect_scenario_with_spectator(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    result = full_room.remove_player("conn1")
    assert result.promoted_conn_id == "conn3"
    assert full_room.role_of("conn3") is Role.X
    assert full_room.role_of("conn2") is Role.O
    assert full_room.spectator_count == 0
    info = full_room.get_info()
    assert info.player_count == 2
    assert not info.has_space


def test_remove_without_spectators_frees_seat(full_room):
    result = full_room.remove_player("conn2")
    assert result.removed_role is Role.O
    assert result.promoted_conn_id is None
    assert full_room.get_info().has_space
    assert full_room.assign_role("conn5", "u5", "Eve") is Role.O


def test_remove_spectator(full_room):
    full_room.assign_role("conn3", "u3", "Carol")
    result = full_room.remove_player("conn3")
    assert result.removed_role is Role.SPECTATOR
    assert result.promoted_conn_id is None
    assert full_room.spectator_count == 0


def test_is_empty(room):
    assert room.is_empty()
    room.assign_role("conn1", "u1", "Alice")
    room.assign_role("conn2", "u2", "Bob")
    room.assign_role("conn3", "u3", "Carol")
    room.remove_player("conn1")
    room.remove_player("conn2")
    assert not room.is_empty()
    room.remove_player("conn3")
    assert room.is_empty()


def test_get_info(room):
    room.assign_role("conn1", "u1", "Alice")
    info = room.get_info()
    assert info.id == "ABC123"
    assert info.player_count == 1
    assert info.spectator_count == 0
    assert info.has_space


def test_same_user_spectating_twice_holds_one_queue_entry(full_room):
    full_room.assign_role("a1", "ua", "Ann")
    assert full_room.assign_role("a2", "ua", "Ann") is Role.SPECTATOR
    assert full_room.spectator_count == 1
    assert full_room.role_of("a1") is None
    assert full_room.role_of("a2") is Role.SPECTATOR


def test_one_user_is_never_promoted_into_both_marks(room):
    room.assign_role("b", "ub", "Bob")
    room.assign_role("c", "uc", "Carol")
    room.assign_role("a1", "ua", "Ann")
    room.assign_role("d", "ud", "Dave")
    room.assign_role("a2", "ua", "Ann")
    assert room.remove_player("b").promoted_conn_id == "a2"
    assert room.remove_player("c").promoted_conn_id == "d"
    assert room.role_of("a2") is Role.X
    assert room.role_of("d") is Role.O
    assert room.role_of("a1") is None
    assert room.spectator_count == 0


def test_rebound_spectator_keeps_queue_position(full_room):
    full_room.assign_role("a1", "ua", "Ann")
    full_room.assign_role("d", "ud", "Dave")
    full_room.assign_role("a2", "ua", "Ann")
    assert list(full_room.spectators) == ["a2", "d"]
