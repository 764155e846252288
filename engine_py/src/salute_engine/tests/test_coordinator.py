"""
Tests for the room coordinator and store.
"""

import random

from salute_engine.coordinator import RoomCoordinator
from salute_engine.errors import (
    INTERNAL_ERROR, NOT_YOUR_TURN, ROOM_NOT_FOUND, PersistenceError,
)
from salute_engine.persistence import NullRoomRepository
from salute_engine.rules import RoomSettings
from salute_engine.serialization import state_to_dict
from salute_engine.store import RoomStore


class RecordingRepository(NullRoomRepository):
    def __init__(self, rooms=None):
        self.rooms = dict(rooms or {})
        self.saved = []
        self.rounds = []
        self.cutoffs = []

    def load_room(self, code):
        return self.rooms.get(code)

    def save_room(self, state):
        self.saved.append(state.version)

    def record_round(self, state, round_result):
        self.rounds.append(round_result)

    def delete_expired_rooms(self, cutoff):
        self.cutoffs.append(cutoff)
        return 0


class BrokenRepository(NullRoomRepository):
    def load_room(self, code):
        raise PersistenceError("database is down")

    def save_room(self, state):
        raise PersistenceError("database is down")

    def delete_expired_rooms(self, cutoff):
        raise PersistenceError("database is down")


def _codes(*codes):
    remaining = list(codes)
    return lambda: remaining.pop(0)


def _coordinator(**kwargs):
    kwargs.setdefault("rng", random.Random(5))
    kwargs.setdefault("code_factory", _codes("AAAAAA", "BBBBBB", "CCCCCC"))
    return RoomCoordinator(**kwargs)


def test_create_room_stores_state():
    """Test a created room can be fetched by its code."""
    coordinator = _coordinator()
    result = coordinator.create_room("Alice", "alice", RoomSettings(total_rounds=4))

    assert result.success
    assert result.state.room_code == "AAAAAA"
    assert coordinator.get_room("AAAAAA").total_rounds == 4


def test_create_room_retries_on_collision():
    """Test a colliding code is regenerated."""
    coordinator = _coordinator(code_factory=_codes("AAAAAA", "AAAAAA", "BBBBBB"))
    coordinator.create_room("Alice", "alice")
    second = coordinator.create_room("Bob", "bob")

    assert second.state.room_code == "BBBBBB"
    assert len(coordinator.store) == 2


def test_create_room_gives_up_after_retries():
    """Test code allocation fails cleanly when every code is taken."""
    coordinator = RoomCoordinator(code_factory=lambda: "AAAAAA")
    coordinator.create_room("Alice", "alice")
    result = coordinator.create_room("Bob", "bob")

    assert not result.success
    assert result.error_code == INTERNAL_ERROR


def test_create_room_with_taken_code():
    """Test an explicit code must be free."""
    coordinator = _coordinator()
    coordinator.create_room("Alice", "alice", room_code="ZZZZZZ")
    result = coordinator.create_room("Bob", "bob", room_code="ZZZZZZ")
    assert result.error_code == INTERNAL_ERROR


def test_unknown_room():
    """Test operations on a missing room report not found."""
    coordinator = _coordinator()
    for result in (
        coordinator.join_room("NOPE00", "Bob", "bob"),
        coordinator.start_game("NOPE00", "alice"),
        coordinator.play_cards("NOPE00", "alice", ["x"]),
        coordinator.draw_card("NOPE00", "alice", "deck"),
        coordinator.call_win("NOPE00", "alice"),
        coordinator.next_round("NOPE00"),
        coordinator.disconnect_player("NOPE00", "alice"),
    ):
        assert result.error_code == ROOM_NOT_FOUND


def test_rejected_action_not_committed():
    """Test a failed operation leaves the stored state as it was."""
    coordinator = _coordinator()
    coordinator.create_room("Alice", "alice")
    coordinator.join_room("AAAAAA", "Bob", "bob")
    coordinator.start_game("AAAAAA", "alice")
    before = state_to_dict(coordinator.get_room("AAAAAA"))

    bob_card = coordinator.get_room("AAAAAA").get_player("bob").hand[0]
    result = coordinator.play_cards("AAAAAA", "bob", [bob_card.id])

    assert result.error_code == NOT_YOUR_TURN
    assert state_to_dict(coordinator.get_room("AAAAAA")) == before


def test_successful_actions_are_saved():
    """Test each committed state is handed to the repository."""
    repository = RecordingRepository()
    coordinator = _coordinator(repository=repository)
    coordinator.create_room("Alice", "alice")
    coordinator.join_room("AAAAAA", "Bob", "bob")
    coordinator.start_game("AAAAAA", "bob")

    assert repository.saved == [0, 1]


def test_round_results_are_recorded():
    """Test a called win is written to the round record."""
    repository = RecordingRepository()
    coordinator = _coordinator(repository=repository)
    coordinator.create_room("Alice", "alice", RoomSettings(total_rounds=3))
    coordinator.join_room("AAAAAA", "Bob", "bob")
    coordinator.start_game("AAAAAA", "alice")
    for player_id in ("alice", "bob"):
        card = coordinator.get_room("AAAAAA").get_player(player_id).hand[0]
        coordinator.play_cards("AAAAAA", player_id, [card.id])
        coordinator.draw_card("AAAAAA", player_id, "discard")

    result = coordinator.call_win("AAAAAA", "alice")
    assert result.success
    assert repository.rounds == [result.round_result]

    advanced = coordinator.next_round("AAAAAA")
    assert advanced.state.current_round == 2


def test_persistence_failure_does_not_fail_actions():
    """Test the game carries on when storage is broken."""
    coordinator = _coordinator(repository=BrokenRepository())
    assert coordinator.create_room("Alice", "alice").success
    assert coordinator.join_room("AAAAAA", "Bob", "bob").success
    assert coordinator.get_room("AAAAAA") is not None
    assert coordinator.get_room("MISSING") is None
    assert coordinator.cleanup_expired_rooms(60) == []


def test_store_hydrates_from_repository():
    """Test a room missing from memory is loaded once from storage."""
    source = _coordinator()
    state = source.create_room("Alice", "alice").state

    repository = RecordingRepository({"AAAAAA": state})
    store = RoomStore(repository)
    assert "AAAAAA" in store
    assert store.get("AAAAAA") is state
    assert len(store) == 1
    assert "BBBBBB" not in store


def test_cleanup_expired_rooms():
    """Test only rooms past the retention window are purged."""
    repository = RecordingRepository()
    coordinator = _coordinator(repository=repository)
    old = coordinator.create_room("Alice", "alice").state
    coordinator.create_room("Bob", "bob")
    old.created_at = 1000.0
    coordinator.get_room("BBBBBB").created_at = 1000.0 + 23 * 3600

    expired = coordinator.cleanup_expired_rooms(24 * 3600, now=1000.0 + 25 * 3600)

    assert expired == ["AAAAAA"]
    assert coordinator.get_room("AAAAAA") is None
    assert coordinator.get_room("BBBBBB") is not None
    assert repository.cutoffs == [1000.0 + 3600]


def test_disconnected_rooms_survive_until_expiry():
    """Test a room with nobody connected is kept."""
    coordinator = _coordinator()
    coordinator.create_room("Alice", "alice")
    coordinator.disconnect_player("AAAAAA", "alice")

    assert coordinator.cleanup_expired_rooms(24 * 3600) == []
    assert not coordinator.get_room("AAAAAA").get_player("alice").is_connected
