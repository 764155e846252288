"""
Tests for the message router with in-memory sockets.
"""

import itertools
import random

import orjson
import pytest

from salute_engine.coordinator import RoomCoordinator
from salute_engine.rate_limit import FixedWindowRateLimiter, RateLimitRule
from salute_engine.ws.connections import ConnectionRegistry
from salute_engine.ws.router import ClientSession, MessageRouter


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(orjson.loads(text))

    def of_type(self, event_type):
        return [m for m in self.sent if m["type"] == event_type]

    def last(self, event_type):
        return self.of_type(event_type)[-1]

    def clear(self):
        self.sent.clear()


def _raw(**data):
    return orjson.dumps(data).decode()


def _router(rules=None):
    counter = itertools.count(1)
    coordinator = RoomCoordinator(rng=random.Random(8), code_factory=lambda: f"ROOM{next(counter):02d}")
    return MessageRouter(coordinator, ConnectionRegistry(), FixedWindowRateLimiter(rules))


def _session(ip="10.0.0.1", fail=False):
    return ClientSession(handle=FakeSocket(fail=fail), ip=ip)


async def _room_with_two(router):
    alice, bob = _session(), _session("10.0.0.2")
    await router.handle_message(alice, _raw(type="create_room", playerName="Alice", playerId="alice",
                                            settings={"totalRounds": 3}))
    code = alice.handle.last("room_created")["roomCode"]
    await router.handle_message(bob, _raw(type="join_room", code=code, playerName="Bob", playerId="bob"))
    return alice, bob, code


@pytest.mark.asyncio
async def test_create_room_replies_and_broadcasts():
    """Test the creator gets room_created then their state."""
    router = _router()
    alice = _session()
    await router.handle_message(alice, _raw(type="create_room", playerName="Alice", playerId="alice"))

    created, state = alice.handle.sent
    assert created["type"] == "room_created"
    assert created["roomCode"] == "ROOM01"
    assert created["playerId"] == "alice"
    assert created["players"] == [{"id": "alice", "name": "Alice", "isHost": True, "isConnected": True}]
    assert state["type"] == "game_state"
    assert state["state"]["roundPhase"] == "waiting"
    assert alice.room_code == "ROOM01"


@pytest.mark.asyncio
async def test_create_room_generates_player_id():
    router = _router()
    session = _session()
    await router.handle_message(session, _raw(type="create_room", playerName="Anon"))

    assert session.player_id.startswith("player-")
    assert session.handle.last("room_created")["playerId"] == session.player_id


@pytest.mark.asyncio
async def test_join_room_notifies_room():
    """Test join confirmation, player_joined and state fan-out."""
    router = _router()
    alice, bob, code = await _room_with_two(router)

    joined = bob.handle.last("room_joined")
    assert joined["roomCode"] == code
    assert [p["id"] for p in joined["players"]] == ["alice", "bob"]
    assert joined["players"][0]["isHost"] and not joined["players"][1]["isHost"]
    assert joined["settings"]["totalRounds"] == 3

    assert alice.handle.last("player_joined")["player"]["id"] == "bob"
    assert not bob.handle.of_type("player_joined")
    assert len(alice.handle.last("game_state")["state"]["players"]) == 2
    assert len(bob.handle.last("game_state")["state"]["players"]) == 2


@pytest.mark.asyncio
async def test_join_code_is_case_insensitive():
    router = _router()
    alice = _session()
    await router.handle_message(alice, _raw(type="create_room", playerName="Alice", playerId="alice"))
    bob = _session("10.0.0.2")
    await router.handle_message(bob, _raw(type="join_room", code="room01", playerName="Bob", playerId="bob"))
    assert bob.room_code == "ROOM01"


@pytest.mark.asyncio
async def test_join_unknown_room():
    router = _router()
    bob = _session()
    await router.handle_message(bob, _raw(type="join_room", code="NOPE00", playerName="Bob", playerId="bob"))

    error = bob.handle.last("error")
    assert error["code"] == "ROOM_NOT_FOUND"
    assert bob.room_code is None


@pytest.mark.asyncio
async def test_start_game_sends_each_player_their_view():
    """Test game_state is sanitized per recipient."""
    router = _router()
    alice, bob, _ = await _room_with_two(router)

    await router.handle_message(bob, _raw(type="start_game"))
    assert bob.handle.last("error")["code"] == "NOT_HOST"

    alice.handle.clear()
    bob.handle.clear()
    await router.handle_message(alice, _raw(type="start_game"))

    alice_view = alice.handle.last("game_state")["state"]
    bob_view = bob.handle.last("game_state")["state"]
    assert alice_view["roundPhase"] == "playing"

    alice_in_alice_view = alice_view["players"][0]["hand"]
    alice_in_bob_view = bob_view["players"][0]["hand"]
    assert all(c["rank"] != "hidden" for c in alice_in_alice_view)
    assert all(c["id"].startswith("hidden-alice-") for c in alice_in_bob_view)
    assert len(alice_in_bob_view) == len(alice_in_alice_view) == 3
    assert all(c["id"].startswith("hidden-deck-") for c in bob_view["deck"])


@pytest.mark.asyncio
async def test_turn_errors_go_only_to_sender():
    """Test a rejected action answers the sender and broadcasts nothing."""
    router = _router()
    alice, bob, code = await _room_with_two(router)
    await router.handle_message(alice, _raw(type="start_game"))
    alice.handle.clear()
    bob.handle.clear()

    card_id = router.coordinator.get_room(code).get_player("bob").hand[0].id
    await router.handle_message(bob, _raw(type="play_cards", cardIds=[card_id]))

    assert bob.handle.sent == [bob.handle.last("error")]
    assert bob.handle.last("error")["code"] == "NOT_YOUR_TURN"
    assert alice.handle.sent == []


@pytest.mark.asyncio
async def test_play_draw_and_call_win_flow():
    """Test a round driven entirely through messages."""
    router = _router()
    alice, bob, code = await _room_with_two(router)
    await router.handle_message(alice, _raw(type="start_game"))

    for session in (alice, bob):
        card_id = router.coordinator.get_room(code).get_player(session.player_id).hand[0].id
        await router.handle_message(session, _raw(type="play_cards", cardIds=[card_id]))
        await router.handle_message(session, _raw(type="draw_card", source="deck"))

    await router.handle_message(bob, _raw(type="call_win"))
    assert bob.handle.last("error")["code"] == "JUST_PLAYED"

    await router.handle_message(alice, _raw(type="call_win"))
    scored = bob.handle.last("game_state")["state"]
    assert scored["roundPhase"] == "scoring"
    assert len(scored["roundHistory"]) == 1
    # Hands are revealed on the scoring screen
    assert all(c["rank"] != "hidden" for p in scored["players"] for c in p["hand"])

    await router.handle_message(bob, _raw(type="next_round"))
    next_state = alice.handle.last("game_state")["state"]
    assert next_state["roundPhase"] == "playing"
    assert next_state["currentRound"] == 2
    assert next_state["cardsPerRound"] == 2


@pytest.mark.asyncio
async def test_next_round_outside_scoring():
    router = _router()
    alice, _, _ = await _room_with_two(router)
    await router.handle_message(alice, _raw(type="next_round"))
    assert alice.handle.last("error")["code"] == "WRONG_ROUND_PHASE"


@pytest.mark.asyncio
async def test_update_settings_broadcasts_room_updated():
    router = _router()
    alice, bob, _ = await _room_with_two(router)

    await router.handle_message(alice, _raw(type="update_settings", settings={"totalRounds": 6, "tieBreak": "caller"}))

    for session in (alice, bob):
        assert session.handle.last("room_updated")["settings"] == {
            "totalRounds": 6, "maxPlayers": 6, "tieBreak": "caller",
        }
        assert session.handle.last("game_state")["state"]["totalRounds"] == 6

    await router.handle_message(bob, _raw(type="update_settings", settings={"totalRounds": 4}))
    assert bob.handle.last("error")["code"] == "NOT_HOST"


@pytest.mark.asyncio
async def test_messages_outside_a_room():
    """Test in-room actions without a room are refused."""
    router = _router()
    session = _session()
    for tag in ("start_game", "call_win", "next_round", "request_state"):
        await router.handle_message(session, _raw(type=tag))
    assert [m["code"] for m in session.handle.sent] == ["NOT_IN_ROOM"] * 4


@pytest.mark.asyncio
async def test_malformed_message():
    router = _router()
    session = _session()
    await router.handle_message(session, "{broken")
    await router.handle_message(session, _raw(type="draw_card", source="floor"))

    assert [m["code"] for m in session.handle.sent] == ["MALFORMED_MESSAGE"] * 2


@pytest.mark.asyncio
async def test_rate_limited_create():
    """Test the limiter refuses with a retry hint."""
    router = _router({"create_room": RateLimitRule(1, 3600)})
    session = _session()
    await router.handle_message(session, _raw(type="create_room", playerName="Alice", playerId="alice"))
    await router.handle_message(session, _raw(type="create_room", playerName="Alice", playerId="alice"))

    error = session.handle.last("error")
    assert error["code"] == "RATE_LIMITED"
    assert 0 < error["retryAfterMs"] <= 3600 * 1000
    assert error["message"].startswith("Rate limited")
    assert len(router.coordinator.store) == 1

    other = _session("10.0.0.9")
    await router.handle_message(other, _raw(type="create_room", playerName="Carol"))
    assert other.handle.of_type("room_created")


@pytest.mark.asyncio
async def test_leave_room_marks_player_disconnected():
    """Test leaving tells the room and keeps the seat."""
    router = _router()
    alice, bob, code = await _room_with_two(router)
    await router.handle_message(bob, _raw(type="leave_room"))

    assert alice.handle.last("player_left")["playerId"] == "bob"
    players = alice.handle.last("game_state")["state"]["players"]
    assert players[1]["isConnected"] is False
    assert bob.room_code is None
    assert router.registry.get(code, "bob") is None


@pytest.mark.asyncio
async def test_socket_close_and_reconnect():
    """Test a reconnect resumes the seat and a stale close is ignored."""
    router = _router()
    alice, bob, code = await _room_with_two(router)
    await router.handle_message(alice, _raw(type="start_game"))

    new_bob = _session("10.0.0.2")
    await router.handle_message(new_bob, _raw(type="join_room", code=code, playerName="Bob", playerId="bob"))
    assert new_bob.handle.last("room_joined")["playerId"] == "bob"
    assert router.registry.get(code, "bob") is new_bob.handle

    # The old socket closing must not kick the reconnected player
    await router.disconnect(bob)
    assert router.coordinator.get_room(code).get_player("bob").is_connected

    await router.disconnect(new_bob)
    assert not router.coordinator.get_room(code).get_player("bob").is_connected
    assert alice.handle.last("player_left")["playerId"] == "bob"


@pytest.mark.asyncio
async def test_request_state():
    router = _router()
    alice, _, _ = await _room_with_two(router)
    alice.handle.clear()

    await router.handle_message(alice, _raw(type="request_state"))
    assert [m["type"] for m in alice.handle.sent] == ["game_state"]
    assert alice.handle.sent[0]["state"]["hostPlayerId"] == "alice"


@pytest.mark.asyncio
async def test_dead_socket_dropped_from_broadcast():
    """Test a failing connection is removed and others still get updates."""
    router = _router()
    alice, _, code = await _room_with_two(router)
    dead = FakeSocket(fail=True)
    router.registry.add(code, "bob", dead)

    await router.handle_message(alice, _raw(type="start_game"))

    assert router.registry.get(code, "bob") is None
    assert alice.handle.last("game_state")["state"]["roundPhase"] == "playing"


@pytest.mark.asyncio
async def test_handler_crash_is_reported(monkeypatch):
    """Test an unexpected exception becomes an internal error reply."""
    router = _router()
    alice, _, _ = await _room_with_two(router)

    def explode(*args):
        raise RuntimeError("boom")

    monkeypatch.setattr(router.coordinator, "start_game", explode)
    await router.handle_message(alice, _raw(type="start_game"))

    error = alice.handle.last("error")
    assert error["code"] == "INTERNAL_ERROR"
    assert error["message"] == "Internal server error"

    # The room lock was released
    await router.handle_message(alice, _raw(type="request_state"))
    assert alice.handle.last("game_state")


@pytest.mark.asyncio
async def test_failed_join_keeps_current_seat():
    """Test a refused join leaves the sender where they were."""
    router = _router()
    alice, bob, code = await _room_with_two(router)

    carol, dave = _session("10.0.0.3"), _session("10.0.0.4")
    await router.handle_message(carol, _raw(type="create_room", playerName="Carol", playerId="carol"))
    other = carol.handle.last("room_created")["roomCode"]
    await router.handle_message(dave, _raw(type="join_room", code=other, playerName="Dave", playerId="dave"))
    await router.handle_message(carol, _raw(type="start_game"))
    alice.handle.clear()

    await router.handle_message(bob, _raw(type="join_room", code="NOPE99", playerName="Bob", playerId="bob"))
    assert bob.handle.last("error")["code"] == "ROOM_NOT_FOUND"
    await router.handle_message(bob, _raw(type="join_room", code=other, playerName="Bob", playerId="bob"))
    assert bob.handle.last("error")["code"] == "GAME_ALREADY_STARTED"

    assert bob.room_code == code
    assert router.coordinator.get_room(code).get_player("bob").is_connected
    assert router.registry.get(code, "bob") is bob.handle
    assert alice.handle.sent == []


@pytest.mark.asyncio
async def test_join_other_room_leaves_previous():
    """Test a successful move gives up the old seat."""
    router = _router()
    alice, bob, code = await _room_with_two(router)

    carol = _session("10.0.0.3")
    await router.handle_message(carol, _raw(type="create_room", playerName="Carol", playerId="carol"))
    other = carol.handle.last("room_created")["roomCode"]

    await router.handle_message(bob, _raw(type="join_room", code=other, playerName="Bob", playerId="bob"))

    assert bob.room_code == other
    assert bob.handle.last("room_joined")["roomCode"] == other
    assert alice.handle.last("player_left")["playerId"] == "bob"
    assert not router.coordinator.get_room(code).get_player("bob").is_connected
    assert router.registry.get(code, "bob") is None


@pytest.mark.asyncio
async def test_unknown_codes_leave_no_locks():
    """Test joins to codes that do not exist keep no router state."""
    router = _router({})
    alice = _session()
    await router.handle_message(alice, _raw(type="create_room", playerName="Alice", playerId="alice"))

    for i in range(50):
        session = _session(f"10.1.0.{i}")
        await router.handle_message(session, _raw(type="join_room", code=f"GONE{i:02d}", playerName="Eve"))
        assert session.handle.last("error")["code"] == "ROOM_NOT_FOUND"

    assert set(router.locks) == {"ROOM01"}
