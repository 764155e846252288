"""
Shared fixtures for the Salute engine tests.
"""

import pytest

from salute_engine.constants import PHASE_PLAYING, RANK_VALUES, TURN_PLAY
from salute_engine.models import Card, GameState, Player
from salute_engine.rules import RoomSettings


def _card(rank: str, suit: str = "hearts", tag: str = "t") -> Card:
    return Card(id=f"{tag}-{suit}-{rank}", suit=suit, rank=rank, value=RANK_VALUES[rank])


@pytest.fixture
def card():
    """Build a card: card('9'), card('K', 'spades', tag='x')."""
    return _card


@pytest.fixture
def playing_state():
    """
    Build a two-player room mid-round with chosen hands.

    Both players have finished a turn and bob moved last, so alice may call.
    """
    def build(alice_hand, bob_hand, tie_break="opponent", current_round=1, total_rounds=3):
        settings = RoomSettings(total_rounds=total_rounds, tie_break=tie_break)
        return GameState(
            room_code="ROOM01",
            host_player_id="alice",
            settings=settings,
            players=[
                Player(id="alice", name="Alice", hand=list(alice_hand)),
                Player(id="bob", name="Bob", hand=list(bob_hand)),
            ],
            deck=[_card("2", "clubs", "deck"), _card("3", "clubs", "deck")],
            discard_pile=[_card("4", "clubs", "discard")],
            current_player_index=0,
            current_round=current_round,
            total_rounds=total_rounds,
            cards_per_round=len(alice_hand),
            round_phase=PHASE_PLAYING,
            turn_phase=TURN_PLAY,
            turns_played_this_round=2,
            last_player_who_played="bob",
        )
    return build
