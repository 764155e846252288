"""
State serialization and sanitization utilities.
"""

import copy
from typing import Any, Dict, List, Optional

from .constants import HIDDEN, HIDDEN_VALUE, PHASE_FINISHED, PHASE_SCORING
from .models import Card, GameState, Player
from .rules import RoomSettings

# Phases in which every hand is revealed for the scoring screen
REVEAL_PHASES = (PHASE_SCORING, PHASE_FINISHED)


def hidden_card(card_id: str) -> Card:
    """Placeholder with a meaningless id and a zero value so it can never score."""
    return Card(id=card_id, suit=HIDDEN, rank=HIDDEN, value=HIDDEN_VALUE)


def get_sanitized_state_for_player(state: GameState, viewer_id: Optional[str]) -> GameState:
    """
    Project the game state for one recipient.

    Args:
        state: Authoritative room state
        viewer_id: Player receiving the view (their own hand is always shown)

    Returns:
        Deep copy in which the deck and, outside scoring/finished, every other
        player's hand are replaced by placeholders preserving only counts
    """
    sanitized = copy.deepcopy(state)
    reveal_all = state.round_phase in REVEAL_PHASES

    sanitized.deck = [hidden_card(f"hidden-deck-{i}") for i in range(len(state.deck))]

    for player in sanitized.players:
        if player.id == viewer_id or reveal_all:
            continue
        player.hand = [hidden_card(f"hidden-{player.id}-{i}") for i in range(len(player.hand))]

    return sanitized


def card_to_dict(card: Card) -> Dict[str, Any]:
    return {"id": card.id, "suit": card.suit, "rank": card.rank, "value": card.value}


def card_from_dict(data: Dict[str, Any]) -> Card:
    return Card(id=data["id"], suit=data["suit"], rank=data["rank"], value=data["value"])


def player_to_dict(player: Player) -> Dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "hand": [card_to_dict(c) for c in player.hand],
        "roundsWon": player.rounds_won,
        "isConnected": player.is_connected,
    }


def player_from_dict(data: Dict[str, Any]) -> Player:
    return Player(
        id=data["id"],
        name=data["name"],
        hand=[card_from_dict(c) for c in data.get("hand", [])],
        rounds_won=data.get("roundsWon", 0),
        is_connected=data.get("isConnected", True),
    )


def _cards(cards: List[Card]) -> List[Dict[str, Any]]:
    return [card_to_dict(c) for c in cards]


def state_to_dict(state: GameState) -> Dict[str, Any]:
    """
    Convert a game state to the camelCase wire format.

    Sanitize first when the result is going to a client; this function
    serializes whatever it is given.
    """
    return {
        "roomCode": state.room_code,
        "version": state.version,
        "players": [player_to_dict(p) for p in state.players],
        "deck": _cards(state.deck),
        "discardPile": _cards(state.discard_pile),
        "currentPlayerIndex": state.current_player_index,
        "currentRound": state.current_round,
        "totalRounds": state.total_rounds,
        "cardsPerRound": state.cards_per_round,
        "roundPhase": state.round_phase,
        "turnPhase": state.turn_phase,
        "lastPlayedCards": _cards(state.last_played_cards),
        "turnsPlayedThisRound": state.turns_played_this_round,
        "lastPlayerWhoPlayed": state.last_player_who_played,
        "gameWinner": player_to_dict(state.game_winner) if state.game_winner else None,
        "settings": state.settings.to_wire(),
        "hostPlayerId": state.host_player_id,
        "roundHistory": copy.deepcopy(state.round_history),
        "createdAt": state.created_at,
    }


def state_from_dict(data: Dict[str, Any]) -> GameState:
    """Rebuild a GameState from its wire/persisted form."""
    winner = data.get("gameWinner")
    return GameState(
        room_code=data["roomCode"],
        host_player_id=data["hostPlayerId"],
        settings=RoomSettings.model_validate(data.get("settings", {})),
        players=[player_from_dict(p) for p in data.get("players", [])],
        deck=[card_from_dict(c) for c in data.get("deck", [])],
        discard_pile=[card_from_dict(c) for c in data.get("discardPile", [])],
        current_player_index=data.get("currentPlayerIndex", 0),
        current_round=data.get("currentRound", 0),
        total_rounds=data["totalRounds"],
        cards_per_round=data["cardsPerRound"],
        round_phase=data["roundPhase"],
        turn_phase=data["turnPhase"],
        last_played_cards=[card_from_dict(c) for c in data.get("lastPlayedCards", [])],
        turns_played_this_round=data.get("turnsPlayedThisRound", 0),
        last_player_who_played=data.get("lastPlayerWhoPlayed"),
        game_winner=player_from_dict(winner) if winner else None,
        version=data.get("version", 0),
        round_history=data.get("roundHistory", []),
        created_at=data.get("createdAt", 0.0),
    )


def serialize_player_for_list(player: Player, host_player_id: str) -> Dict[str, Any]:
    """Serialize player for lobby player list."""
    return {
        "id": player.id,
        "name": player.name,
        "isHost": player.id == host_player_id,
        "isConnected": player.is_connected,
    }
