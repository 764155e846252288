"""
Turn, phase and card-selection validation.
"""

from typing import Dict, List, Optional

from .constants import (
    MIN_PLAYERS, PHASE_PLAYING, PHASE_WAITING, SOURCE_DECK, SOURCE_DISCARD,
    TURN_DRAW, TURN_PLAY,
)
from .errors import (
    GAME_ALREADY_STARTED, INVALID_SELECTION, INVALID_SOURCE, JUST_PLAYED,
    NOT_ENOUGH_PLAYERS, NOT_HOST, NOT_YOUR_TURN, PLAYER_NOT_FOUND, RANK_MISMATCH,
    ROOM_FULL, SOURCE_EMPTY, TOO_EARLY, WRONG_ROUND_PHASE, WRONG_TURN_PHASE,
)
from .models import Card, GameState, Player


class ValidationResult:
    """Result of validating an action against the current state."""

    def __init__(
        self,
        valid: bool,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        cards: Optional[List[Card]] = None
    ):
        self.valid = valid
        self.error_code = error_code
        self.error_message = error_message
        self.cards = cards or []

    @classmethod
    def success(cls, cards: Optional[List[Card]] = None) -> 'ValidationResult':
        """Create a successful validation result."""
        return cls(valid=True, cards=cards)

    @classmethod
    def error(cls, error_code: str, error_message: str) -> 'ValidationResult':
        """Create an error validation result."""
        return cls(valid=False, error_code=error_code, error_message=error_message)


def validate_host(state: GameState, player_id: str, action: str) -> ValidationResult:
    if player_id != state.host_player_id:
        return ValidationResult.error(NOT_HOST, f"Only the host can {action}")
    return ValidationResult.success()


def validate_waiting(state: GameState, message: str) -> ValidationResult:
    if state.round_phase != PHASE_WAITING:
        return ValidationResult.error(GAME_ALREADY_STARTED, message)
    return ValidationResult.success()


def validate_new_seat(state: GameState) -> ValidationResult:
    """Check a brand-new player may take a seat."""
    if state.round_phase != PHASE_WAITING:
        return ValidationResult.error(GAME_ALREADY_STARTED, "Game already started")
    if len(state.players) >= state.settings.max_players:
        return ValidationResult.error(ROOM_FULL, "Room is full")
    return ValidationResult.success()


def validate_start(state: GameState, player_id: str) -> ValidationResult:
    """
    Validate a start-game request.

    Args:
        state: Current game state
        player_id: Player asking to start

    Returns:
        ValidationResult with validation outcome
    """
    check = validate_host(state, player_id, "start the game")
    if not check.valid:
        return check
    check = validate_waiting(state, "Game already started")
    if not check.valid:
        return check
    if len(state.players) < MIN_PLAYERS:
        return ValidationResult.error(
            NOT_ENOUGH_PLAYERS,
            f"Need at least {MIN_PLAYERS} players"
        )
    return ValidationResult.success()


def _validate_turn(state: GameState, player_id: str, turn_phase: str, wrong_phase_message: str) -> ValidationResult:
    if state.round_phase != PHASE_PLAYING:
        return ValidationResult.error(
            WRONG_ROUND_PHASE,
            f"Round is not in play (current: {state.round_phase})"
        )

    if state.get_player(player_id) is None:
        return ValidationResult.error(PLAYER_NOT_FOUND, "Player not found")

    if state.current_player.id != player_id:
        return ValidationResult.error(NOT_YOUR_TURN, "Not your turn")

    if state.turn_phase != turn_phase:
        return ValidationResult.error(WRONG_TURN_PHASE, wrong_phase_message)

    return ValidationResult.success()


def find_cards(player: Player, card_ids: List[str]) -> Dict[str, Card]:
    hand = {card.id: card for card in player.hand}
    return {card_id: hand[card_id] for card_id in card_ids if card_id in hand}


def validate_play(state: GameState, player_id: str, card_ids: List[str]) -> ValidationResult:
    """
    Validate a card play attempt.

    A play is one or more cards from the caller's hand sharing a single rank.

    Args:
        state: Current game state
        player_id: ID of player attempting the play
        card_ids: IDs of the cards being played

    Returns:
        ValidationResult carrying the selected cards in hand order on success
    """
    check = _validate_turn(state, player_id, TURN_PLAY, "You must draw a card first")
    if not check.valid:
        return check

    if not card_ids:
        return ValidationResult.error(INVALID_SELECTION, "Select at least one card")

    if len(set(card_ids)) != len(card_ids):
        return ValidationResult.error(INVALID_SELECTION, "The same card was selected twice")

    player = state.get_player(player_id)
    owned = find_cards(player, card_ids)
    if len(owned) != len(card_ids):
        return ValidationResult.error(INVALID_SELECTION, "Invalid cards")

    ranks = {card.rank for card in owned.values()}
    if len(ranks) > 1:
        return ValidationResult.error(RANK_MISMATCH, "All cards must be same rank")

    selected = [card for card in player.hand if card.id in owned]
    return ValidationResult.success(selected)


def validate_draw(state: GameState, player_id: str, source: str) -> ValidationResult:
    """
    Validate a draw attempt.

    Args:
        state: Current game state
        player_id: ID of player drawing
        source: 'deck' or 'discard'

    Returns:
        ValidationResult with validation outcome
    """
    check = _validate_turn(state, player_id, TURN_DRAW, "You must play a card first")
    if not check.valid:
        return check

    if source == SOURCE_DECK:
        if not state.deck:
            return ValidationResult.error(SOURCE_EMPTY, "Deck is empty")
    elif source == SOURCE_DISCARD:
        if not state.discard_pile:
            return ValidationResult.error(SOURCE_EMPTY, "Discard pile is empty")
    else:
        return ValidationResult.error(INVALID_SOURCE, f"Unknown draw source: {source}")

    return ValidationResult.success()


def validate_call_win(state: GameState, player_id: str) -> ValidationResult:
    """
    Validate a win call.

    Every seat must have finished a turn this round, and the player who just
    finished the latest turn may not call.
    """
    if state.round_phase != PHASE_PLAYING:
        return ValidationResult.error(
            WRONG_ROUND_PHASE,
            f"Round is not in play (current: {state.round_phase})"
        )

    if state.get_player(player_id) is None:
        return ValidationResult.error(PLAYER_NOT_FOUND, "Player not found")

    if state.turns_played_this_round < len(state.players):
        return ValidationResult.error(TOO_EARLY, "All players must play at least once")

    if player_id == state.last_player_who_played:
        return ValidationResult.error(JUST_PLAYED, "Cannot call win right after your turn")

    return ValidationResult.success()
