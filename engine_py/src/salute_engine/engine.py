"""
Game engine: pure state transitions for a single room.

Every operation takes the current GameState and returns an ActionResult.
Successful operations work on a deep copy, so a rejected action never leaves
a half-applied change behind and the caller decides when to commit.
"""

import copy
import logging
import random
from typing import List, Optional

from .constants import (
    PHASE_FINISHED, PHASE_PLAYING, PHASE_SCORING, SOURCE_DECK, TURN_DRAW,
    TURN_PLAY,
)
from .errors import PLAYER_NOT_FOUND, WRONG_ROUND_PHASE
from .models import GameState, Player
from .rules import RoomSettings
from .scoring import (
    get_round_sequence, pick_game_winner, pick_round_winner, score_hands,
)
from .shuffle import create_game_deck, deal_cards, shuffle
from .validate import (
    ValidationResult, validate_call_win, validate_draw, validate_host,
    validate_new_seat, validate_play, validate_start, validate_waiting,
)

logger = logging.getLogger(__name__)


class ActionResult:
    """Outcome of a game operation."""

    def __init__(
        self,
        success: bool,
        state: Optional[GameState] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        round_result: Optional[dict] = None
    ):
        self.success = success
        self.state = state
        self.error_code = error_code
        self.error_message = error_message
        self.round_result = round_result

    @classmethod
    def ok(cls, state: GameState, round_result: Optional[dict] = None) -> 'ActionResult':
        return cls(success=True, state=state, round_result=round_result)

    @classmethod
    def fail(cls, error_code: str, error_message: str) -> 'ActionResult':
        return cls(success=False, error_code=error_code, error_message=error_message)

    @classmethod
    def rejected(cls, check: ValidationResult) -> 'ActionResult':
        return cls.fail(check.error_code, check.error_message)

    def __repr__(self) -> str:
        if self.success:
            return f"ActionResult(success=True, version={self.state.version})"
        return f"ActionResult(success=False, error_code={self.error_code!r})"


def create_room(room_code: str, host_name: str, host_id: str,
                settings: Optional[RoomSettings] = None) -> GameState:
    """
    Create a room holding only its host, waiting for players.

    Args:
        room_code: Unique room code (uniqueness is the caller's job)
        host_name: Display name of the host
        host_id: Stable id of the host
        settings: Room settings; defaults apply when omitted

    Returns:
        New GameState in the waiting phase
    """
    settings = settings or RoomSettings()
    return GameState(
        room_code=room_code,
        host_player_id=host_id,
        settings=settings,
        players=[Player(id=host_id, name=host_name)],
        total_rounds=settings.total_rounds,
        cards_per_round=settings.total_rounds,
    )


def join_room(state: GameState, player_id: str, player_name: str) -> ActionResult:
    """
    Seat a player, or reconnect one who already holds a seat.

    Reconnects are allowed in any phase and refresh the display name. New
    players may only join while the room is waiting and has a free seat.
    """
    new_state = copy.deepcopy(state)
    existing = new_state.get_player(player_id)

    if existing is not None:
        existing.is_connected = True
        existing.name = player_name
        new_state.increment_version()
        return ActionResult.ok(new_state)

    check = validate_new_seat(state)
    if not check.valid:
        return ActionResult.rejected(check)

    new_state.players.append(Player(id=player_id, name=player_name))
    new_state.increment_version()
    return ActionResult.ok(new_state)


def update_room_settings(state: GameState, player_id: str, settings: RoomSettings) -> ActionResult:
    check = validate_host(state, player_id, "update settings")
    if not check.valid:
        return ActionResult.rejected(check)
    check = validate_waiting(state, "Cannot update settings after game started")
    if not check.valid:
        return ActionResult.rejected(check)

    new_state = copy.deepcopy(state)
    new_state.settings = settings
    new_state.total_rounds = settings.total_rounds
    new_state.cards_per_round = settings.total_rounds
    new_state.increment_version()
    return ActionResult.ok(new_state)


def _deal_round(state: GameState, round_number: int, rng: Optional[random.Random]):
    """Shuffle a fresh deck and deal the given round into state (in place)."""
    sequence = get_round_sequence(state.total_rounds)
    cards_per_round = sequence[round_number - 1]

    deck = shuffle(create_game_deck(len(state.players), rng), rng)
    dealt = deal_cards(deck, len(state.players), cards_per_round)

    for player, hand in zip(state.players, dealt.hands):
        player.hand = hand

    state.deck = dealt.remaining_deck
    state.discard_pile = [dealt.face_up_card] if dealt.face_up_card else []
    state.last_played_cards = []
    state.current_round = round_number
    state.cards_per_round = cards_per_round
    state.round_phase = PHASE_PLAYING
    state.turn_phase = TURN_PLAY
    state.current_player_index = 0
    state.turns_played_this_round = 0
    state.last_player_who_played = None


def start_game(state: GameState, player_id: str, rng: Optional[random.Random] = None) -> ActionResult:
    """
    Start the first round.

    Args:
        state: Current game state
        player_id: Player asking to start (must be the host)
        rng: Optional random source for a reproducible deal

    Returns:
        ActionResult with the dealt state
    """
    check = validate_start(state, player_id)
    if not check.valid:
        return ActionResult.rejected(check)

    new_state = copy.deepcopy(state)
    for player in new_state.players:
        player.rounds_won = 0
    new_state.game_winner = None
    new_state.round_history = []
    _deal_round(new_state, 1, rng)
    new_state.increment_version()

    logger.info(
        f"Room {new_state.room_code} started: {len(new_state.players)} players, "
        f"{new_state.cards_per_round} cards in round 1"
    )
    return ActionResult.ok(new_state)


def play_cards(state: GameState, player_id: str, card_ids: List[str]) -> ActionResult:
    """
    Play one or more same-rank cards from the current player's hand.

    The cards stay visible as last_played_cards until the draw completes
    the turn.
    """
    check = validate_play(state, player_id, card_ids)
    if not check.valid:
        return ActionResult.rejected(check)

    new_state = copy.deepcopy(state)
    player = new_state.get_player(player_id)
    played_ids = {card.id for card in check.cards}

    player.hand = [card for card in player.hand if card.id not in played_ids]
    new_state.last_played_cards = list(check.cards)
    new_state.turn_phase = TURN_DRAW
    new_state.increment_version()
    return ActionResult.ok(new_state)


def draw_card(state: GameState, player_id: str, source: str) -> ActionResult:
    """
    Draw one card to finish the turn.

    Takes the front of the deck or the top of the discard pile, then moves
    the cards played this turn onto the discard pile and passes the turn on.
    """
    check = validate_draw(state, player_id, source)
    if not check.valid:
        return ActionResult.rejected(check)

    new_state = copy.deepcopy(state)
    player = new_state.get_player(player_id)

    if source == SOURCE_DECK:
        drawn = new_state.deck.pop(0)
    else:
        drawn = new_state.discard_pile.pop()

    player.hand.append(drawn)
    new_state.discard_pile.extend(new_state.last_played_cards)
    new_state.last_played_cards = []

    new_state.current_player_index = (new_state.current_player_index + 1) % len(new_state.players)
    new_state.turn_phase = TURN_PLAY
    new_state.turns_played_this_round += 1
    new_state.last_player_who_played = player_id
    new_state.increment_version()
    return ActionResult.ok(new_state)


def _finish_game(state: GameState):
    state.game_winner = copy.deepcopy(pick_game_winner(state.players))
    state.round_phase = PHASE_FINISHED
    if state.game_winner:
        logger.info(f"Room {state.room_code} finished, winner {state.game_winner.name}")


def call_win(state: GameState, player_id: str) -> ActionResult:
    """
    End the round by calling a win.

    Every hand is scored (nines count zero) and the lowest total takes the
    round; the room's tie_break setting resolves ties. The game ends after
    the last round of the sequence, otherwise the room moves to scoring.

    Args:
        state: Current game state
        player_id: Player calling the win

    Returns:
        ActionResult whose round_result describes the scored round
    """
    check = validate_call_win(state, player_id)
    if not check.valid:
        return ActionResult.rejected(check)

    new_state = copy.deepcopy(state)
    winner = pick_round_winner(new_state.players, player_id, new_state.settings.tie_break)
    winner.rounds_won += 1

    round_result = {
        'roundNumber': new_state.current_round,
        'cardsPerRound': new_state.cards_per_round,
        'callerId': player_id,
        'winnerId': winner.id,
        'scores': score_hands(new_state.players),
    }
    new_state.round_history.append(round_result)

    if new_state.current_round >= len(get_round_sequence(new_state.total_rounds)):
        _finish_game(new_state)
    else:
        new_state.round_phase = PHASE_SCORING

    new_state.increment_version()
    logger.info(
        f"Room {new_state.room_code} round {new_state.current_round} won by {winner.name} "
        f"(called by {player_id})"
    )
    return ActionResult.ok(new_state, round_result)


def next_round(state: GameState, rng: Optional[random.Random] = None) -> ActionResult:
    """Deal the next round of the sequence, or finish the game after the last one."""
    if state.round_phase != PHASE_SCORING:
        return ActionResult.fail(WRONG_ROUND_PHASE, "Not in scoring phase")

    new_state = copy.deepcopy(state)
    next_number = new_state.current_round + 1

    if next_number > len(get_round_sequence(new_state.total_rounds)):
        _finish_game(new_state)
    else:
        _deal_round(new_state, next_number, rng)

    new_state.increment_version()
    return ActionResult.ok(new_state)


def disconnect_player(state: GameState, player_id: str) -> ActionResult:
    """
    Mark a player as disconnected.

    The seat is kept for a later rejoin and the turn is not advanced, even if
    the player was the one to move.
    """
    if state.get_player(player_id) is None:
        return ActionResult.fail(PLAYER_NOT_FOUND, "Player not found")

    new_state = copy.deepcopy(state)
    new_state.get_player(player_id).is_connected = False
    new_state.increment_version()
    return ActionResult.ok(new_state)
