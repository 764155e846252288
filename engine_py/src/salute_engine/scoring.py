# engine_py/src/salute_engine/scoring.py

from typing import Dict, Iterable, List, Optional

from .constants import TIE_BREAK_CALLER, ZERO_SCORE_RANK
from .models import Card, Player


def calculate_hand_score(hand: Iterable[Card]) -> int:
    """Sum of card values, with every nine counting zero."""
    return sum(0 if card.rank == ZERO_SCORE_RANK else card.value for card in hand)


def get_round_sequence(total_rounds: int) -> List[int]:
    """
    Cards dealt per round: X down to 2, then 3 back up to X.

    For X=5 this is [5, 4, 3, 2, 3, 4, 5]; the length is 2X - 3.
    """
    descending = list(range(total_rounds, 1, -1))
    ascending = list(range(3, total_rounds + 1))
    return descending + ascending


def score_hands(players: List[Player]) -> Dict[str, int]:
    return {p.id: calculate_hand_score(p.hand) for p in players}


def pick_round_winner(players: List[Player], caller_id: str, tie_break: str) -> Player:
    """
    Pick the round winner when a win is called.

    The lowest score wins. When several players share it, tie_break decides:
    'opponent' hands the round to the first tied player (in seat order) who is
    not the caller, 'caller' hands it to the caller if the caller is tied.

    Args:
        players: Seated players with their final hands
        caller_id: Player who called the win
        tie_break: 'opponent' or 'caller'

    Returns:
        The winning player
    """
    scores = score_hands(players)
    lowest = min(scores.values())
    tied = [p for p in players if scores[p.id] == lowest]

    if len(tied) == 1:
        return tied[0]

    caller = next((p for p in tied if p.id == caller_id), None)
    if tie_break == TIE_BREAK_CALLER and caller is not None:
        return caller

    opponent = next((p for p in tied if p.id != caller_id), None)
    return opponent or tied[0]


def pick_game_winner(players: List[Player]) -> Optional[Player]:
    """Most rounds won; the earliest seat wins a tie."""
    if not players:
        return None
    most = max(p.rounds_won for p in players)
    return next(p for p in players if p.rounds_won == most)
