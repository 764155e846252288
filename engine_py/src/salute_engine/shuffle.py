"""
Card shuffling and dealing utilities.
"""

import random
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, TypeVar

from .constants import (
    BASE_DECK_PREFIX, EXTRA_CARDS_PER_PLAYER, EXTRA_DECK_PREFIX, RANK_VALUES,
    RANKS, ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH, SUITS,
)
from .models import Card

T = TypeVar('T')

_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


@dataclass
class DealResult:
    remaining_deck: List[Card]
    hands: List[List[Card]]
    face_up_card: Optional[Card]


def create_standard_deck(id_prefix: str = '') -> List[Card]:
    """Create a standard 52-card deck whose ids carry the given prefix."""
    deck = []
    for suit in SUITS:
        for rank in RANKS:
            deck.append(Card(
                id=f"{id_prefix}{suit}-{rank}",
                suit=suit,
                rank=rank,
                value=RANK_VALUES[rank],
            ))
    return deck


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """
    Fisher-Yates shuffle.

    Args:
        items: Sequence to shuffle (left untouched)
        rng: Optional random source for reproducible shuffles

    Returns:
        Shuffled copy of the sequence
    """
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffle_deck(deck: List[Card], seed: Optional[int] = None) -> List[Card]:
    """
    Shuffle a deck deterministically if seed is provided.

    Args:
        deck: Cards to shuffle
        seed: Optional seed for deterministic shuffling

    Returns:
        Shuffled copy of the deck
    """
    rng = random.Random(seed) if seed is not None else None
    return shuffle(deck, rng)


def create_game_deck(num_players: int, rng: Optional[random.Random] = None) -> List[Card]:
    """
    Create the deck for a game with the given number of players.

    Two players use a single standard deck. Each player beyond the second
    adds 26 cards sampled from a further standard deck, so rank/suit
    duplicates are expected from three players up; ids stay unique through
    the per-deck prefix.

    Args:
        num_players: Number of seated players
        rng: Optional random source for the extra-deck sampling

    Returns:
        Unshuffled game deck of 52 + 26 * max(0, num_players - 2) cards
    """
    deck = create_standard_deck(BASE_DECK_PREFIX)

    for i in range(max(0, num_players - 2)):
        extra = shuffle(create_standard_deck(f"{EXTRA_DECK_PREFIX}{i + 1}-"), rng)
        deck.extend(extra[:EXTRA_CARDS_PER_PLAYER])

    return deck


def deal_cards(deck: List[Card], num_players: int, cards_per_player: int) -> DealResult:
    """
    Deal cards round-robin, then turn one card face up.

    Cards go out one at a time to each player in seat order until every hand
    holds cards_per_player cards or the deck runs dry. The next card becomes
    the face-up card that seeds the discard pile.

    Args:
        deck: Shuffled deck, dealt from the front
        num_players: Number of hands to deal
        cards_per_player: Target hand size

    Returns:
        DealResult with the remaining deck, hands in seat order and the
        face-up card (None if the deck was exhausted)
    """
    remaining = list(deck)
    hands: List[List[Card]] = [[] for _ in range(num_players)]

    for _ in range(cards_per_player):
        for hand in hands:
            if remaining:
                hand.append(remaining.pop(0))

    face_up_card = remaining.pop(0) if remaining else None

    return DealResult(remaining_deck=remaining, hands=hands, face_up_card=face_up_card)


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    """Six characters from an alphabet without look-alikes (no 0/O, 1/I)."""
    rng = rng or random
    return ''.join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def generate_player_id() -> str:
    suffix = ''.join(random.choice(_BASE36) for _ in range(6))
    return f"player-{int(time.time() * 1000)}-{suffix}"
