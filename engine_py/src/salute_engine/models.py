"""Game models and data structures"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

from .constants import DEFAULT_TOTAL_ROUNDS, HIDDEN, PHASE_WAITING, TURN_PLAY
from .rules import RoomSettings


@dataclass(frozen=True)
class Card:
    id: str
    suit: str  # hearts|diamonds|clubs|spades, or 'hidden' for placeholders
    rank: str  # A, 2..10, J, Q, K, or 'hidden' for placeholders
    value: int

    @property
    def is_placeholder(self) -> bool:
        return self.rank == HIDDEN


@dataclass
class Player:
    id: str
    name: str
    hand: List[Card] = field(default_factory=list)
    rounds_won: int = 0
    is_connected: bool = True


@dataclass
class GameState:
    room_code: str
    host_player_id: str
    settings: RoomSettings = field(default_factory=RoomSettings)
    players: List[Player] = field(default_factory=list)
    deck: List[Card] = field(default_factory=list)  # draw from the front
    discard_pile: List[Card] = field(default_factory=list)  # top is the last element
    current_player_index: int = 0
    current_round: int = 0
    total_rounds: int = DEFAULT_TOTAL_ROUNDS
    cards_per_round: int = DEFAULT_TOTAL_ROUNDS  # the first round deals X cards
    round_phase: str = PHASE_WAITING  # waiting|playing|scoring|finished
    turn_phase: str = TURN_PLAY  # play|draw
    last_played_cards: List[Card] = field(default_factory=list)
    turns_played_this_round: int = 0
    last_player_who_played: Optional[str] = None
    game_winner: Optional[Player] = None
    version: int = 0
    round_history: List[dict] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    def get_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    @property
    def current_player(self) -> Optional[Player]:
        if not self.players:
            return None
        return self.players[self.current_player_index]

    def cards_in_play(self) -> int:
        """Every card currently dealt into the round, wherever it sits."""
        return (
            sum(len(p.hand) for p in self.players)
            + len(self.deck)
            + len(self.discard_pile)
            + len(self.last_played_cards)
        )

    def increment_version(self):
        self.version += 1
