"""In-memory room store with on-demand hydration from persistence"""

import logging
import time
from typing import Dict, List, Optional

from .errors import PersistenceError
from .models import GameState

logger = logging.getLogger(__name__)


class RoomStore:
    """
    Owns the authoritative GameState of every live room, keyed by room code.

    Rooms missing from memory are looked up in the repository once and
    cached; if the repository has nothing (or fails) the room is absent.
    """

    def __init__(self, repository=None):
        self.repository = repository
        self.rooms: Dict[str, GameState] = {}

    def __contains__(self, room_code: str) -> bool:
        return self.get(room_code) is not None

    def __len__(self) -> int:
        return len(self.rooms)

    def get(self, room_code: str) -> Optional[GameState]:
        state = self.rooms.get(room_code)
        if state is not None or self.repository is None:
            return state

        try:
            state = self.repository.load_room(room_code)
        except PersistenceError as e:
            logger.error(f"Could not hydrate room {room_code}: {e}")
            return None

        if state is not None:
            self.rooms[room_code] = state
        return state

    def put(self, state: GameState):
        self.rooms[state.room_code] = state

    def remove(self, room_code: str) -> Optional[GameState]:
        return self.rooms.pop(room_code, None)

    def expired(self, retention_seconds: float, now: Optional[float] = None) -> List[str]:
        """Codes of rooms created more than retention_seconds ago."""
        now = time.time() if now is None else now
        cutoff = now - retention_seconds
        return [code for code, state in self.rooms.items() if state.created_at < cutoff]
