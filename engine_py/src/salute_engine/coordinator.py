"""Room coordinator: owns every room's authoritative state"""

import logging
import random
import time
from typing import Callable, List, Optional

from . import engine
from .engine import ActionResult
from .constants import ROOM_CODE_RETRIES
from .errors import INTERNAL_ERROR, ROOM_NOT_FOUND, PersistenceError
from .models import GameState
from .persistence import NullRoomRepository, RoomRepository
from .rules import RoomSettings
from .shuffle import generate_room_code
from .store import RoomStore

logger = logging.getLogger(__name__)


class RoomCoordinator:
    """
    Applies game operations to rooms by code.

    Each operation reads the room from the store, runs the matching engine
    transition and commits the new state only when it succeeded. Saving to
    the repository happens after the commit and never fails the operation.
    """

    def __init__(self, store: Optional[RoomStore] = None, repository: Optional[RoomRepository] = None,
                 rng: Optional[random.Random] = None,
                 code_factory: Callable[[], str] = generate_room_code):
        self.repository = repository or NullRoomRepository()
        self.store = store or RoomStore(self.repository)
        self.rng = rng
        self.code_factory = code_factory

    def get_room(self, room_code: str) -> Optional[GameState]:
        return self.store.get(room_code)

    def _persist(self, state: GameState, round_result: Optional[dict] = None):
        try:
            self.repository.save_room(state)
            if round_result is not None:
                self.repository.record_round(state, round_result)
        except PersistenceError as e:
            logger.error(f"Persistence failed for room {state.room_code}: {e}")

    def _commit(self, result: ActionResult) -> ActionResult:
        if result.success:
            self.store.put(result.state)
            self._persist(result.state, result.round_result)
        return result

    def _apply(self, room_code: str, operation: Callable[[GameState], ActionResult]) -> ActionResult:
        state = self.store.get(room_code)
        if state is None:
            return ActionResult.fail(ROOM_NOT_FOUND, "Room not found")
        return self._commit(operation(state))

    def create_room(self, host_name: str, host_id: str, settings: Optional[RoomSettings] = None,
                    room_code: Optional[str] = None) -> ActionResult:
        """
        Create a room hosted by host_id.

        A fresh code is generated (and regenerated on collision) unless one
        is given; a given code that is already taken is an error.
        """
        if room_code is None:
            for _ in range(ROOM_CODE_RETRIES):
                candidate = self.code_factory()
                if candidate not in self.store:
                    room_code = candidate
                    break
            else:
                logger.error("Could not find a free room code")
                return ActionResult.fail(INTERNAL_ERROR, "Could not allocate a room code")
        elif room_code in self.store:
            return ActionResult.fail(INTERNAL_ERROR, f"Room {room_code} already exists")

        state = engine.create_room(room_code, host_name, host_id, settings)
        logger.info(f"Room {room_code} created by {host_name} ({host_id})")
        return self._commit(ActionResult.ok(state))

    def join_room(self, room_code: str, player_name: str, player_id: str) -> ActionResult:
        return self._apply(room_code, lambda s: engine.join_room(s, player_id, player_name))

    def update_room_settings(self, room_code: str, player_id: str, settings: RoomSettings) -> ActionResult:
        return self._apply(room_code, lambda s: engine.update_room_settings(s, player_id, settings))

    def start_game(self, room_code: str, player_id: str) -> ActionResult:
        return self._apply(room_code, lambda s: engine.start_game(s, player_id, self.rng))

    def play_cards(self, room_code: str, player_id: str, card_ids: List[str]) -> ActionResult:
        return self._apply(room_code, lambda s: engine.play_cards(s, player_id, card_ids))

    def draw_card(self, room_code: str, player_id: str, source: str) -> ActionResult:
        return self._apply(room_code, lambda s: engine.draw_card(s, player_id, source))

    def call_win(self, room_code: str, player_id: str) -> ActionResult:
        return self._apply(room_code, lambda s: engine.call_win(s, player_id))

    def next_round(self, room_code: str) -> ActionResult:
        return self._apply(room_code, lambda s: engine.next_round(s, self.rng))

    def disconnect_player(self, room_code: str, player_id: str) -> ActionResult:
        return self._apply(room_code, lambda s: engine.disconnect_player(s, player_id))

    def cleanup_expired_rooms(self, retention_seconds: float, now: Optional[float] = None) -> List[str]:
        """
        Purge rooms older than the retention window, connected or not.

        Args:
            retention_seconds: How long a room may live after creation
            now: Current epoch time (defaults to time.time())

        Returns:
            Codes of the rooms removed from memory
        """
        now = time.time() if now is None else now
        expired = self.store.expired(retention_seconds, now)
        for room_code in expired:
            self.store.remove(room_code)

        try:
            deleted = self.repository.delete_expired_rooms(now - retention_seconds)
        except PersistenceError as e:
            logger.error(f"Could not delete expired rooms from storage: {e}")
            deleted = 0

        if expired or deleted:
            logger.info(f"Expired {len(expired)} rooms in memory, {deleted} in storage")
        return expired
