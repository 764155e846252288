"""
Connection registry: which socket belongs to which player in which room.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Maps room code -> player id -> connection handle.

    A handle is anything with an async send_text(str), normally a FastAPI
    WebSocket. The registry holds no game state and is rebuilt as clients
    connect; a handle whose send fails is dropped.
    """

    def __init__(self):
        self.rooms: Dict[str, Dict[str, Any]] = {}

    def add(self, room_code: str, player_id: str, handle: Any):
        """Register a handle, replacing any previous one for the same player."""
        self.rooms.setdefault(room_code, {})[player_id] = handle
        logger.info(f"Player {player_id} connected to room {room_code}")

    def remove(self, room_code: str, player_id: str, handle: Any = None) -> bool:
        """
        Unregister a player's handle.

        If handle is given, the entry is only removed when it is still that
        handle, so a stale socket closing cannot evict a newer reconnect.
        """
        connections = self.rooms.get(room_code)
        if not connections or player_id not in connections:
            return False
        if handle is not None and connections[player_id] is not handle:
            return False

        del connections[player_id]
        if not connections:
            del self.rooms[room_code]
        logger.info(f"Player {player_id} disconnected from room {room_code}")
        return True

    def connections(self, room_code: str) -> List[Tuple[str, Any]]:
        return list(self.rooms.get(room_code, {}).items())

    def get(self, room_code: str, player_id: str) -> Optional[Any]:
        return self.rooms.get(room_code, {}).get(player_id)

    def count(self) -> int:
        return sum(len(connections) for connections in self.rooms.values())

    async def send_to_player(self, room_code: str, player_id: str, message: str) -> bool:
        handle = self.get(room_code, player_id)
        if handle is None:
            return False
        return await self._send(room_code, player_id, handle, message)

    async def broadcast(self, room_code: str, message: str, exclude: Iterable[str] = ()) -> int:
        """Send the same text to every connection in a room. Returns how many sends succeeded."""
        excluded = set(exclude)
        sent = 0
        for player_id, handle in self.connections(room_code):
            if player_id in excluded:
                continue
            if await self._send(room_code, player_id, handle, message):
                sent += 1
        return sent

    async def _send(self, room_code: str, player_id: str, handle: Any, message: str) -> bool:
        try:
            await handle.send_text(message)
            return True
        except Exception as e:
            logger.error(f"Error sending to {player_id} in room {room_code}: {e}")
            self.remove(room_code, player_id, handle)
            return False
