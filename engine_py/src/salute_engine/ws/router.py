"""
Message router: turns client messages into coordinator calls and fans the
results out to the room.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from ..constants import ACTION_CREATE_ROOM, ACTION_JOIN_ROOM
from ..coordinator import RoomCoordinator
from ..engine import ActionResult
from ..errors import (
    INTERNAL_ERROR, NOT_IN_ROOM, PLAYER_NOT_FOUND, ROOM_NOT_FOUND,
    MalformedMessageError, RateLimitError, error_category,
)
from ..rate_limit import FixedWindowRateLimiter
from ..rules import RoomSettings
from ..serialization import (
    get_sanitized_state_for_player, serialize_player_for_list, state_to_dict,
)
from ..shuffle import generate_player_id
from .connections import ConnectionRegistry
from .events import (
    BaseEvent, CreateRoomEvent, DrawCardEvent, EventType, JoinRoomEvent,
    OutboundEvent, PlayCardsEvent, PlayerJoinedEvent, PlayerLeftEvent,
    RoomCreatedEvent, RoomJoinedEvent, RoomUpdatedEvent, UpdateSettingsEvent,
    create_error_event, create_game_state_event, parse_inbound_event,
)

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    """Per-connection context: who is talking and which room they are in."""
    handle: Any
    ip: str = "unknown"
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    player_id: Optional[str] = None
    room_code: Optional[str] = None


class MessageRouter:
    """
    Dispatches inbound events to handlers by type.

    Handlers for an existing room run under that room's lock from validation
    to the last broadcast, so each room sees its messages one at a time and
    clients receive states in commit order.
    """

    def __init__(self, coordinator: RoomCoordinator, registry: ConnectionRegistry,
                 rate_limiter: Optional[FixedWindowRateLimiter] = None,
                 default_settings: Optional[RoomSettings] = None):
        self.coordinator = coordinator
        self.registry = registry
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter()
        self.default_settings = default_settings or RoomSettings()
        self.locks: Dict[str, asyncio.Lock] = {}
        self.handlers: Dict[EventType, Callable[[ClientSession, BaseEvent], Awaitable[None]]] = {
            EventType.CREATE_ROOM: self.handle_create_room,
            EventType.JOIN_ROOM: self.handle_join_room,
            EventType.START_GAME: self.handle_start_game,
            EventType.PLAY_CARDS: self.handle_play_cards,
            EventType.DRAW_CARD: self.handle_draw_card,
            EventType.CALL_WIN: self.handle_call_win,
            EventType.UPDATE_SETTINGS: self.handle_update_settings,
            EventType.LEAVE_ROOM: self.handle_leave_room,
            EventType.NEXT_ROUND: self.handle_next_round,
            EventType.REQUEST_STATE: self.handle_request_state,
        }

    def lock_for(self, room_code: str) -> asyncio.Lock:
        lock = self.locks.get(room_code)
        if lock is None:
            lock = self.locks[room_code] = asyncio.Lock()
        return lock

    def forget_room(self, room_code: str):
        """Drop router bookkeeping for a room that no longer exists."""
        self.locks.pop(room_code, None)
        self.registry.rooms.pop(room_code, None)

    async def handle_message(self, session: ClientSession, raw: str):
        """Parse and handle one text frame from a client."""
        try:
            event = parse_inbound_event(raw)
        except MalformedMessageError as e:
            logger.warning(f"Malformed message from session {session.session_id}: {e.message}")
            await self.send_error(session, e.message, e.code)
            return

        if session.player_id is None and event.player_id:
            session.player_id = event.player_id

        logger.info(f"Message {event.type.value} from {session.player_id} ({session.room_code or 'no room'})")

        try:
            await self.handlers[event.type](session, event)
        except Exception:
            logger.exception(f"Unexpected error handling {event.type.value}")
            await self.send_error(session, "Internal server error", INTERNAL_ERROR)

    # Outbound helpers

    async def send(self, session: ClientSession, event: OutboundEvent):
        try:
            await session.handle.send_text(event.to_json())
        except Exception as e:
            logger.error(f"Error sending to session {session.session_id}: {e}")

    async def send_error(self, session: ClientSession, message: str, code: Optional[str] = None,
                         retry_after_ms: Optional[int] = None):
        logger.warning(f"Sending {error_category(code)} error to session {session.session_id}: {message}")
        await self.send(session, create_error_event(message, code, retry_after_ms))

    async def send_result_error(self, session: ClientSession, result: ActionResult):
        await self.send_error(session, result.error_message, result.error_code)

    def state_view(self, room_code: str, player_id: Optional[str]) -> Optional[Dict[str, Any]]:
        state = self.coordinator.get_room(room_code)
        if state is None:
            return None
        return state_to_dict(get_sanitized_state_for_player(state, player_id))

    async def broadcast_state(self, room_code: str):
        """Send every connected player their own sanitized view of the room."""
        state = self.coordinator.get_room(room_code)
        if state is None:
            return
        for player_id, _ in self.registry.connections(room_code):
            view = state_to_dict(get_sanitized_state_for_player(state, player_id))
            await self.registry.send_to_player(room_code, player_id, create_game_state_event(view).to_json())

    def _check_rate_limit(self, session: ClientSession, action: str) -> Optional[RateLimitError]:
        decision = self.rate_limiter.check_rate_limit(session.ip, action)
        if decision.allowed:
            return None
        logger.warning(f"Rate limited {action} from {session.ip}")
        return RateLimitError(action, decision.retry_after_ms)

    def _player_id_for(self, session: ClientSession, event: BaseEvent) -> str:
        return session.player_id or event.player_id or generate_player_id()

    # Handlers

    async def handle_create_room(self, session: ClientSession, event: CreateRoomEvent):
        limited = self._check_rate_limit(session, ACTION_CREATE_ROOM)
        if limited is not None:
            await self.send_error(session, limited.message, limited.code, limited.retry_after_ms)
            return

        player_id = self._player_id_for(session, event)
        await self._detach(session)

        settings = event.settings or self.default_settings
        result = self.coordinator.create_room(event.player_name, player_id, settings)
        if not result.success:
            await self.send_result_error(session, result)
            return

        state = result.state
        async with self.lock_for(state.room_code):
            self._attach(session, state.room_code, player_id)
            await self.send(session, RoomCreatedEvent(
                room_code=state.room_code,
                player_id=player_id,
                players=[serialize_player_for_list(p, state.host_player_id) for p in state.players],
            ))
            await self.broadcast_state(state.room_code)

    async def handle_join_room(self, session: ClientSession, event: JoinRoomEvent):
        limited = self._check_rate_limit(session, ACTION_JOIN_ROOM)
        if limited is not None:
            await self.send_error(session, limited.message, limited.code, limited.retry_after_ms)
            return

        room_code = event.code.strip().upper()
        player_id = self._player_id_for(session, event)
        # No lock is created for codes that were never issued
        if self.coordinator.get_room(room_code) is None:
            logger.warning(f"Join failed for {room_code}: Room not found")
            await self.send_error(session, "Room not found", ROOM_NOT_FOUND)
            return

        async with self.lock_for(room_code):
            result = self.coordinator.join_room(room_code, event.player_name, player_id)
        if not result.success:
            logger.warning(f"Join failed for {room_code}: {result.error_message}")
            await self.send_result_error(session, result)
            return

        # The old seat is given up only once the new one is taken
        if session.room_code != room_code or session.player_id != player_id:
            await self._detach(session)

        async with self.lock_for(room_code):
            state = self.coordinator.get_room(room_code)
            if state is None:
                await self.send_error(session, "Room not found", ROOM_NOT_FOUND)
                return
            self._attach(session, room_code, player_id)
            await self.send(session, RoomJoinedEvent(
                room_code=room_code,
                player_id=player_id,
                players=[serialize_player_for_list(p, state.host_player_id) for p in state.players],
                settings=state.settings.to_wire(),
            ))
            player = serialize_player_for_list(state.get_player(player_id), state.host_player_id)
            await self.registry.broadcast(room_code, PlayerJoinedEvent(player=player).to_json(), exclude=[player_id])
            await self.broadcast_state(room_code)

    async def _room_action(self, session: ClientSession,
                           operation: Callable[[str, str], ActionResult]) -> Optional[ActionResult]:
        """
        Run a coordinator operation for the session's room under its lock and
        broadcast the new state on success. Returns the result, or None when
        the session is not in a room.
        """
        if not session.room_code or not session.player_id:
            await self.send_error(session, "Not in a room", NOT_IN_ROOM)
            return None

        room_code = session.room_code
        async with self.lock_for(room_code):
            result = operation(room_code, session.player_id)
            if not result.success:
                await self.send_result_error(session, result)
                return result
            await self.broadcast_state(room_code)
            return result

    async def handle_start_game(self, session: ClientSession, event: BaseEvent):
        result = await self._room_action(session, self.coordinator.start_game)
        if result is not None and result.success:
            logger.info(f"{session.player_id} started game in {session.room_code}")

    async def handle_play_cards(self, session: ClientSession, event: PlayCardsEvent):
        await self._room_action(
            session, lambda code, pid: self.coordinator.play_cards(code, pid, event.card_ids))

    async def handle_draw_card(self, session: ClientSession, event: DrawCardEvent):
        await self._room_action(
            session, lambda code, pid: self.coordinator.draw_card(code, pid, event.source))

    async def handle_call_win(self, session: ClientSession, event: BaseEvent):
        await self._room_action(session, self.coordinator.call_win)

    async def handle_update_settings(self, session: ClientSession, event: UpdateSettingsEvent):
        result = await self._room_action(
            session, lambda code, pid: self.coordinator.update_room_settings(code, pid, event.settings))
        if result is not None and result.success:
            await self.registry.broadcast(
                session.room_code, RoomUpdatedEvent(settings=result.state.settings.to_wire()).to_json())

    async def handle_next_round(self, session: ClientSession, event: BaseEvent):
        def advance(room_code: str, player_id: str) -> ActionResult:
            state = self.coordinator.get_room(room_code)
            if state is None:
                return ActionResult.fail(ROOM_NOT_FOUND, "Room not found")
            if state.get_player(player_id) is None:
                return ActionResult.fail(PLAYER_NOT_FOUND, "Player not in room")
            return self.coordinator.next_round(room_code)

        await self._room_action(session, advance)

    async def handle_leave_room(self, session: ClientSession, event: BaseEvent):
        await self._detach(session)

    async def handle_request_state(self, session: ClientSession, event: BaseEvent):
        if not session.room_code:
            await self.send_error(session, "Not in a room", NOT_IN_ROOM)
            return
        view = self.state_view(session.room_code, session.player_id)
        if view is None:
            await self.send_error(session, "Room not found", ROOM_NOT_FOUND)
            return
        await self.send(session, create_game_state_event(view))

    # Connection lifecycle

    def _attach(self, session: ClientSession, room_code: str, player_id: str):
        session.room_code = room_code
        session.player_id = player_id
        self.registry.add(room_code, player_id, session.handle)

    async def _detach(self, session: ClientSession):
        """
        Take the session out of its current room: the seat is kept but marked
        disconnected, and the rest of the room is told.
        """
        room_code, player_id = session.room_code, session.player_id
        if not room_code or not player_id:
            return
        session.room_code = None

        async with self.lock_for(room_code):
            # A newer connection for the same player owns the seat now
            if not self.registry.remove(room_code, player_id, session.handle):
                return
            result = self.coordinator.disconnect_player(room_code, player_id)
            await self.registry.broadcast(room_code, PlayerLeftEvent(player_id=player_id).to_json())
            if result.success:
                await self.broadcast_state(room_code)

    async def disconnect(self, session: ClientSession):
        """Called when the socket closes."""
        await self._detach(session)
