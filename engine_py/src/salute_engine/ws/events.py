"""
WebSocket event models and validation.
"""

import time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedMessageError
from ..rules import RoomSettings


class EventType(str, Enum):
    """Inbound event types."""
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    START_GAME = "start_game"
    PLAY_CARDS = "play_cards"
    DRAW_CARD = "draw_card"
    CALL_WIN = "call_win"
    UPDATE_SETTINGS = "update_settings"
    LEAVE_ROOM = "leave_room"
    NEXT_ROUND = "next_round"
    REQUEST_STATE = "request_state"


class OutboundEventType(str, Enum):
    """Outbound event types."""
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    GAME_STATE = "game_state"
    ROOM_UPDATED = "room_updated"
    ERROR = "error"


# Inbound event models
class BaseEvent(BaseModel):
    """Base event model. Any message may name the sender's stable player id."""
    model_config = ConfigDict(populate_by_name=True)

    type: EventType
    player_id: Optional[str] = Field(default=None, alias="playerId", min_length=1, max_length=64)


class CreateRoomEvent(BaseEvent):
    """Create room event."""
    type: EventType = EventType.CREATE_ROOM
    player_name: str = Field(default="Host", alias="playerName", min_length=1, max_length=30)
    settings: Optional[RoomSettings] = None


class JoinRoomEvent(BaseEvent):
    """Join room event."""
    type: EventType = EventType.JOIN_ROOM
    code: str = Field(..., min_length=1, max_length=12)
    player_name: str = Field(..., alias="playerName", min_length=1, max_length=30)


class StartGameEvent(BaseEvent):
    """Start game event."""
    type: EventType = EventType.START_GAME


class PlayCardsEvent(BaseEvent):
    """Play cards event."""
    type: EventType = EventType.PLAY_CARDS
    card_ids: List[str] = Field(..., alias="cardIds", max_length=52)


class DrawCardEvent(BaseEvent):
    """Draw card event."""
    type: EventType = EventType.DRAW_CARD
    source: Literal["deck", "discard"]


class CallWinEvent(BaseEvent):
    """Call win event."""
    type: EventType = EventType.CALL_WIN


class UpdateSettingsEvent(BaseEvent):
    """Update room settings event."""
    type: EventType = EventType.UPDATE_SETTINGS
    settings: RoomSettings


class LeaveRoomEvent(BaseEvent):
    """Leave room event."""
    type: EventType = EventType.LEAVE_ROOM


class NextRoundEvent(BaseEvent):
    """Advance from scoring to the next round."""
    type: EventType = EventType.NEXT_ROUND


class RequestStateEvent(BaseEvent):
    """Request full state event."""
    type: EventType = EventType.REQUEST_STATE


EVENT_MODELS = {
    EventType.CREATE_ROOM: CreateRoomEvent,
    EventType.JOIN_ROOM: JoinRoomEvent,
    EventType.START_GAME: StartGameEvent,
    EventType.PLAY_CARDS: PlayCardsEvent,
    EventType.DRAW_CARD: DrawCardEvent,
    EventType.CALL_WIN: CallWinEvent,
    EventType.UPDATE_SETTINGS: UpdateSettingsEvent,
    EventType.LEAVE_ROOM: LeaveRoomEvent,
    EventType.NEXT_ROUND: NextRoundEvent,
    EventType.REQUEST_STATE: RequestStateEvent,
}


# Outbound event models
class OutboundEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: float = Field(default_factory=time.time)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class RoomCreatedEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.ROOM_CREATED
    room_code: str = Field(..., alias="roomCode")
    player_id: str = Field(..., alias="playerId")
    players: List[Dict[str, Any]]


class RoomJoinedEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.ROOM_JOINED
    room_code: str = Field(..., alias="roomCode")
    player_id: str = Field(..., alias="playerId")
    players: List[Dict[str, Any]]
    settings: Dict[str, Any]


class PlayerJoinedEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.PLAYER_JOINED
    player: Dict[str, Any]


class PlayerLeftEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.PLAYER_LEFT
    player_id: str = Field(..., alias="playerId")


class GameStateEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.GAME_STATE
    state: Dict[str, Any]


class RoomUpdatedEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.ROOM_UPDATED
    settings: Dict[str, Any]


class ErrorEvent(OutboundEvent):
    type: OutboundEventType = OutboundEventType.ERROR
    message: str
    code: Optional[str] = None
    retry_after_ms: Optional[int] = Field(default=None, alias="retryAfterMs")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def parse_inbound_event(raw: str) -> BaseEvent:
    """
    Parse a raw WebSocket text frame into the matching event model.

    Args:
        raw: JSON text received from the client

    Returns:
        Parsed event model

    Raises:
        MalformedMessageError: If the JSON is invalid, the type is unknown or
            the payload does not fit the event schema
    """
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        raise MalformedMessageError("Invalid JSON")

    if not isinstance(data, dict):
        raise MalformedMessageError("Message must be a JSON object")

    event_type = data.get("type")
    if not event_type:
        raise MalformedMessageError("Missing event type")

    try:
        event_type = EventType(event_type)
    except ValueError:
        raise MalformedMessageError(f"Invalid event type: {event_type}")

    try:
        return EVENT_MODELS[event_type].model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise MalformedMessageError(f"Invalid {event_type.value} payload: {location} {first.get('msg', '')}".strip())


def create_error_event(message: str, code: Optional[str] = None,
                       retry_after_ms: Optional[int] = None) -> ErrorEvent:
    """Create an error event."""
    return ErrorEvent(message=message, code=code, retry_after_ms=retry_after_ms)


def create_game_state_event(state: Dict[str, Any]) -> GameStateEvent:
    """Create a full state event."""
    return GameStateEvent(state=state)
