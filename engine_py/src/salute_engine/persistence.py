"""
Optional durable storage for room state.

The in-memory RoomStore is authoritative. A repository is a write-behind
copy used to hydrate rooms after a restart and to keep a record of finished
rounds; the server runs correctly with NullRoomRepository.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

import orjson
from sqlalchemy import (
    DateTime, ForeignKey, Integer, String, Text, create_engine, delete, select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .constants import PHASE_FINISHED, PHASE_WAITING
from .errors import PersistenceError
from .models import GameState
from .serialization import state_from_dict, state_to_dict

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class RoomRecord(Base):
    __tablename__ = 'rooms'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(6), unique=True, index=True)
    status: Mapped[str] = mapped_column(String(16), default='waiting')  # waiting, playing, finished
    settings: Mapped[str] = mapped_column(Text)  # JSON-encoded RoomSettings
    game_state: Mapped[str] = mapped_column(Text)  # JSON-encoded GameState
    current_round: Mapped[int] = mapped_column(Integer, default=0)
    winner_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)


class RoomPlayerRecord(Base):
    __tablename__ = 'room_players'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(ForeignKey('rooms.id', ondelete='CASCADE'))
    player_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(64))
    is_host: Mapped[bool] = mapped_column(default=False)


class GameRoundRecord(Base):
    __tablename__ = 'game_rounds'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    room_id: Mapped[int] = mapped_column(ForeignKey('rooms.id', ondelete='CASCADE'))
    round_number: Mapped[int] = mapped_column(Integer)
    winner_id: Mapped[str] = mapped_column(String(64))
    scores: Mapped[str] = mapped_column(Text)  # JSON-encoded {player_id: score}


def _utc(timestamp: float) -> datetime:
    """Naive UTC datetime, the form SQLite stores and compares."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def _status_for(state: GameState) -> str:
    if state.round_phase in (PHASE_WAITING, PHASE_FINISHED):
        return state.round_phase
    return 'playing'


class RoomRepository(Protocol):
    def load_room(self, code: str) -> Optional[GameState]: ...

    def save_room(self, state: GameState) -> None: ...

    def record_round(self, state: GameState, round_result: dict) -> None: ...

    def delete_expired_rooms(self, cutoff: float) -> int: ...


class NullRoomRepository:
    """Repository that stores nothing; rooms live only in memory."""

    def load_room(self, code: str) -> Optional[GameState]:
        return None

    def save_room(self, state: GameState) -> None:
        pass

    def record_round(self, state: GameState, round_result: dict) -> None:
        pass

    def delete_expired_rooms(self, cutoff: float) -> int:
        return 0


class SqlRoomRepository:
    """
    SQLAlchemy-backed repository.

    Every method wraps driver failures in PersistenceError so callers can
    log and carry on.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_engine(database_url, echo=echo)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_all(self):
        Base.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self.session_factory()

    def load_room(self, code: str) -> Optional[GameState]:
        try:
            with self._session() as session:
                record = session.scalar(select(RoomRecord).where(RoomRecord.code == code))
                if record is None or not record.game_state:
                    return None
                blob = record.game_state
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load room {code}: {exc}") from exc

        # orjson.JSONDecodeError and pydantic's ValidationError are ValueErrors
        try:
            state = state_from_dict(orjson.loads(blob))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise PersistenceError(f"Stored state for room {code} is unreadable: {exc}") from exc
        logger.info(f"Hydrated room {code} from the database")
        return state

    def save_room(self, state: GameState) -> None:
        payload = orjson.dumps(state_to_dict(state)).decode()
        settings = orjson.dumps(state.settings.to_wire()).decode()
        try:
            with self._session() as session, session.begin():
                record = session.scalar(select(RoomRecord).where(RoomRecord.code == state.room_code))
                if record is None:
                    record = RoomRecord(
                        code=state.room_code,
                        created_at=_utc(state.created_at),
                    )
                    session.add(record)
                record.status = _status_for(state)
                record.settings = settings
                record.game_state = payload
                record.current_round = state.current_round
                record.winner_id = state.game_winner.id if state.game_winner else None
                session.flush()

                known = set(session.scalars(
                    select(RoomPlayerRecord.player_id).where(RoomPlayerRecord.room_id == record.id)
                ))
                for player in state.players:
                    if player.id in known:
                        continue
                    session.add(RoomPlayerRecord(
                        room_id=record.id,
                        player_id=player.id,
                        name=player.name,
                        is_host=player.id == state.host_player_id,
                    ))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save room {state.room_code}: {exc}") from exc

    def record_round(self, state: GameState, round_result: dict) -> None:
        try:
            with self._session() as session, session.begin():
                room_id = session.scalar(select(RoomRecord.id).where(RoomRecord.code == state.room_code))
                if room_id is None:
                    return
                session.add(GameRoundRecord(
                    room_id=room_id,
                    round_number=round_result['roundNumber'],
                    winner_id=round_result['winnerId'],
                    scores=orjson.dumps(round_result['scores']).decode(),
                ))
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to record round for {state.room_code}: {exc}") from exc

    def delete_expired_rooms(self, cutoff: float) -> int:
        """Delete rooms created before cutoff (epoch seconds); returns the count."""
        cutoff_dt = _utc(cutoff)
        try:
            with self._session() as session, session.begin():
                expired = list(session.scalars(select(RoomRecord.id).where(RoomRecord.created_at < cutoff_dt)))
                if not expired:
                    return 0
                session.execute(delete(GameRoundRecord).where(GameRoundRecord.room_id.in_(expired)))
                session.execute(delete(RoomPlayerRecord).where(RoomPlayerRecord.room_id.in_(expired)))
                session.execute(delete(RoomRecord).where(RoomRecord.id.in_(expired)))
                return len(expired)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete expired rooms: {exc}") from exc


def create_repository(database_url: Optional[str]) -> RoomRepository:
    """Build the repository for a database URL; no URL means in-memory only."""
    if not database_url:
        return NullRoomRepository()
    repository = SqlRoomRepository(database_url)
    repository.create_all()
    logger.info(f"Persisting rooms to {repository.engine.url.render_as_string(hide_password=True)}")
    return repository
