"""Server configuration read from the environment"""

import os
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_TOTAL_ROUNDS, MAX_TOTAL_ROUNDS, MIN_TOTAL_ROUNDS, ROOM_RETENTION_HOURS,
    TIE_BREAK_OPPONENT,
)
from .rate_limit import default_rules
from .rules import RoomSettings

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "info"
    reload: bool = False
    trust_proxy_headers: bool = False
    database_url: Optional[str] = None
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ORIGINS))
    room_retention_hours: float = Field(default=ROOM_RETENTION_HOURS, gt=0)
    cleanup_interval_seconds: float = Field(default=60 * 60, gt=0)
    rate_limit_create_room: int = Field(default=5, ge=1)
    rate_limit_join_room: int = Field(default=10, ge=1)
    default_total_rounds: int = Field(default=DEFAULT_TOTAL_ROUNDS, ge=MIN_TOTAL_ROUNDS, le=MAX_TOTAL_ROUNDS)
    tie_break: Literal['opponent', 'caller'] = TIE_BREAK_OPPONENT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ServerConfig':
        env = os.environ if environ is None else environ
        values = {}

        def take(name: str, key: str):
            if env.get(name):
                values[key] = env[name]

        take("HOST", "host")
        take("PORT", "port")
        take("LOG_LEVEL", "log_level")
        take("DATABASE_URL", "database_url")
        take("ROOM_RETENTION_HOURS", "room_retention_hours")
        take("CLEANUP_INTERVAL_SECONDS", "cleanup_interval_seconds")
        take("RATE_LIMIT_CREATE_ROOM", "rate_limit_create_room")
        take("RATE_LIMIT_JOIN_ROOM", "rate_limit_join_room")
        take("DEFAULT_TOTAL_ROUNDS", "default_total_rounds")
        take("TIE_BREAK", "tie_break")

        values["reload"] = env.get("RELOAD", "false").lower() == "true"
        values["trust_proxy_headers"] = env.get("TRUST_PROXY_HEADERS", "false").lower() == "true"
        values["log_level"] = values.get("log_level", "info").lower()

        # Extra origins via comma-separated env var
        extra = [o.strip() for o in env.get("ALLOWED_ORIGINS", "").split(",") if o.strip()]
        values["allowed_origins"] = DEFAULT_ORIGINS + extra

        return cls(**values)

    @property
    def room_retention_seconds(self) -> float:
        return self.room_retention_hours * 60 * 60

    def default_room_settings(self) -> RoomSettings:
        return RoomSettings(total_rounds=self.default_total_rounds, tie_break=self.tie_break)

    def rate_limit_rules(self):
        return default_rules(self.rate_limit_create_room, self.rate_limit_join_room)
