"""
Room settings and validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    DEFAULT_TOTAL_ROUNDS, MAX_PLAYERS, MAX_TOTAL_ROUNDS, MIN_TOTAL_ROUNDS,
    TIE_BREAK_OPPONENT,
)


class RoomSettings(BaseModel):
    """Host-controlled configuration for a room."""

    model_config = ConfigDict(populate_by_name=True)

    total_rounds: int = Field(
        default=DEFAULT_TOTAL_ROUNDS,
        ge=MIN_TOTAL_ROUNDS,
        le=MAX_TOTAL_ROUNDS,
        alias='totalRounds',
        description="Starting hand size X; the game plays X down to 2 and back up"
    )
    max_players: int = Field(
        default=MAX_PLAYERS,
        alias='maxPlayers',
        description="Maximum number of seats in the room"
    )
    tie_break: Literal['opponent', 'caller'] = Field(
        default=TIE_BREAK_OPPONENT,
        alias='tieBreak',
        description="Who wins a tied lowest score when a win is called"
    )

    @field_validator('max_players')
    @classmethod
    def validate_max_players(cls, v):
        """The seat count is fixed; clients may echo it back but not change it."""
        if v != MAX_PLAYERS:
            raise ValueError(f'max_players is fixed at {MAX_PLAYERS}')
        return v

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


default_settings = RoomSettings()


def create_settings(**overrides) -> RoomSettings:
    """Create RoomSettings with optional snake_case overrides."""
    config_dict = default_settings.model_dump()
    config_dict.update(overrides)
    return RoomSettings.model_validate(config_dict)
