from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .auth import CamelModel


class CreateMatchRequest(CamelModel):
    time: int = Field(..., ge=0, description="Survival time in seconds")
    level: int = Field(..., ge=0)
    max_health: int = Field(..., ge=0)
    kills: int | None = Field(None, ge=0, description="Defaults to the reached level when omitted")
    item_ids: list[int] = Field(default_factory=list)
    weapon_ids: list[int] = Field(default_factory=list)


class MatchResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    user_id: int
    time: int
    level: int
    max_health: int
    created_at: datetime
    item_ids: list[int]
    weapon_ids: list[int]


class PlayerStatsResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    user_id: int
    total_kills: int
    highest_level: int
    updated_at: datetime


class LeaderboardEntry(CamelModel):
    rank: int
    user_id: int
    username: str
    total_kills: int
    highest_level: int
    updated_at: datetime
