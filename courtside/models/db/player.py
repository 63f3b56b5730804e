from collections.abc import Mapping
from enum import auto
from typing import Any

from heliclockter import datetime_utc
from pydantic import BaseModel, Field, model_validator

from courtside.models.db.match import MatchOutcome
from courtside.models.db.shared import BaseModelORM
from courtside.utils.id_types import (
    LeagueId,
    MatchHistoryEntryId,
    MatchId,
    PlayerId,
    RegistrationId,
    SeasonId,
)
from courtside.utils.types import EnumAutoStr


class SkillLevel(EnumAutoStr):
    BEGINNER = auto()
    INTERMEDIATE = auto()
    ADVANCED = auto()


class RegistrationStatus(EnumAutoStr):
    PENDING = auto()
    CONFIRMED = auto()
    ACTIVE = auto()
    INACTIVE = auto()


class PlayerInsertable(BaseModelORM):
    name: str
    created: datetime_utc
    elo_rating: int
    highest_elo: int
    lowest_elo: int


class Player(PlayerInsertable):
    id: PlayerId


class RegistrationStats(BaseModel):
    matches_played: int = 0
    matches_won: int = 0
    total_points: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0
    retirements: int = 0
    walkovers: int = 0

    @property
    def matches_lost(self) -> int:
        return self.matches_played - self.matches_won

    @property
    def set_differential(self) -> int:
        return self.sets_won - self.sets_lost

    @property
    def game_differential(self) -> int:
        return self.games_won - self.games_lost

    def combined_with(self, other: "RegistrationStats", *, sign: int = 1) -> "RegistrationStats":
        return RegistrationStats(
            **{
                field: getattr(self, field) + sign * getattr(other, field)
                for field in RegistrationStats.model_fields
            }
        )


STATS_COLUMNS = tuple(RegistrationStats.model_fields)


class RegistrationInsertable(BaseModelORM):
    player_id: PlayerId
    league_id: LeagueId
    season_id: SeasonId
    level: SkillLevel = SkillLevel.INTERMEDIATE
    status: RegistrationStatus = RegistrationStatus.PENDING
    created: datetime_utc


class Registration(RegistrationInsertable):
    id: RegistrationId
    stats: RegistrationStats = Field(default_factory=RegistrationStats)

    @model_validator(mode="before")
    @classmethod
    def nest_stats_columns(cls, value: Any) -> Any:
        """Registration rows store the stats snapshot as flat columns."""
        if isinstance(value, Mapping) and "stats" not in value:
            data = dict(value)
            data["stats"] = {column: data.pop(column) for column in STATS_COLUMNS if column in data}
            return data
        return value


class RegistrationWithPlayer(Registration):
    player_name: str


class MatchHistoryEntryInsertable(BaseModelORM):
    registration_id: RegistrationId
    match_id: MatchId
    opponent_id: PlayerId
    result: MatchOutcome
    score: str
    rating_before: int
    rating_after: int
    rating_change: int
    played_at: datetime_utc
    round: int


class MatchHistoryEntry(MatchHistoryEntryInsertable):
    id: MatchHistoryEntryId


class MatchHistoryEntryWithOpponent(MatchHistoryEntry):
    opponent_name: str | None = None
