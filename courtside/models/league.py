from typing import Literal

from heliclockter import datetime_utc
from pydantic import BaseModel, Field, computed_field

from courtside.models.db.match import (
    Match,
    MatchOutcome,
    PlayoffGroup,
    PlayoffStage,
    SetScore,
)
from courtside.models.db.playoff import PlayoffPhase, QualifiedPlayer
from courtside.models.db.player import RegistrationStats
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, RegistrationId, SeasonId


class StandingsRow(BaseModel):
    position: int
    player_id: PlayerId
    player_name: str
    registration_id: RegistrationId
    stats: RegistrationStats = Field(default_factory=RegistrationStats)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def matches_lost(self) -> int:
        return self.stats.matches_lost

    @computed_field  # type: ignore[prop-decorator]
    @property
    def set_differential(self) -> int:
        return self.stats.set_differential

    @computed_field  # type: ignore[prop-decorator]
    @property
    def game_differential(self) -> int:
        return self.stats.game_differential


class LeagueStandingsView(BaseModel):
    league_id: LeagueId
    season_id: SeasonId
    standings: list[StandingsRow] = Field(default_factory=list)


class RecordMatchResultBody(BaseModel):
    winner_id: PlayerId
    sets: list[SetScore] = Field(default_factory=list)
    walkover: bool = False
    retired_player_id: PlayerId | None = None
    played_at: datetime_utc | None = None


class InitializePlayoffsBody(BaseModel):
    number_of_groups: Literal[1, 2] = 1


class PlayoffConfigUpdateBody(BaseModel):
    number_of_groups: Literal[1, 2]


class ResetPlayoffsBody(BaseModel):
    confirm: bool = False


class NextRoundMatchBody(BaseModel):
    group: PlayoffGroup
    stage: PlayoffStage
    match_number: int = Field(default=1, ge=1, le=2)


class PlayoffBracketView(BaseModel):
    league_id: LeagueId
    season_id: SeasonId
    phase: PlayoffPhase
    enabled: bool
    number_of_groups: int
    playoff_start_date: datetime_utc | None = None
    qualified_players: dict[PlayoffGroup, list[QualifiedPlayer]] = Field(default_factory=dict)
    matches: list[Match] = Field(default_factory=list)
    standings_preview: list[StandingsRow] = Field(default_factory=list)
    eligible_player_count: int = 0


class RatingHistoryPoint(BaseModel):
    match_number: int
    label: str | None = None
    rating_after: int
    rating_change: int = 0
    match_id: MatchId | None = None
    opponent_id: PlayerId | None = None
    opponent_name: str | None = None
    result: MatchOutcome | None = None
    score: str | None = None
    played_at: datetime_utc | None = None
    round: int | None = None


class RatingHistorySummary(BaseModel):
    starting_rating: int
    current_rating: int
    peak_rating: int
    lowest_rating: int
    total_change: int
    last_match_change: int
    total_matches: int
    wins: int
    losses: int
    win_rate: int


class RatingHistoryView(BaseModel):
    player_id: PlayerId
    points: list[RatingHistoryPoint] = Field(default_factory=list)
    summary: RatingHistorySummary


class RecalculationFailure(BaseModel):
    player_id: PlayerId
    status_code: int
    detail: str


class RecalculationReport(BaseModel):
    succeeded: list[PlayerId] = Field(default_factory=list)
    failed: list[RecalculationFailure] = Field(default_factory=list)
    recalculated_at: str
    duration_ms: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return len(self.failed) < 1


class StatsDiscrepancy(BaseModel):
    registration_id: RegistrationId
    stat: str
    stored: int
    calculated: int


class StatsVerificationView(BaseModel):
    player_id: PlayerId
    league_id: LeagueId | None = None
    stored_rating: int
    calculated_rating: int
    discrepancies: list[StatsDiscrepancy] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return len(self.discrepancies) < 1 and self.stored_rating == self.calculated_rating
