import json
from collections.abc import Mapping
from enum import auto
from typing import Any, Literal

from heliclockter import datetime_utc
from pydantic import BaseModel, Field, field_validator, model_validator

from courtside.models.db.shared import BaseModelORM
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, SeasonId
from courtside.utils.types import EnumAutoStr


class MatchType(EnumAutoStr):
    REGULAR = auto()
    PLAYOFF = auto()


class MatchStatus(EnumAutoStr):
    SCHEDULED = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    POSTPONED = auto()


class MatchOutcome(EnumAutoStr):
    WON = auto()
    LOST = auto()


class PlayoffGroup(EnumAutoStr):
    A = auto()
    B = auto()


class PlayoffStage(EnumAutoStr):
    QUARTERFINAL = auto()
    SEMIFINAL = auto()
    FINAL = auto()
    THIRD_PLACE = auto()


class SetScore(BaseModel):
    player1_games: int
    player2_games: int

    def winning_side(self) -> Literal[1, 2] | None:
        if self.player1_games > self.player2_games:
            return 1
        if self.player2_games > self.player1_games:
            return 2
        return None


class MatchScore(BaseModel):
    sets: list[SetScore] = Field(default_factory=list)
    walkover: bool = False
    retired_player_id: PlayerId | None = None

    @field_validator("sets", mode="before")
    @classmethod
    def parse_sets(cls, value: object) -> object:
        if isinstance(value, str):
            return json.loads(value)
        if value is None:
            return []
        return value


class MatchResult(BaseModel):
    winner_id: PlayerId
    score: MatchScore = Field(default_factory=MatchScore)
    played_at: datetime_utc


class PlayoffInfo(BaseModel):
    group: PlayoffGroup
    stage: PlayoffStage
    match_number: int = Field(ge=1)
    seed1: int | None = None
    seed2: int | None = None


class MatchCreateBody(BaseModelORM):
    league_id: LeagueId
    season_id: SeasonId
    round: int = Field(ge=1)
    match_type: MatchType = MatchType.REGULAR
    player1_id: PlayerId
    player2_id: PlayerId
    playoff_info: PlayoffInfo | None = None


_RESULT_COLUMNS = ("winner_id", "sets", "walkover", "retired_player_id", "played_at")
_PLAYOFF_COLUMNS = (
    "playoff_group",
    "playoff_stage",
    "playoff_match_number",
    "seed1",
    "seed2",
)


class Match(MatchCreateBody):
    id: MatchId
    status: MatchStatus = MatchStatus.SCHEDULED
    result: MatchResult | None = None
    player1_rating_before: int | None = None
    player1_rating_change: int | None = None
    player2_rating_before: int | None = None
    player2_rating_change: int | None = None
    created: datetime_utc

    @model_validator(mode="before")
    @classmethod
    def nest_flat_columns(cls, value: Any) -> Any:
        """
        Match rows keep the result and the playoff slot as flat columns, nest them here so the
        engine only deals with `result` and `playoff_info`.
        """
        if not isinstance(value, Mapping):
            return value

        data = dict(value)
        if "result" not in data and any(column in data for column in _RESULT_COLUMNS):
            columns = {column: data.pop(column, None) for column in _RESULT_COLUMNS}
            data["result"] = (
                None
                if columns["winner_id"] is None
                else {
                    "winner_id": columns["winner_id"],
                    "played_at": columns["played_at"],
                    "score": {
                        "sets": columns["sets"],
                        "walkover": bool(columns["walkover"]),
                        "retired_player_id": columns["retired_player_id"],
                    },
                }
            )

        if "playoff_info" not in data and any(column in data for column in _PLAYOFF_COLUMNS):
            columns = {column: data.pop(column, None) for column in _PLAYOFF_COLUMNS}
            data["playoff_info"] = (
                None
                if columns["playoff_stage"] is None
                else {
                    "group": columns["playoff_group"],
                    "stage": columns["playoff_stage"],
                    "match_number": columns["playoff_match_number"],
                    "seed1": columns["seed1"],
                    "seed2": columns["seed2"],
                }
            )
        return data

    @model_validator(mode="after")
    def result_iff_completed(self) -> "Match":
        if (self.status is MatchStatus.COMPLETED) != (self.result is not None):
            raise ValueError(
                f"Match {self.id} has status {self.status} but "
                f"{'a' if self.result is not None else 'no'} result"
            )
        return self

    @property
    def is_playoff(self) -> bool:
        return self.match_type is MatchType.PLAYOFF

    @property
    def is_walkover(self) -> bool:
        return self.result is not None and self.result.score.walkover

    def has_player(self, player_id: PlayerId) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def get_opponent_id(self, player_id: PlayerId) -> PlayerId:
        if player_id == self.player1_id:
            return self.player2_id
        if player_id == self.player2_id:
            return self.player1_id
        raise ValueError(f"Player {player_id} did not play match {self.id}")

    def get_winner_id(self) -> PlayerId | None:
        return self.result.winner_id if self.result is not None else None

    def get_loser_id(self) -> PlayerId | None:
        if self.result is None:
            return None
        return self.get_opponent_id(self.result.winner_id)


class MatchRatingAudit(BaseModel):
    """Ratings both players entered a regular match with, and what the match moved them by."""

    player1_rating_before: int
    player1_rating_change: int
    player2_rating_before: int
    player2_rating_change: int
