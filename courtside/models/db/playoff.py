from enum import auto
from typing import Literal

from heliclockter import datetime_utc
from pydantic import Field

from courtside.models.db.match import PlayoffGroup
from courtside.models.db.shared import BaseModelORM
from courtside.utils.id_types import LeagueId, PlayerId, SeasonId
from courtside.utils.types import EnumAutoStr


class PlayoffPhase(EnumAutoStr):
    REGULAR_SEASON = auto()
    PLAYOFFS_GROUP_A = auto()
    PLAYOFFS_GROUP_B = auto()
    COMPLETED = auto()


PHASE_ORDER = [
    PlayoffPhase.REGULAR_SEASON,
    PlayoffPhase.PLAYOFFS_GROUP_A,
    PlayoffPhase.PLAYOFFS_GROUP_B,
    PlayoffPhase.COMPLETED,
]


class QualifiedPlayer(BaseModelORM):
    group: PlayoffGroup
    seed: int = Field(ge=1, le=8)
    player_id: PlayerId
    regular_season_position: int
    player_name: str | None = None


class PlayoffConfigInsertable(BaseModelORM):
    league_id: LeagueId
    season_id: SeasonId
    enabled: bool = False
    number_of_groups: Literal[1, 2] = 1
    current_phase: PlayoffPhase = PlayoffPhase.REGULAR_SEASON
    playoff_start_date: datetime_utc | None = None


class PlayoffConfig(PlayoffConfigInsertable):
    qualified_players: list[QualifiedPlayer] = Field(default_factory=list)

    @property
    def is_locked(self) -> bool:
        return self.current_phase is not PlayoffPhase.REGULAR_SEASON

    def get_groups(self) -> list[PlayoffGroup]:
        return [PlayoffGroup.A, PlayoffGroup.B][: self.number_of_groups]

    def get_qualified_players_in_group(self, group: PlayoffGroup) -> list[QualifiedPlayer]:
        return sorted(
            (player for player in self.qualified_players if player.group is group),
            key=lambda player: player.seed,
        )
