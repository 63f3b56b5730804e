from heliclockter import datetime_utc

from courtside.models.db.shared import BaseModelORM
from courtside.utils.id_types import LeagueId, SeasonId


class LeagueInsertable(BaseModelORM):
    name: str
    created: datetime_utc


class League(LeagueInsertable):
    id: LeagueId


class SeasonInsertable(BaseModelORM):
    league_id: LeagueId
    name: str
    created: datetime_utc
    start_time: datetime_utc | None = None
    end_time: datetime_utc | None = None
    is_active: bool = True


class Season(SeasonInsertable):
    id: SeasonId
