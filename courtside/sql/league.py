from heliclockter import datetime_utc

from courtside.database import database
from courtside.models.db.league import League, LeagueInsertable, Season, SeasonInsertable
from courtside.utils.id_types import LeagueId, SeasonId
from courtside.utils.types import assert_some


async def get_league_by_id(league_id: LeagueId) -> League | None:
    result = await database.fetch_one(
        "SELECT * FROM leagues WHERE id = :league_id", values={"league_id": league_id}
    )
    return League.model_validate(dict(result._mapping)) if result is not None else None


async def get_season(league_id: LeagueId, season_id: SeasonId) -> Season | None:
    result = await database.fetch_one(
        """
        SELECT *
        FROM seasons
        WHERE id = :season_id
        AND league_id = :league_id
        """,
        values={"league_id": league_id, "season_id": season_id},
    )
    return Season.model_validate(dict(result._mapping)) if result is not None else None


async def insert_league(name: str) -> League:
    league = LeagueInsertable(name=name, created=datetime_utc.now())
    result = await database.fetch_one(
        """
        INSERT INTO leagues (name, created)
        VALUES (:name, :created)
        RETURNING *
        """,
        values=league.model_dump(),
    )
    return League.model_validate(dict(assert_some(result)._mapping))


async def insert_season(league_id: LeagueId, name: str) -> Season:
    season = SeasonInsertable(league_id=league_id, name=name, created=datetime_utc.now())
    result = await database.fetch_one(
        """
        INSERT INTO seasons (league_id, name, created, start_time, end_time, is_active)
        VALUES (:league_id, :name, :created, :start_time, :end_time, :is_active)
        RETURNING *
        """,
        values=season.model_dump(),
    )
    return Season.model_validate(dict(assert_some(result)._mapping))
