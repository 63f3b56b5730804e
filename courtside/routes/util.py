from fastapi import HTTPException
from starlette import status

from courtside.models.db.league import League, Season
from courtside.sql.league import get_league_by_id, get_season
from courtside.utils.id_types import LeagueId, SeasonId


async def league_dependency(league_id: LeagueId) -> League:
    league = await get_league_by_id(league_id)
    if league is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Could not find league with id {league_id}",
        )
    return league


async def season_dependency(league_id: LeagueId, season_id: SeasonId) -> Season:
    season = await get_season(league_id, season_id)
    if season is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Could not find season {season_id} of league {league_id}",
        )
    return season
