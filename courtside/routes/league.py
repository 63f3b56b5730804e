from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from courtside.config import config
from courtside.logic.ranking.recalculation import recalculate_league
from courtside.logic.ranking.standings import get_league_standings
from courtside.logic.scheduling.playoffs import (
    create_next_round_match,
    get_playoff_bracket,
    initialize_playoffs,
    reset_playoffs,
    update_playoff_config,
)
from courtside.models.db.league import League, Season
from courtside.models.league import (
    InitializePlayoffsBody,
    LeagueStandingsView,
    NextRoundMatchBody,
    PlayoffConfigUpdateBody,
    ResetPlayoffsBody,
)
from courtside.routes.models import (
    PlayoffBracketResponse,
    PlayoffConfigResponse,
    PlayoffResetResponse,
    RecalculationReportResponse,
    SingleMatchResponse,
    StandingsResponse,
)
from courtside.routes.util import league_dependency, season_dependency
from courtside.utils.id_types import LeagueId, SeasonId

router = APIRouter(prefix=config.api_prefix)


@router.get(
    "/leagues/{league_id}/seasons/{season_id}/standings", response_model=StandingsResponse
)
async def get_standings(
    league_id: LeagueId,
    season_id: SeasonId,
    _: Season = Depends(season_dependency),
) -> StandingsResponse:
    return StandingsResponse(
        data=LeagueStandingsView(
            league_id=league_id,
            season_id=season_id,
            standings=await get_league_standings(league_id, season_id),
        )
    )


@router.get(
    "/leagues/{league_id}/seasons/{season_id}/playoffs", response_model=PlayoffBracketResponse
)
async def get_playoffs(
    league_id: LeagueId,
    season_id: SeasonId,
    _: Season = Depends(season_dependency),
) -> PlayoffBracketResponse:
    return PlayoffBracketResponse(data=await get_playoff_bracket(league_id, season_id))


@router.post(
    "/leagues/{league_id}/seasons/{season_id}/playoffs", response_model=PlayoffConfigResponse
)
async def post_initialize_playoffs(
    league_id: LeagueId,
    season_id: SeasonId,
    body: InitializePlayoffsBody,
    _: Season = Depends(season_dependency),
) -> PlayoffConfigResponse:
    return PlayoffConfigResponse(
        data=await initialize_playoffs(league_id, season_id, body.number_of_groups)
    )


@router.post(
    "/leagues/{league_id}/seasons/{season_id}/playoffs/reset",
    response_model=PlayoffResetResponse,
)
async def post_reset_playoffs(
    league_id: LeagueId,
    season_id: SeasonId,
    body: ResetPlayoffsBody,
    _: Season = Depends(season_dependency),
) -> PlayoffResetResponse:
    if not body.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Resetting the playoffs deletes every playoff match, pass confirm=true",
        )
    return PlayoffResetResponse(data=await reset_playoffs(league_id, season_id))


@router.put(
    "/leagues/{league_id}/seasons/{season_id}/playoffs/config",
    response_model=PlayoffConfigResponse,
)
async def put_playoff_config(
    league_id: LeagueId,
    season_id: SeasonId,
    body: PlayoffConfigUpdateBody,
    _: Season = Depends(season_dependency),
) -> PlayoffConfigResponse:
    return PlayoffConfigResponse(
        data=await update_playoff_config(league_id, season_id, body.number_of_groups)
    )


@router.post(
    "/leagues/{league_id}/seasons/{season_id}/playoffs/next_round",
    response_model=SingleMatchResponse,
)
async def post_next_round_match(
    league_id: LeagueId,
    season_id: SeasonId,
    body: NextRoundMatchBody,
    _: Season = Depends(season_dependency),
) -> SingleMatchResponse:
    return SingleMatchResponse(
        data=await create_next_round_match(
            league_id, season_id, body.group, body.stage, body.match_number
        )
    )


@router.post("/leagues/{league_id}/recalculate", response_model=RecalculationReportResponse)
async def post_recalculate_league(
    league_id: LeagueId,
    _: League = Depends(league_dependency),
) -> RecalculationReportResponse:
    return RecalculationReportResponse(data=await recalculate_league(league_id))
