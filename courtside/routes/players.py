from fastapi import APIRouter

from courtside.config import config
from courtside.logic.ranking.rating_history import get_rating_history
from courtside.logic.ranking.recalculation import recalculate_player, verify_player_stats
from courtside.routes.models import (
    PlayerRecalculationResponse,
    PlayerRecalculationView,
    RatingHistoryResponse,
    StatsVerificationResponse,
)
from courtside.utils.id_types import LeagueId, PlayerId

router = APIRouter(prefix=config.api_prefix)


@router.get("/players/{player_id}/rating_history", response_model=RatingHistoryResponse)
async def get_player_rating_history(player_id: PlayerId) -> RatingHistoryResponse:
    return RatingHistoryResponse(data=await get_rating_history(player_id))


@router.post("/players/{player_id}/recalculate", response_model=PlayerRecalculationResponse)
async def post_recalculate_player(
    player_id: PlayerId, league_id: LeagueId | None = None
) -> PlayerRecalculationResponse:
    replay = await recalculate_player(player_id, league_id)
    return PlayerRecalculationResponse(
        data=PlayerRecalculationView(
            player_id=player_id,
            rating=replay.rating,
            highest_elo=replay.highest_elo,
            lowest_elo=replay.lowest_elo,
            matches_replayed=len(replay.history),
        )
    )


@router.get("/players/{player_id}/stats/verify", response_model=StatsVerificationResponse)
async def get_verify_player_stats(
    player_id: PlayerId, league_id: LeagueId | None = None
) -> StatsVerificationResponse:
    return StatsVerificationResponse(data=await verify_player_stats(player_id, league_id))
