from fastapi import APIRouter

from courtside.config import config
from courtside.logic.ranking.match_results import record_match_result, reset_match_to_unplayed
from courtside.models.league import RecordMatchResultBody
from courtside.routes.models import SingleMatchResponse
from courtside.utils.id_types import MatchId

router = APIRouter(prefix=config.api_prefix)


@router.post("/matches/{match_id}/result", response_model=SingleMatchResponse)
async def post_match_result(match_id: MatchId, body: RecordMatchResultBody) -> SingleMatchResponse:
    return SingleMatchResponse(data=await record_match_result(match_id, body))


@router.post("/matches/{match_id}/reset", response_model=SingleMatchResponse)
async def post_match_reset(match_id: MatchId) -> SingleMatchResponse:
    return SingleMatchResponse(data=await reset_match_to_unplayed(match_id))
