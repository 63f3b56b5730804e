from pydantic import BaseModel

from courtside.models.db.match import Match
from courtside.models.db.playoff import PlayoffConfig
from courtside.models.league import (
    LeagueStandingsView,
    PlayoffBracketView,
    RatingHistoryView,
    RecalculationReport,
    StatsVerificationView,
)
from courtside.utils.id_types import PlayerId


class DataResponse[DataT](BaseModel):
    data: DataT


class SingleMatchResponse(DataResponse[Match]):
    pass


class StandingsResponse(DataResponse[LeagueStandingsView]):
    pass


class PlayoffConfigResponse(DataResponse[PlayoffConfig]):
    pass


class PlayoffBracketResponse(DataResponse[PlayoffBracketView]):
    pass


class PlayoffResetResponse(DataResponse[int]):
    pass


class RatingHistoryResponse(DataResponse[RatingHistoryView]):
    pass


class PlayerRecalculationView(BaseModel):
    player_id: PlayerId
    rating: int
    highest_elo: int
    lowest_elo: int
    matches_replayed: int


class PlayerRecalculationResponse(DataResponse[PlayerRecalculationView]):
    pass


class RecalculationReportResponse(DataResponse[RecalculationReport]):
    pass


class StatsVerificationResponse(DataResponse[StatsVerificationView]):
    pass
