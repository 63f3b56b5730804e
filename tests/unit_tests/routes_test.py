from typing import Any

import pytest
from starlette.exceptions import HTTPException

from courtside.logic.ranking.recalculation import PlayerReplay
from courtside.models.db.league import Season
from courtside.models.db.match import Match
from courtside.models.league import (
    RecordMatchResultBody,
    ResetPlayoffsBody,
    StandingsRow,
)
from courtside.routes import league as league_routes
from courtside.routes import matches as matches_routes
from courtside.routes import players as players_routes
from courtside.routes import util as route_util
from courtside.utils.dummy_records import (
    DUMMY_LEAGUE_ID,
    DUMMY_MOCK_TIME,
    DUMMY_SEASON_ID,
    dummy_match,
)
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, RegistrationId, SeasonId


def _season() -> Season:
    return Season(
        id=DUMMY_SEASON_ID,
        league_id=DUMMY_LEAGUE_ID,
        name="Spring 2026",
        created=DUMMY_MOCK_TIME,
    )


@pytest.mark.asyncio
async def test_reset_playoffs_requires_confirmation(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"reset": 0}

    async def fake_reset(_: LeagueId, __: SeasonId) -> int:
        calls["reset"] += 1
        return 6

    monkeypatch.setattr(league_routes, "reset_playoffs", fake_reset)

    with pytest.raises(HTTPException) as exc_info:
        await league_routes.post_reset_playoffs(
            DUMMY_LEAGUE_ID, DUMMY_SEASON_ID, ResetPlayoffsBody(), _season()
        )

    assert exc_info.value.status_code == 400
    assert calls["reset"] == 0

    response = await league_routes.post_reset_playoffs(
        DUMMY_LEAGUE_ID, DUMMY_SEASON_ID, ResetPlayoffsBody(confirm=True), _season()
    )

    assert response.data == 6
    assert calls["reset"] == 1


@pytest.mark.asyncio
async def test_get_standings_wraps_rows(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_standings(_: LeagueId, __: SeasonId) -> list[StandingsRow]:
        return [
            StandingsRow(
                position=1,
                player_id=PlayerId(4),
                player_name="Player 4",
                registration_id=RegistrationId(4),
            )
        ]

    monkeypatch.setattr(league_routes, "get_league_standings", fake_standings)

    response = await league_routes.get_standings(DUMMY_LEAGUE_ID, DUMMY_SEASON_ID, _season())

    assert response.data.league_id == DUMMY_LEAGUE_ID
    assert [row.player_id for row in response.data.standings] == [4]


@pytest.mark.asyncio
async def test_post_match_result_wraps_match(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_record(match_id: MatchId, body: RecordMatchResultBody) -> Match:
        return dummy_match(match_id, 1, 2, winner_id=body.winner_id, walkover=body.walkover)

    monkeypatch.setattr(matches_routes, "record_match_result", fake_record)

    response = await matches_routes.post_match_result(
        MatchId(3), RecordMatchResultBody(winner_id=PlayerId(2), walkover=True)
    )

    assert response.data.id == 3
    assert response.data.get_winner_id() == 2


@pytest.mark.asyncio
async def test_post_recalculate_player_summarizes_replay(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_recalculate(player_id: PlayerId, league_id: LeagueId | None = None) -> Any:
        assert league_id == 2
        return PlayerReplay(
            player_id=player_id,
            starting_rating=1200,
            rating=1231,
            highest_elo=1240,
            lowest_elo=1195,
        )

    monkeypatch.setattr(players_routes, "recalculate_player", fake_recalculate)

    response = await players_routes.post_recalculate_player(PlayerId(5), LeagueId(2))

    assert response.data.player_id == 5
    assert (response.data.rating, response.data.highest_elo, response.data.lowest_elo) == (
        1231,
        1240,
        1195,
    )
    assert response.data.matches_replayed == 0


@pytest.mark.asyncio
async def test_season_dependency_rejects_unknown_season(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_get_season(league_id: LeagueId, season_id: SeasonId) -> Season | None:
        return _season() if season_id == DUMMY_SEASON_ID else None

    monkeypatch.setattr(route_util, "get_season", fake_get_season)

    assert await route_util.season_dependency(DUMMY_LEAGUE_ID, DUMMY_SEASON_ID) == _season()

    with pytest.raises(HTTPException) as exc_info:
        await route_util.season_dependency(DUMMY_LEAGUE_ID, SeasonId(9))

    assert exc_info.value.status_code == 404
