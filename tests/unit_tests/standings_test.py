import random

import pytest

from courtside.logic.ranking import standings as standings_logic
from courtside.logic.ranking.standings import (
    compute_standings,
    eligible_rows,
    get_league_standings,
    stats_for_player,
)
from courtside.models.db.match import Match, PlayoffGroup, PlayoffInfo, PlayoffStage
from courtside.models.db.player import RegistrationStats, RegistrationWithPlayer
from courtside.utils.dummy_records import (
    DUMMY_LEAGUE_ID,
    DUMMY_SEASON_ID,
    dummy_match,
    dummy_registration,
    dummy_registrations,
)
from courtside.utils.errors import InvalidMatchState, MissingRegistration
from courtside.utils.id_types import LeagueId, PlayerId, SeasonId


def _season_matches() -> list[Match]:
    return [
        dummy_match(1, 1, 2, winner_id=1, sets=((6, 4), (3, 6), (7, 5))),
        dummy_match(2, 3, 4, winner_id=3, sets=((6, 0), (6, 1))),
        dummy_match(3, 1, 3, winner_id=3, walkover=True),
        dummy_match(4, 2, 4, winner_id=2, sets=((6, 2), (6, 2)), retired_player_id=None),
    ]


def test_stats_for_player_three_set_match() -> None:
    match = dummy_match(1, 1, 2, winner_id=1, sets=((6, 4), (3, 6), (7, 5)))

    assert stats_for_player(match, PlayerId(1)) == RegistrationStats(
        matches_played=1,
        matches_won=1,
        total_points=2,
        sets_won=2,
        sets_lost=1,
        games_won=16,
        games_lost=15,
    )
    assert stats_for_player(match, PlayerId(2)) == RegistrationStats(
        matches_played=1,
        matches_won=0,
        total_points=1,
        sets_won=1,
        sets_lost=2,
        games_won=15,
        games_lost=16,
    )


def test_stats_for_player_counts_walkover_against_loser() -> None:
    match = dummy_match(1, 1, 2, winner_id=1, walkover=True)

    assert stats_for_player(match, PlayerId(1)).walkovers == 0
    assert stats_for_player(match, PlayerId(2)).walkovers == 1
    assert stats_for_player(match, PlayerId(2)).matches_played == 1


def test_stats_for_player_counts_retirement() -> None:
    match = dummy_match(1, 1, 2, winner_id=2, sets=((6, 2), (1, 0)), retired_player_id=1)

    assert stats_for_player(match, PlayerId(1)).retirements == 1
    assert stats_for_player(match, PlayerId(2)).retirements == 0


def test_stats_for_player_rejects_outsider() -> None:
    with pytest.raises(ValueError):
        stats_for_player(dummy_match(1, 1, 2, winner_id=1, sets=((6, 0),)), PlayerId(3))


def test_compute_standings_ranks_by_points() -> None:
    rows = compute_standings(_season_matches(), dummy_registrations([1, 2, 3, 4]))

    assert [row.player_id for row in rows] == [3, 2, 1, 4]
    assert [row.position for row in rows] == [1, 2, 3, 4]
    assert [row.stats.total_points for row in rows] == [5, 4, 2, 0]

    player3 = rows[0]
    assert player3.stats.matches_played == 2
    assert player3.stats.matches_won == 2
    assert player3.stats.sets_won == 4
    assert player3.stats.games_won == 24


def test_compute_standings_is_order_independent() -> None:
    matches = _season_matches()
    registrations = dummy_registrations([1, 2, 3, 4])
    expected = compute_standings(matches, registrations)

    shuffled = list(matches)
    random.Random(7).shuffle(shuffled)

    assert compute_standings(shuffled, registrations) == expected
    assert compute_standings(matches, registrations) == expected


def test_compute_standings_tie_breaks() -> None:
    registrations = [
        dummy_registration(1, 1, name="bruno"),
        dummy_registration(2, 2, name="Alice"),
        dummy_registration(3, 3, name="Carla"),
        dummy_registration(4, 4, name="Dana"),
    ]
    matches = [
        # Both winners get 3 points, player 3 with the better game differential.
        dummy_match(1, 1, 4, winner_id=1, sets=((6, 4), (6, 4))),
        dummy_match(2, 3, 2, winner_id=3, sets=((6, 0), (6, 0))),
    ]

    rows = compute_standings(matches, registrations)

    assert [row.player_id for row in rows] == [3, 1, 4, 2]


def test_compute_standings_breaks_full_ties_alphabetically() -> None:
    registrations = [
        dummy_registration(1, 1, name="bruno"),
        dummy_registration(2, 2, name="Alice"),
        dummy_registration(3, 3, name="carla"),
    ]

    rows = compute_standings([], registrations)

    assert [row.player_name for row in rows] == ["Alice", "bruno", "carla"]


def test_compute_standings_rejects_playoff_matches() -> None:
    playoff = dummy_match(
        9,
        1,
        2,
        winner_id=1,
        sets=((6, 0), (6, 0)),
        playoff_info=PlayoffInfo(
            group=PlayoffGroup.A, stage=PlayoffStage.QUARTERFINAL, match_number=1
        ),
    )

    with pytest.raises(InvalidMatchState):
        compute_standings([*_season_matches(), playoff], dummy_registrations([1, 2, 3, 4]))


def test_compute_standings_rejects_unfinished_matches() -> None:
    with pytest.raises(InvalidMatchState):
        compute_standings([dummy_match(1, 1, 2)], dummy_registrations([1, 2]))


def test_compute_standings_rejects_unregistered_player() -> None:
    with pytest.raises(MissingRegistration):
        compute_standings(_season_matches(), dummy_registrations([1, 2, 3]))


def test_eligible_rows_drop_players_without_matches() -> None:
    rows = compute_standings(_season_matches(), dummy_registrations([1, 2, 3, 4, 5]))

    assert len(rows) == 5
    assert [row.player_id for row in eligible_rows(rows)] == [3, 2, 1, 4]


def test_standings_row_exposes_differentials() -> None:
    rows = compute_standings(_season_matches(), dummy_registrations([1, 2, 3, 4]))
    dumped = rows[0].model_dump()

    assert dumped["set_differential"] == 4
    assert dumped["game_differential"] == 23
    assert dumped["matches_lost"] == 0


@pytest.mark.asyncio
async def test_get_league_standings_reads_league_season(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[LeagueId, SeasonId]] = []

    async def fake_get_matches(league_id: LeagueId, season_id: SeasonId) -> list[Match]:
        calls.append((league_id, season_id))
        return _season_matches()

    async def fake_get_registrations(
        league_id: LeagueId, season_id: SeasonId
    ) -> list[RegistrationWithPlayer]:
        calls.append((league_id, season_id))
        return dummy_registrations([1, 2, 3, 4])

    monkeypatch.setattr(standings_logic, "get_completed_regular_matches", fake_get_matches)
    monkeypatch.setattr(
        standings_logic, "get_registrations_for_league_season", fake_get_registrations
    )

    rows = await get_league_standings(DUMMY_LEAGUE_ID, DUMMY_SEASON_ID)

    assert rows[0].player_id == 3
    assert calls == [(DUMMY_LEAGUE_ID, DUMMY_SEASON_ID)] * 2
