import random
from collections.abc import Iterable, Sequence
from typing import Any

import pytest
from heliclockter import timedelta

from courtside.logic.ranking import recalculation
from courtside.logic.ranking.recalculation import (
    determine_stats_discrepancies,
    recalculate_league,
    recalculate_player,
    replay_matches,
    replay_player_matches,
    verify_player_stats,
)
from courtside.models.db.match import Match, PlayoffGroup, PlayoffInfo, PlayoffStage
from courtside.models.db.player import (
    MatchHistoryEntryInsertable,
    Player,
    Registration,
    RegistrationStats,
    SkillLevel,
)
from courtside.utils.dummy_records import (
    DUMMY_LEAGUE_ID,
    DUMMY_MOCK_TIME,
    dummy_match,
    dummy_player,
    dummy_registration,
)
from courtside.utils.errors import InvalidMatchState, MissingRegistration, NotFound
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, RegistrationId


class _DummyTransaction:
    async def __aenter__(self) -> "_DummyTransaction":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        return False


def _audited_matches() -> list[Match]:
    return [
        # Player 1 beats player 2 at 1200 each: +16.
        dummy_match(
            1, 1, 2, winner_id=1, sets=((6, 4), (6, 4)), rating_audit=(1200, 16, 1200, -16)
        ),
        # Player 3 entered at 1250 and beat player 1, who was at 1216 by then: -14.
        dummy_match(
            2, 3, 1, winner_id=3, sets=((6, 2), (6, 2)), rating_audit=(1250, 14, 1216, -14)
        ),
    ]


def test_replay_rebuilds_rating_chain() -> None:
    replay = replay_player_matches(
        PlayerId(1), [dummy_registration(1, 1)], _audited_matches(), {}, k_factor=32
    )

    assert replay.starting_rating == 1200
    assert replay.rating == 1202
    assert (replay.highest_elo, replay.lowest_elo) == (1216, 1200)
    assert [entry.rating_after for entry in replay.history] == [1216, 1202]
    assert [entry.opponent_id for entry in replay.history] == [2, 3]
    assert [
        (audit.side, audit.rating_before, audit.rating_change) for audit in replay.rating_audits
    ] == [(1, 1200, 16), (2, 1216, -14)]

    stats = replay.stats[RegistrationId(1)]
    assert (stats.matches_played, stats.matches_won, stats.total_points) == (2, 1, 3)


def test_replay_is_deterministic() -> None:
    matches = _audited_matches()
    registrations = [dummy_registration(1, 1)]
    first = replay_player_matches(PlayerId(1), registrations, matches, {}, k_factor=32)

    shuffled = list(reversed(matches))
    random.Random(3).shuffle(shuffled)

    assert replay_player_matches(PlayerId(1), registrations, shuffled, {}, k_factor=32) == first
    assert replay_player_matches(PlayerId(1), registrations, matches, {}, k_factor=32) == first


def test_replay_orders_same_day_matches_by_id() -> None:
    played_at = DUMMY_MOCK_TIME + timedelta(days=3)
    matches = [
        dummy_match(7, 1, 2, winner_id=2, sets=((2, 6), (2, 6)), played_at=played_at),
        dummy_match(5, 1, 3, winner_id=1, sets=((6, 2), (6, 2)), played_at=played_at),
    ]

    replay = replay_player_matches(
        PlayerId(1), [dummy_registration(1, 1)], matches, {}, k_factor=32
    )

    assert [entry.match_id for entry in replay.history] == [5, 7]


def test_replay_without_audit_uses_current_opponent_rating() -> None:
    matches = [dummy_match(1, 1, 2, winner_id=1, sets=((6, 4), (6, 4)))]
    registrations = [dummy_registration(1, 1)]

    with_opponent = replay_player_matches(
        PlayerId(1), registrations, matches, {PlayerId(2): dummy_player(2, elo_rating=1300)}, 32
    )
    without_opponent = replay_player_matches(PlayerId(1), registrations, matches, {}, 32)

    # E = 1 / (1 + 10^0.25) = 0.3599, 32 * 0.6401 = 20.48
    assert with_opponent.rating == 1220
    assert without_opponent.rating == 1216


def test_replay_skips_rating_for_walkovers() -> None:
    matches = [dummy_match(1, 1, 2, winner_id=2, walkover=True, rating_audit=(1200, 0, 1200, 0))]

    replay = replay_player_matches(PlayerId(1), [dummy_registration(1, 1)], matches, {}, 32)

    assert replay.rating == 1200
    assert replay.history[0].rating_change == 0
    assert replay.stats[RegistrationId(1)].walkovers == 1


def test_replay_rejects_playoff_matches() -> None:
    playoff = dummy_match(
        1,
        1,
        2,
        winner_id=1,
        sets=((6, 0), (6, 0)),
        playoff_info=PlayoffInfo(group=PlayoffGroup.A, stage=PlayoffStage.FINAL, match_number=1),
    )

    with pytest.raises(InvalidMatchState):
        replay_player_matches(PlayerId(1), [dummy_registration(1, 1)], [playoff], {}, 32)


def test_replay_requires_registration_for_match_league() -> None:
    other_league = dummy_match(
        1, 1, 2, winner_id=1, sets=((6, 0), (6, 0)), league_id=LeagueId(2)
    )

    with pytest.raises(MissingRegistration):
        replay_player_matches(PlayerId(1), [dummy_registration(1, 1)], [other_league], {}, 32)


def test_replay_matches_shares_ratings_between_replayed_players() -> None:
    registrations = {
        PlayerId(1): [dummy_registration(1, 1, level=SkillLevel.ADVANCED)],
        PlayerId(2): [dummy_registration(2, 2, level=SkillLevel.BEGINNER)],
    }
    # The stored audit says 1200 vs 1200, the running chains say 1300 vs 1100.
    matches = [
        dummy_match(
            1, 1, 2, winner_id=1, sets=((6, 4), (6, 4)), rating_audit=(1200, 16, 1200, -16)
        )
    ]

    replays = replay_matches(registrations, matches, {}, k_factor=32)

    assert (replays[PlayerId(1)].rating, replays[PlayerId(2)].rating) == (1308, 1092)
    assert [
        (audit.side, audit.rating_before, audit.rating_change)
        for replay in replays.values()
        for audit in replay.rating_audits
    ] == [(1, 1300, 8), (2, 1100, -8)]


def test_replay_matches_rejects_unrelated_match() -> None:
    with pytest.raises(InvalidMatchState):
        replay_matches(
            {PlayerId(1): [dummy_registration(1, 1)]},
            [dummy_match(1, 2, 3, winner_id=2, sets=((6, 4), (6, 4)))],
            {},
            k_factor=32,
        )


def test_determine_stats_discrepancies() -> None:
    replay = replay_player_matches(
        PlayerId(1), [dummy_registration(1, 1)], _audited_matches(), {}, 32
    )
    stored = dummy_registration(
        1,
        1,
        stats=replay.stats[RegistrationId(1)].model_copy(update={"total_points": 5}),
    )

    [discrepancy] = determine_stats_discrepancies([stored], replay)

    assert (discrepancy.stat, discrepancy.stored, discrepancy.calculated) == ("total_points", 5, 3)
    matching = dummy_registration(1, 1, stats=replay.stats[RegistrationId(1)])
    assert determine_stats_discrepancies([matching], replay) == []


class _FakeReplayStore:
    """Players, registrations and matches that the recalculation writes back into."""

    def __init__(
        self,
        players: Iterable[Player],
        registrations: Sequence[Registration],
        matches: Sequence[Match],
    ) -> None:
        self.players = {player.id: player for player in players}
        self.registrations = list(registrations)
        self.matches = {match.id: match for match in matches}
        self.locks: list[str] = []
        self.deleted_history_for: list[RegistrationId] = []
        self.overwritten_stats: dict[RegistrationId, RegistrationStats] = {}
        self.history: list[MatchHistoryEntryInsertable] = []
        self.rating_audits: list[tuple[MatchId, int, int, int]] = []
        self.ratings: dict[PlayerId, tuple[int, int, int]] = {}

    def _matches_of(self, player_ids: Iterable[PlayerId]) -> list[Match]:
        ids = set(player_ids)
        return [
            match
            for match_id, match in sorted(self.matches.items())
            if match.player1_id in ids or match.player2_id in ids
        ]

    def audit_of(self, match_id: int) -> tuple[int | None, ...]:
        match = self.matches[MatchId(match_id)]
        return (
            match.player1_rating_before,
            match.player1_rating_change,
            match.player2_rating_before,
            match.player2_rating_change,
        )

    async def get_player_ids_in_league(self, league_id: LeagueId) -> list[PlayerId]:
        return sorted(
            {
                registration.player_id
                for registration in self.registrations
                if registration.league_id == league_id
            }
        )

    async def get_completed_regular_match_ids_for_players(
        self, player_ids: Sequence[PlayerId]
    ) -> list[MatchId]:
        return [match.id for match in self._matches_of(player_ids)]

    async def sql_acquire_match_locks(self, match_ids: Iterable[MatchId]) -> None:
        self.locks.extend(f"match:{match_id}" for match_id in sorted(match_ids))

    async def get_completed_regular_matches_for_update(
        self, player_ids: Sequence[PlayerId]
    ) -> list[Match]:
        matches = self._matches_of(player_ids)
        self.locks.append("match_rows:" + ",".join(str(match.id) for match in matches))
        return matches

    async def get_completed_regular_matches_for_player(self, player_id: PlayerId) -> list[Match]:
        return self._matches_of([player_id])

    async def get_players_for_update(self, player_ids: Sequence[PlayerId]) -> dict[PlayerId, Player]:
        self.locks.append("players:" + ",".join(str(player_id) for player_id in sorted(player_ids)))
        return await self.get_players_by_ids(player_ids)

    async def get_player_by_id(self, player_id: PlayerId) -> Player | None:
        return self.players.get(player_id)

    async def get_players_by_ids(self, player_ids: Iterable[PlayerId]) -> dict[PlayerId, Player]:
        return {
            player_id: self.players[player_id]
            for player_id in player_ids
            if player_id in self.players
        }

    async def get_registrations_for_player(self, player_id: PlayerId) -> list[Registration]:
        return [
            registration
            for registration in self.registrations
            if registration.player_id == player_id
        ]

    async def sql_delete_match_history_for_registrations(
        self, registration_ids: Sequence[RegistrationId]
    ) -> None:
        self.deleted_history_for.extend(registration_ids)

    async def sql_overwrite_registration_stats(
        self, registration_id: RegistrationId, stats: RegistrationStats
    ) -> None:
        self.overwritten_stats[registration_id] = stats

    async def sql_insert_match_history_entries(
        self, entries: Sequence[MatchHistoryEntryInsertable]
    ) -> None:
        self.history.extend(entries)

    async def sql_set_rating_audit(
        self, match_id: MatchId, side: int, rating_before: int, rating_change: int
    ) -> None:
        self.rating_audits.append((match_id, side, rating_before, rating_change))
        self.matches[match_id] = self.matches[match_id].model_copy(
            update={
                f"player{side}_rating_before": rating_before,
                f"player{side}_rating_change": rating_change,
            }
        )

    async def sql_update_player_rating(
        self, player_id: PlayerId, elo_rating: int, highest_elo: int, lowest_elo: int
    ) -> None:
        self.ratings[player_id] = (elo_rating, highest_elo, lowest_elo)
        self.players[player_id] = self.players[player_id].model_copy(
            update={
                "elo_rating": elo_rating,
                "highest_elo": highest_elo,
                "lowest_elo": lowest_elo,
            }
        )


def _patch_store(monkeypatch: pytest.MonkeyPatch, store: _FakeReplayStore) -> None:
    monkeypatch.setattr(recalculation.database, "transaction", lambda: _DummyTransaction())
    monkeypatch.setattr(recalculation.config, "elo_k_factor", 32)
    for name in (
        "get_player_ids_in_league",
        "get_completed_regular_match_ids_for_players",
        "sql_acquire_match_locks",
        "get_completed_regular_matches_for_update",
        "get_completed_regular_matches_for_player",
        "get_players_for_update",
        "get_player_by_id",
        "get_players_by_ids",
        "get_registrations_for_player",
        "sql_delete_match_history_for_registrations",
        "sql_overwrite_registration_stats",
        "sql_insert_match_history_entries",
        "sql_set_rating_audit",
        "sql_update_player_rating",
    ):
        monkeypatch.setattr(recalculation, name, getattr(store, name))


def _two_league_store() -> _FakeReplayStore:
    return _FakeReplayStore(
        players=[dummy_player(1, elo_rating=1500), dummy_player(2), dummy_player(3), dummy_player(4)],
        registrations=[
            dummy_registration(1, 1),
            dummy_registration(
                2, 1, league_id=LeagueId(2), created=DUMMY_MOCK_TIME + timedelta(days=1)
            ),
        ],
        matches=[
            *_audited_matches(),
            dummy_match(
                3,
                1,
                4,
                winner_id=1,
                sets=((7, 5), (6, 4)),
                league_id=LeagueId(2),
                rating_audit=(1202, 16, 1202, -16),
            ),
        ],
    )


@pytest.mark.asyncio
async def test_recalculate_player_rewrites_everything(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _two_league_store()
    _patch_store(monkeypatch, store)

    replay = await recalculate_player(PlayerId(1))

    assert replay.rating == 1218
    assert store.ratings[PlayerId(1)] == (1218, 1218, 1200)
    assert store.deleted_history_for == [1, 2]
    assert store.overwritten_stats[RegistrationId(2)].matches_won == 1
    assert [entry.match_id for entry in store.history] == [1, 2, 3]
    assert store.rating_audits == [(1, 1, 1200, 16), (2, 2, 1216, -14), (3, 1, 1202, 16)]


@pytest.mark.asyncio
async def test_recalculate_player_twice_is_stable(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _two_league_store()
    _patch_store(monkeypatch, store)

    await recalculate_player(PlayerId(1))
    first = (dict(store.ratings), [store.audit_of(match_id) for match_id in (1, 2, 3)])
    await recalculate_player(PlayerId(1))

    assert (dict(store.ratings), [store.audit_of(match_id) for match_id in (1, 2, 3)]) == first
    # Opponent sides of the audits are inputs and stay as recorded.
    assert store.audit_of(2)[:2] == (1250, 14)


@pytest.mark.asyncio
async def test_recalculate_player_locks_matches_before_player(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store = _two_league_store()
    _patch_store(monkeypatch, store)

    await recalculate_player(PlayerId(1))

    # Same order as recording or resetting a result, so neither waits on the other in a cycle.
    assert store.locks == ["match:1", "match:2", "match:3", "match_rows:1,2,3", "players:1"]


@pytest.mark.asyncio
async def test_recalculate_player_scoped_to_league(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _two_league_store()
    _patch_store(monkeypatch, store)

    await recalculate_player(PlayerId(1), LeagueId(2))

    assert store.deleted_history_for == [2]
    assert list(store.overwritten_stats) == [2]
    assert [entry.match_id for entry in store.history] == [3]
    # The rating chain spans every league regardless of the scope.
    assert store.ratings[PlayerId(1)][0] == 1218


@pytest.mark.asyncio
async def test_recalculate_unknown_player(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _FakeReplayStore([], [], [])
    _patch_store(monkeypatch, store)

    with pytest.raises(NotFound):
        await recalculate_player(PlayerId(99))


def _level_store() -> _FakeReplayStore:
    return _FakeReplayStore(
        players=[dummy_player(1), dummy_player(2), dummy_player(3)],
        registrations=[
            dummy_registration(1, 1, level=SkillLevel.ADVANCED),
            dummy_registration(2, 2, level=SkillLevel.BEGINNER),
            dummy_registration(3, 3, level=SkillLevel.INTERMEDIATE),
        ],
        matches=[
            # Audits recorded before the levels were known, both are rewritten.
            dummy_match(
                1, 1, 2, winner_id=1, sets=((6, 4), (6, 4)), rating_audit=(1200, 16, 1200, -16)
            ),
            dummy_match(
                2, 3, 1, winner_id=3, sets=((6, 3), (6, 3)), rating_audit=(1200, 16, 1216, -16)
            ),
        ],
    )


@pytest.mark.asyncio
async def test_recalculate_league_replays_players_together(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store = _level_store()
    _patch_store(monkeypatch, store)

    report = await recalculate_league(DUMMY_LEAGUE_ID)

    assert report.succeeded == [1, 2, 3]
    assert report.failed == []
    # 1300 beats 1100: +8. Then 1200 beats 1308: +21.
    assert store.ratings == {
        PlayerId(1): (1287, 1308, 1287),
        PlayerId(2): (1092, 1100, 1092),
        PlayerId(3): (1221, 1221, 1200),
    }
    assert store.audit_of(1) == (1300, 8, 1100, -8)
    assert store.audit_of(2) == (1200, 21, 1308, -21)
    assert sum(rating for rating, _, _ in store.ratings.values()) == 1300 + 1100 + 1200
    assert store.locks == ["match:1", "match:2", "match_rows:1,2", "players:1,2,3"]


@pytest.mark.asyncio
async def test_recalculate_league_twice_gives_same_ratings(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store = _level_store()
    _patch_store(monkeypatch, store)

    await recalculate_league(DUMMY_LEAGUE_ID)
    first = (dict(store.ratings), [store.audit_of(1), store.audit_of(2)])
    await recalculate_league(DUMMY_LEAGUE_ID)

    assert (dict(store.ratings), [store.audit_of(1), store.audit_of(2)]) == first


@pytest.mark.asyncio
async def test_recalculate_league_collects_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _FakeReplayStore(
        players=[dummy_player(player_id) for player_id in (1, 2, 3, 4)],
        registrations=[dummy_registration(player_id, player_id) for player_id in (1, 2, 3)],
        matches=[
            dummy_match(1, 1, 3, winner_id=1, sets=((6, 4), (6, 4))),
            # Player 2 has no registration for league 2.
            dummy_match(2, 2, 4, winner_id=2, sets=((6, 4), (6, 4)), league_id=LeagueId(2)),
            dummy_match(
                3, 1, 2, winner_id=1, sets=((6, 4), (6, 4)), rating_audit=(1216, 16, 1200, -16)
            ),
        ],
    )
    _patch_store(monkeypatch, store)

    report = await recalculate_league(DUMMY_LEAGUE_ID)

    assert report.succeeded == [1, 3]
    [failure] = report.failed
    assert failure.player_id == 2
    assert failure.status_code == 404
    assert "no registration" in failure.detail
    assert report.success is False
    assert report.recalculated_at != ""

    # Player 2 is left untouched and keeps the rating stored for them in match 3.
    assert PlayerId(2) not in store.ratings
    assert store.ratings[PlayerId(1)][0] == 1231
    assert store.ratings[PlayerId(3)][0] == 1184
    assert store.audit_of(3) == (1216, 15, 1200, -16)
    assert store.deleted_history_for == [1, 3]


@pytest.mark.asyncio
async def test_verify_player_stats_reports_drift(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _two_league_store()
    store.registrations[0] = dummy_registration(
        1, 1, stats=RegistrationStats(matches_played=2, matches_won=2, total_points=6)
    )
    _patch_store(monkeypatch, store)

    verification = await verify_player_stats(PlayerId(1), LeagueId(1))

    assert verification.stored_rating == 1500
    assert verification.calculated_rating == 1218
    assert {discrepancy.stat for discrepancy in verification.discrepancies} >= {
        "matches_won",
        "total_points",
    }
    assert {discrepancy.registration_id for discrepancy in verification.discrepancies} == {1}
    assert verification.is_valid is False
    assert store.ratings == {}
