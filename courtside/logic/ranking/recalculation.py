import time
from collections.abc import Container, Mapping, Sequence
from typing import Literal

from heliclockter import datetime_utc
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException

from courtside.config import config
from courtside.database import database
from courtside.logic.ranking.elo import (
    DEFAULT_INITIAL_RATING,
    get_starting_rating,
    rating_change_for_match,
    updated_extremes,
)
from courtside.logic.ranking.points import score_display
from courtside.logic.ranking.standings import stats_for_player
from courtside.models.db.match import Match, MatchOutcome, MatchStatus
from courtside.models.db.player import (
    STATS_COLUMNS,
    MatchHistoryEntryInsertable,
    Player,
    Registration,
    RegistrationStats,
)
from courtside.models.league import (
    RecalculationFailure,
    RecalculationReport,
    StatsDiscrepancy,
    StatsVerificationView,
)
from courtside.sql.match_history import (
    sql_delete_match_history_for_registrations,
    sql_insert_match_history_entries,
)
from courtside.sql.matches import (
    get_completed_regular_match_ids_for_players,
    get_completed_regular_matches_for_player,
    get_completed_regular_matches_for_update,
    sql_acquire_match_locks,
    sql_set_rating_audit,
)
from courtside.sql.players import (
    get_player_by_id,
    get_player_ids_in_league,
    get_players_by_ids,
    get_players_for_update,
    get_registrations_for_player,
    sql_overwrite_registration_stats,
    sql_update_player_rating,
)
from courtside.utils.errors import InvalidMatchState, MissingRegistration, NotFound
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, RegistrationId
from courtside.utils.logging import logger
from courtside.utils.types import assert_some


class RatingAuditEntry(BaseModel):
    match_id: MatchId
    side: Literal[1, 2]
    rating_before: int
    rating_change: int


class PlayerReplay(BaseModel):
    player_id: PlayerId
    starting_rating: int
    rating: int
    highest_elo: int
    lowest_elo: int
    stats: dict[RegistrationId, RegistrationStats] = Field(default_factory=dict)
    history: list[MatchHistoryEntryInsertable] = Field(default_factory=list)
    rating_audits: list[RatingAuditEntry] = Field(default_factory=list)


def _replay_order(match: Match) -> tuple[datetime_utc, MatchId]:
    return assert_some(match.result).played_at, match.id


def _check_replayable(match: Match) -> None:
    if match.is_playoff or match.status is not MatchStatus.COMPLETED or match.result is None:
        raise InvalidMatchState(
            f"Match {match.id} is not a completed regular match and cannot be replayed"
        )


def _get_registration(
    player_id: PlayerId, registrations: Sequence[Registration], match: Match
) -> Registration:
    for registration in registrations:
        if (registration.league_id, registration.season_id) == (match.league_id, match.season_id):
            return registration
    raise MissingRegistration(
        f"Player {player_id} has no registration for league {match.league_id} "
        f"season {match.season_id} of match {match.id}"
    )


def check_player_replayable(
    player_id: PlayerId, registrations: Sequence[Registration], matches: Sequence[Match]
) -> None:
    """Raise the error a replay of these matches would raise for this player, if any."""
    for match in matches:
        _check_replayable(match)
        _get_registration(player_id, registrations, match)


def _fixed_rating(
    player_id: PlayerId, audited_rating: int | None, fixed_players: Mapping[PlayerId, Player]
) -> int:
    if audited_rating is not None:
        return audited_rating
    player = fixed_players.get(player_id)
    return player.elo_rating if player is not None else DEFAULT_INITIAL_RATING


def _append_match(
    replay: PlayerReplay,
    registration: Registration,
    match: Match,
    side: Literal[1, 2],
    delta: int,
) -> None:
    result = assert_some(match.result)
    rating_before = replay.rating
    replay.rating = rating_before + delta
    replay.highest_elo, replay.lowest_elo = updated_extremes(
        replay.highest_elo, replay.lowest_elo, replay.rating
    )
    replay.stats[registration.id] = replay.stats[registration.id].combined_with(
        stats_for_player(match, replay.player_id)
    )
    replay.history.append(
        MatchHistoryEntryInsertable(
            registration_id=registration.id,
            match_id=match.id,
            opponent_id=match.get_opponent_id(replay.player_id),
            result=MatchOutcome.WON if result.winner_id == replay.player_id else MatchOutcome.LOST,
            score=score_display(result.score),
            rating_before=rating_before,
            rating_after=replay.rating,
            rating_change=delta,
            played_at=result.played_at,
            round=match.round,
        )
    )
    replay.rating_audits.append(
        RatingAuditEntry(
            match_id=match.id, side=side, rating_before=rating_before, rating_change=delta
        )
    )


def replay_matches(
    registrations: Mapping[PlayerId, Sequence[Registration]],
    matches: Sequence[Match],
    fixed_players: Mapping[PlayerId, Player],
    k_factor: int,
) -> dict[PlayerId, PlayerReplay]:
    """
    Rebuild the rating chains, stats and history of several players in one pass.

    Every player in `registrations` is replayed from the initial rating of their earliest
    registration, through their completed regular matches by date, ties broken by match id.
    When both sides of a match are replayed, both ratings come from the running chains and
    the exchange is zero-sum. A side that is not replayed keeps the rating stored in the
    match's rating audit, legacy matches without an audit fall back to that player's current
    rating in `fixed_players`.

    Only the audits of sides that are not replayed are read, and those are never rewritten,
    so replaying the written result again gives identical output.
    """
    replays: dict[PlayerId, PlayerReplay] = {}
    for player_id, player_registrations in registrations.items():
        starting_rating = get_starting_rating(player_registrations)
        replays[player_id] = PlayerReplay(
            player_id=player_id,
            starting_rating=starting_rating,
            rating=starting_rating,
            highest_elo=starting_rating,
            lowest_elo=starting_rating,
            stats={registration.id: RegistrationStats() for registration in player_registrations},
        )

    for match in sorted(matches, key=_replay_order):
        _check_replayable(match)
        sides: tuple[tuple[Literal[1, 2], PlayerId, int | None], ...] = (
            (1, match.player1_id, match.player1_rating_before),
            (2, match.player2_id, match.player2_rating_before),
        )
        replayed = {
            side: (
                replays[player_id],
                _get_registration(player_id, registrations[player_id], match),
            )
            for side, player_id, _ in sides
            if player_id in replays
        }
        if len(replayed) < 1:
            raise InvalidMatchState(f"Match {match.id} involves none of the replayed players")

        ratings = [
            replayed[side][0].rating
            if side in replayed
            else _fixed_rating(player_id, audited_rating, fixed_players)
            for side, player_id, audited_rating in sides
        ]
        change = rating_change_for_match(match, ratings[0], ratings[1], k_factor)
        deltas: dict[Literal[1, 2], int] = {1: change.delta_a, 2: change.delta_b}
        for side, (replay, registration) in replayed.items():
            _append_match(replay, registration, match, side, deltas[side])

    return replays


def replay_player_matches(
    player_id: PlayerId,
    registrations: Sequence[Registration],
    matches: Sequence[Match],
    opponents: Mapping[PlayerId, Player],
    k_factor: int,
) -> PlayerReplay:
    """Replay one player, opponents keep the ratings stored in the match audits."""
    return replay_matches({player_id: registrations}, matches, opponents, k_factor)[player_id]


async def _lock_for_replay(
    player_ids: Sequence[PlayerId],
) -> tuple[list[Match], dict[PlayerId, Player]]:
    """
    Lock everything a replay of these players rewrites.

    Same order as recording or resetting a result: match advisory locks by ascending match id,
    then the match rows, then the player rows by ascending player id.
    """
    await sql_acquire_match_locks(await get_completed_regular_match_ids_for_players(player_ids))
    matches = await get_completed_regular_matches_for_update(player_ids)
    players = await get_players_for_update(player_ids)
    return matches, players


async def _write_replay(
    replay: PlayerReplay, registrations: Sequence[Registration], league_id: LeagueId | None
) -> None:
    rewritten_ids = [
        registration.id
        for registration in registrations
        if league_id is None or registration.league_id == league_id
    ]

    await sql_delete_match_history_for_registrations(rewritten_ids)
    for registration_id in rewritten_ids:
        await sql_overwrite_registration_stats(registration_id, replay.stats[registration_id])
    await sql_insert_match_history_entries(
        [entry for entry in replay.history if entry.registration_id in rewritten_ids]
    )
    for audit in replay.rating_audits:
        await sql_set_rating_audit(
            audit.match_id, audit.side, audit.rating_before, audit.rating_change
        )
    await sql_update_player_rating(
        replay.player_id, replay.rating, replay.highest_elo, replay.lowest_elo
    )


async def recalculate_player(
    player_id: PlayerId, league_id: LeagueId | None = None
) -> PlayerReplay:
    """
    Rebuild one player's rating, stats and match history from the matches table.

    The rating chain always spans every league the player is in. With `league_id` only the
    registrations of that league get their stats and history rewritten.
    """
    async with database.transaction():
        matches, players = await _lock_for_replay([player_id])
        if player_id not in players:
            raise NotFound(f"Player {player_id} does not exist")

        registrations = await get_registrations_for_player(player_id)
        opponents = await get_players_by_ids(match.get_opponent_id(player_id) for match in matches)
        replay = replay_player_matches(
            player_id, registrations, matches, opponents, config.elo_k_factor
        )
        await _write_replay(replay, registrations, league_id)

    logger.info(
        "Player recalculated: player_id=%s matches=%s rating=%s",
        int(player_id),
        len(replay.history),
        replay.rating,
    )
    return replay


def _involves(match: Match, player_ids: Container[PlayerId]) -> bool:
    return match.player1_id in player_ids or match.player2_id in player_ids


async def recalculate_league(league_id: LeagueId) -> RecalculationReport:
    """
    Recalculate every player of a league in one chronological pass and one transaction.

    Players whose matches cannot be replayed are reported as failed and left untouched, the
    others are replayed together so matches between two of them stay zero-sum.
    """
    started_at = time.monotonic()
    report = RecalculationReport(recalculated_at=datetime_utc.now().isoformat())

    async with database.transaction():
        player_ids = await get_player_ids_in_league(league_id)
        matches, _ = await _lock_for_replay(player_ids)

        replayable: dict[PlayerId, list[Registration]] = {}
        for player_id in player_ids:
            registrations = await get_registrations_for_player(player_id)
            try:
                check_player_replayable(
                    player_id,
                    registrations,
                    [match for match in matches if _involves(match, {player_id})],
                )
            except HTTPException as exc:
                failure = RecalculationFailure(
                    player_id=player_id, status_code=exc.status_code, detail=str(exc.detail)
                )
            else:
                replayable[player_id] = registrations
                continue

            report.failed.append(failure)
            logger.warning(
                "Player recalculation failed: league_id=%s player_id=%s detail=%s",
                int(league_id),
                int(player_id),
                failure.detail,
            )

        replayed_matches = [match for match in matches if _involves(match, replayable)]
        fixed_players = await get_players_by_ids(
            player_id
            for match in replayed_matches
            for player_id in (match.player1_id, match.player2_id)
            if player_id not in replayable
        )
        replays = replay_matches(
            replayable, replayed_matches, fixed_players, config.elo_k_factor
        )
        for player_id, replay in replays.items():
            await _write_replay(replay, replayable[player_id], league_id)
            report.succeeded.append(player_id)

    report.duration_ms = int((time.monotonic() - started_at) * 1000)
    if report.duration_ms >= config.records_recalc_warn_ms:
        logger.warning(
            "League recalculation was slow: league_id=%s duration_ms=%s",
            int(league_id),
            report.duration_ms,
        )
    logger.info(
        "League recalculated: league_id=%s succeeded=%s failed=%s duration_ms=%s",
        int(league_id),
        len(report.succeeded),
        len(report.failed),
        report.duration_ms,
    )
    return report


def determine_stats_discrepancies(
    registrations: Sequence[Registration], replay: PlayerReplay
) -> list[StatsDiscrepancy]:
    discrepancies: list[StatsDiscrepancy] = []
    for registration in registrations:
        calculated = replay.stats.get(registration.id, RegistrationStats())
        for stat in STATS_COLUMNS:
            stored_value = getattr(registration.stats, stat)
            calculated_value = getattr(calculated, stat)
            if stored_value != calculated_value:
                discrepancies.append(
                    StatsDiscrepancy(
                        registration_id=registration.id,
                        stat=stat,
                        stored=stored_value,
                        calculated=calculated_value,
                    )
                )
    return discrepancies


async def verify_player_stats(
    player_id: PlayerId, league_id: LeagueId | None = None
) -> StatsVerificationView:
    player = await get_player_by_id(player_id)
    if player is None:
        raise NotFound(f"Player {player_id} does not exist")

    registrations = await get_registrations_for_player(player_id)
    matches = await get_completed_regular_matches_for_player(player_id)
    opponents = await get_players_by_ids(match.get_opponent_id(player_id) for match in matches)
    replay = replay_player_matches(
        player_id, registrations, matches, opponents, config.elo_k_factor
    )
    checked = [
        registration
        for registration in registrations
        if league_id is None or registration.league_id == league_id
    ]
    return StatsVerificationView(
        player_id=player_id,
        league_id=league_id,
        stored_rating=player.elo_rating,
        calculated_rating=replay.rating,
        discrepancies=determine_stats_discrepancies(checked, replay),
    )
