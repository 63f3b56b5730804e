from collections.abc import Mapping
from typing import NamedTuple

from heliclockter import datetime_utc

from courtside.config import config
from courtside.database import database
from courtside.logic.ranking.elo import (
    determine_rating_extremes,
    get_starting_rating,
    rating_change_for_match,
    updated_extremes,
)
from courtside.logic.ranking.points import score_display, validate_match_score
from courtside.logic.ranking.standings import stats_for_player
from courtside.logic.scheduling.playoffs import advance_playoff_bracket, release_playoff_match
from courtside.models.db.match import (
    Match,
    MatchOutcome,
    MatchRatingAudit,
    MatchResult,
    MatchScore,
    MatchStatus,
)
from courtside.models.db.player import (
    MatchHistoryEntryInsertable,
    Player,
    Registration,
    RegistrationStats,
)
from courtside.models.league import RecordMatchResultBody
from courtside.sql.match_history import (
    get_match_history_for_player,
    sql_delete_match_history_for_match,
    sql_insert_match_history_entries,
)
from courtside.sql.matches import (
    get_match_by_id,
    get_match_for_update,
    sql_acquire_match_lock,
    sql_clear_match_result,
    sql_set_match_result,
)
from courtside.sql.players import (
    get_players_for_update,
    get_registrations_for_match,
    get_registrations_for_player,
    sql_apply_stats_delta,
    sql_update_player_rating,
)
from courtside.sql.playoffs import sql_acquire_playoff_lock
from courtside.utils.errors import InvalidMatchState, MissingRegistration, NotFound
from courtside.utils.id_types import MatchId, PlayerId
from courtside.utils.logging import logger
from courtside.utils.types import assert_some

RECORDABLE_STATUSES = (MatchStatus.SCHEDULED, MatchStatus.POSTPONED)


class PlayerMatchUpdate(NamedTuple):
    player_id: PlayerId
    registration: Registration
    stats_delta: RegistrationStats
    rating_before: int
    rating_after: int
    highest_elo: int
    lowest_elo: int
    history_entry: MatchHistoryEntryInsertable


def _get_registration(
    match: Match, registrations: Mapping[PlayerId, Registration], player_id: PlayerId
) -> Registration:
    registration = registrations.get(player_id)
    if registration is None:
        raise MissingRegistration(
            f"Player {player_id} of match {match.id} is not registered "
            f"for league {match.league_id} season {match.season_id}"
        )
    return registration


def _get_player(match: Match, players: Mapping[PlayerId, Player], player_id: PlayerId) -> Player:
    player = players.get(player_id)
    if player is None:
        raise NotFound(f"Player {player_id} of match {match.id} does not exist")
    return player


def determine_player_updates(
    match: Match,
    players: Mapping[PlayerId, Player],
    registrations: Mapping[PlayerId, Registration],
    k_factor: int,
) -> tuple[PlayerMatchUpdate, PlayerMatchUpdate]:
    """
    Everything a completed regular match changes for its two players.

    Both ratings are taken from before the match, so the exchange is zero-sum.
    """
    result = assert_some(match.result)
    player1 = _get_player(match, players, match.player1_id)
    player2 = _get_player(match, players, match.player2_id)
    change = rating_change_for_match(match, player1.elo_rating, player2.elo_rating, k_factor)
    score = score_display(result.score)

    def build(player: Player, rating_after: int, delta: int) -> PlayerMatchUpdate:
        registration = _get_registration(match, registrations, player.id)
        highest_elo, lowest_elo = updated_extremes(
            player.highest_elo, player.lowest_elo, rating_after
        )
        return PlayerMatchUpdate(
            player_id=player.id,
            registration=registration,
            stats_delta=stats_for_player(match, player.id),
            rating_before=player.elo_rating,
            rating_after=rating_after,
            highest_elo=highest_elo,
            lowest_elo=lowest_elo,
            history_entry=MatchHistoryEntryInsertable(
                registration_id=registration.id,
                match_id=match.id,
                opponent_id=match.get_opponent_id(player.id),
                result=MatchOutcome.WON if result.winner_id == player.id else MatchOutcome.LOST,
                score=score,
                rating_before=player.elo_rating,
                rating_after=rating_after,
                rating_change=delta,
                played_at=result.played_at,
                round=match.round,
            ),
        )

    return (
        build(player1, change.new_rating_a, change.delta_a),
        build(player2, change.new_rating_b, change.delta_b),
    )


def rating_audit_for(
    player1_update: PlayerMatchUpdate, player2_update: PlayerMatchUpdate
) -> MatchRatingAudit:
    return MatchRatingAudit(
        player1_rating_before=player1_update.rating_before,
        player1_rating_change=player1_update.rating_after - player1_update.rating_before,
        player2_rating_before=player2_update.rating_before,
        player2_rating_change=player2_update.rating_after - player2_update.rating_before,
    )


async def _lock_match(match_id: MatchId) -> Match:
    """
    Serialize writers of one match for the rest of the transaction.

    Playoff matches additionally take the league+season playoff lock before the row lock, the
    same order playoff reset and initialization use.
    """
    await sql_acquire_match_lock(match_id)
    match = await get_match_by_id(match_id)
    if match is None:
        raise NotFound(f"Match {match_id} does not exist")
    if match.is_playoff:
        await sql_acquire_playoff_lock(match.league_id, match.season_id)
    return assert_some(await get_match_for_update(match_id))


async def _apply_regular_match(match: Match) -> MatchRatingAudit:
    players = await get_players_for_update([match.player1_id, match.player2_id])
    registrations = await get_registrations_for_match(match)
    updates = determine_player_updates(match, players, registrations, config.elo_k_factor)

    for update in updates:
        await sql_update_player_rating(
            update.player_id, update.rating_after, update.highest_elo, update.lowest_elo
        )
        await sql_apply_stats_delta(update.registration.id, update.stats_delta)
    await sql_insert_match_history_entries([update.history_entry for update in updates])
    return rating_audit_for(*updates)


async def record_match_result(match_id: MatchId, body: RecordMatchResultBody) -> Match:
    async with database.transaction():
        match = await _lock_match(match_id)
        if match.status not in RECORDABLE_STATUSES:
            raise InvalidMatchState(
                f"Match {match_id} is {match.status}, reset it before recording a new result"
            )

        score = MatchScore(
            sets=body.sets, walkover=body.walkover, retired_player_id=body.retired_player_id
        )
        validate_match_score(match.player1_id, match.player2_id, body.winner_id, score)
        result = MatchResult(
            winner_id=body.winner_id,
            score=score,
            played_at=body.played_at if body.played_at is not None else datetime_utc.now(),
        )
        completed = match.model_copy(update={"status": MatchStatus.COMPLETED, "result": result})

        if completed.is_playoff:
            await sql_set_match_result(match_id, result, None)
            await advance_playoff_bracket(completed)
        else:
            rating_audit = await _apply_regular_match(completed)
            await sql_set_match_result(match_id, result, rating_audit)
            completed = completed.model_copy(update=rating_audit.model_dump())

    logger.info(
        "Match result recorded: match_id=%s league_id=%s season_id=%s winner_id=%s",
        int(match_id),
        int(match.league_id),
        int(match.season_id),
        int(body.winner_id),
    )
    return completed


async def _undo_regular_match(match: Match) -> None:
    players = await get_players_for_update([match.player1_id, match.player2_id])
    registrations = await get_registrations_for_match(match)
    await sql_delete_match_history_for_match(match.id)

    for player_id, rating_change in (
        (match.player1_id, match.player1_rating_change),
        (match.player2_id, match.player2_rating_change),
    ):
        registration = _get_registration(match, registrations, player_id)
        player = _get_player(match, players, player_id)
        await sql_apply_stats_delta(registration.id, stats_for_player(match, player_id), sign=-1)

        if rating_change is None:
            logger.warning(
                "Match has no rating audit, rating left untouched: match_id=%s player_id=%s",
                int(match.id),
                int(player_id),
            )
            rating_change = 0

        rating = player.elo_rating - rating_change
        starting_rating = get_starting_rating(await get_registrations_for_player(player_id))
        remaining_ratings = [
            entry.rating_after for entry in await get_match_history_for_player(player_id)
        ]
        highest_elo, lowest_elo = determine_rating_extremes(
            starting_rating, [*remaining_ratings, rating]
        )
        await sql_update_player_rating(player_id, rating, highest_elo, lowest_elo)


async def reset_match_to_unplayed(match_id: MatchId) -> Match:
    async with database.transaction():
        match = await _lock_match(match_id)
        if match.status is not MatchStatus.COMPLETED:
            raise InvalidMatchState(f"Match {match_id} is {match.status}, nothing to reset")

        if match.is_playoff:
            await release_playoff_match(match)
        else:
            await _undo_regular_match(match)
        await sql_clear_match_result(match_id)

    logger.info(
        "Match reset to unplayed: match_id=%s league_id=%s season_id=%s",
        int(match_id),
        int(match.league_id),
        int(match.season_id),
    )
    return match.model_copy(
        update={
            "status": MatchStatus.SCHEDULED,
            "result": None,
            **dict.fromkeys(MatchRatingAudit.model_fields),
        }
    )
