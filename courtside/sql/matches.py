import json
from collections.abc import Iterable
from typing import Any, Literal

from heliclockter import datetime_utc

from courtside.database import database
from courtside.models.db.match import (
    Match,
    MatchCreateBody,
    MatchRatingAudit,
    MatchResult,
    MatchStatus,
)
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, SeasonId
from courtside.utils.types import assert_some

_MATCH_LOCK_SCOPE = 72001

_INSERT_MATCH_QUERY = """
    INSERT INTO matches (
        created, league_id, season_id, round, match_type, player1_id, player2_id, status,
        sets, walkover, playoff_group, playoff_stage, playoff_match_number, seed1, seed2
    )
    VALUES (
        :created, :league_id, :season_id, :round, :match_type, :player1_id, :player2_id,
        'SCHEDULED', CAST('[]' AS json), FALSE, :playoff_group, :playoff_stage,
        :playoff_match_number, :seed1, :seed2
    )
"""


def _match_values(body: MatchCreateBody) -> dict[str, Any]:
    playoff_info = body.playoff_info
    return {
        "created": datetime_utc.now(),
        "league_id": body.league_id,
        "season_id": body.season_id,
        "round": body.round,
        "match_type": body.match_type.value,
        "player1_id": body.player1_id,
        "player2_id": body.player2_id,
        "playoff_group": playoff_info.group.value if playoff_info is not None else None,
        "playoff_stage": playoff_info.stage.value if playoff_info is not None else None,
        "playoff_match_number": playoff_info.match_number if playoff_info is not None else None,
        "seed1": playoff_info.seed1 if playoff_info is not None else None,
        "seed2": playoff_info.seed2 if playoff_info is not None else None,
    }


async def sql_acquire_match_lock(match_id: MatchId) -> None:
    await database.execute(
        "SELECT pg_advisory_xact_lock(:lock_scope, :lock_key)",
        values={"lock_scope": _MATCH_LOCK_SCOPE, "lock_key": int(match_id)},
    )


async def sql_acquire_match_locks(match_ids: Iterable[MatchId]) -> None:
    for match_id in sorted(set(match_ids)):
        await sql_acquire_match_lock(match_id)


async def get_match_by_id(match_id: MatchId) -> Match | None:
    result = await database.fetch_one(
        "SELECT * FROM matches WHERE id = :match_id", values={"match_id": match_id}
    )
    return Match.model_validate(dict(result._mapping)) if result is not None else None


async def get_match_for_update(match_id: MatchId) -> Match | None:
    result = await database.fetch_one(
        "SELECT * FROM matches WHERE id = :match_id FOR UPDATE", values={"match_id": match_id}
    )
    return Match.model_validate(dict(result._mapping)) if result is not None else None


async def get_completed_regular_matches(league_id: LeagueId, season_id: SeasonId) -> list[Match]:
    query = """
        SELECT *
        FROM matches
        WHERE league_id = :league_id
        AND season_id = :season_id
        AND match_type = 'REGULAR'
        AND status = 'COMPLETED'
        ORDER BY played_at ASC, id ASC
    """
    result = await database.fetch_all(
        query=query, values={"league_id": league_id, "season_id": season_id}
    )
    return [Match.model_validate(dict(row._mapping)) for row in result]


async def get_completed_regular_matches_for_player(player_id: PlayerId) -> list[Match]:
    query = """
        SELECT *
        FROM matches
        WHERE (player1_id = :player_id OR player2_id = :player_id)
        AND match_type = 'REGULAR'
        AND status = 'COMPLETED'
        ORDER BY played_at ASC, id ASC
    """
    result = await database.fetch_all(query=query, values={"player_id": player_id})
    return [Match.model_validate(dict(row._mapping)) for row in result]


async def get_completed_regular_match_ids_for_players(
    player_ids: Iterable[PlayerId],
) -> list[MatchId]:
    ids = sorted(set(player_ids))
    if len(ids) < 1:
        return []

    query = """
        SELECT id
        FROM matches
        WHERE (player1_id = ANY(:player_ids) OR player2_id = ANY(:player_ids))
        AND match_type = 'REGULAR'
        AND status = 'COMPLETED'
        ORDER BY id ASC
    """
    result = await database.fetch_all(query=query, values={"player_ids": ids})
    return [MatchId(int(row._mapping["id"])) for row in result]


async def get_completed_regular_matches_for_update(
    player_ids: Iterable[PlayerId],
) -> list[Match]:
    """
    Lock the completed regular matches of the players in ascending id order.

    Callers take the match advisory locks first, so this never waits on a result being
    recorded or reset for one of these matches.
    """
    ids = sorted(set(player_ids))
    if len(ids) < 1:
        return []

    query = """
        SELECT *
        FROM matches
        WHERE (player1_id = ANY(:player_ids) OR player2_id = ANY(:player_ids))
        AND match_type = 'REGULAR'
        AND status = 'COMPLETED'
        ORDER BY id ASC
        FOR UPDATE
    """
    result = await database.fetch_all(query=query, values={"player_ids": ids})
    return [Match.model_validate(dict(row._mapping)) for row in result]


async def get_playoff_matches(league_id: LeagueId, season_id: SeasonId) -> list[Match]:
    query = """
        SELECT *
        FROM matches
        WHERE league_id = :league_id
        AND season_id = :season_id
        AND match_type = 'PLAYOFF'
        ORDER BY playoff_group ASC, round ASC, playoff_stage ASC, playoff_match_number ASC, id ASC
    """
    result = await database.fetch_all(
        query=query, values={"league_id": league_id, "season_id": season_id}
    )
    return [Match.model_validate(dict(row._mapping)) for row in result]


async def get_last_regular_round(league_id: LeagueId, season_id: SeasonId) -> int:
    query = """
        SELECT COALESCE(MAX(round), 0)
        FROM matches
        WHERE league_id = :league_id
        AND season_id = :season_id
        AND match_type = 'REGULAR'
    """
    return int(
        await database.fetch_val(
            query=query, values={"league_id": league_id, "season_id": season_id}
        )
    )


async def sql_create_match(body: MatchCreateBody) -> Match:
    result = await database.fetch_one(
        query=_INSERT_MATCH_QUERY + "RETURNING *", values=_match_values(body)
    )
    return Match.model_validate(dict(assert_some(result)._mapping))


async def sql_create_playoff_match_if_absent(body: MatchCreateBody) -> Match | None:
    """
    Insert a playoff match unless its bracket slot is already taken.

    Returns None when another transaction created the slot first, the partial unique index on
    (league, season, group, stage, match number) makes this safe without any extra locking.
    """
    query = (
        _INSERT_MATCH_QUERY
        + """
        ON CONFLICT (league_id, season_id, playoff_group, playoff_stage, playoff_match_number)
        WHERE match_type = 'PLAYOFF'
        DO NOTHING
        RETURNING *
        """
    )
    result = await database.fetch_one(query=query, values=_match_values(body))
    return Match.model_validate(dict(result._mapping)) if result is not None else None


async def sql_set_match_result(
    match_id: MatchId, result: MatchResult, rating_audit: MatchRatingAudit | None
) -> None:
    query = """
        UPDATE matches
        SET status = :status,
            winner_id = :winner_id,
            sets = CAST(:sets AS json),
            walkover = :walkover,
            retired_player_id = :retired_player_id,
            played_at = :played_at,
            player1_rating_before = :player1_rating_before,
            player1_rating_change = :player1_rating_change,
            player2_rating_before = :player2_rating_before,
            player2_rating_change = :player2_rating_change
        WHERE id = :match_id
    """
    audit_values: dict[str, int | None] = (
        rating_audit.model_dump()
        if rating_audit is not None
        else dict.fromkeys(MatchRatingAudit.model_fields)
    )
    await database.execute(
        query=query,
        values={
            "match_id": match_id,
            "status": MatchStatus.COMPLETED.value,
            "winner_id": result.winner_id,
            "sets": json.dumps([set_.model_dump() for set_ in result.score.sets]),
            "walkover": result.score.walkover,
            "retired_player_id": result.score.retired_player_id,
            "played_at": result.played_at,
            **audit_values,
        },
    )


async def sql_clear_match_result(match_id: MatchId) -> None:
    query = """
        UPDATE matches
        SET status = 'SCHEDULED',
            winner_id = NULL,
            sets = CAST('[]' AS json),
            walkover = FALSE,
            retired_player_id = NULL,
            played_at = NULL,
            player1_rating_before = NULL,
            player1_rating_change = NULL,
            player2_rating_before = NULL,
            player2_rating_change = NULL
        WHERE id = :match_id
    """
    await database.execute(query=query, values={"match_id": match_id})


async def sql_set_rating_audit(
    match_id: MatchId, side: Literal[1, 2], rating_before: int, rating_change: int
) -> None:
    query = f"""
        UPDATE matches
        SET player{side}_rating_before = :rating_before,
            player{side}_rating_change = :rating_change
        WHERE id = :match_id
    """
    await database.execute(
        query=query,
        values={
            "match_id": match_id,
            "rating_before": rating_before,
            "rating_change": rating_change,
        },
    )


async def sql_delete_matches(match_ids: Iterable[MatchId]) -> None:
    ids = sorted(set(match_ids))
    if len(ids) < 1:
        return
    await database.execute(
        "DELETE FROM matches WHERE id = ANY(:match_ids)", values={"match_ids": ids}
    )


async def sql_delete_playoff_matches(league_id: LeagueId, season_id: SeasonId) -> int:
    query = """
        WITH deleted AS (
            DELETE FROM matches
            WHERE league_id = :league_id
            AND season_id = :season_id
            AND match_type = 'PLAYOFF'
            RETURNING id
        )
        SELECT count(*) FROM deleted
    """
    return int(
        await database.fetch_val(
            query=query, values={"league_id": league_id, "season_id": season_id}
        )
    )
