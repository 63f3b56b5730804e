from collections.abc import Sequence

from courtside.database import database
from courtside.models.db.player import (
    MatchHistoryEntryInsertable,
    MatchHistoryEntryWithOpponent,
)
from courtside.utils.id_types import MatchId, PlayerId, RegistrationId


async def sql_insert_match_history_entries(entries: Sequence[MatchHistoryEntryInsertable]) -> None:
    if len(entries) < 1:
        return

    query = """
        INSERT INTO match_history (
            registration_id, match_id, opponent_id, result, score,
            rating_before, rating_after, rating_change, played_at, round
        )
        VALUES (
            :registration_id, :match_id, :opponent_id, :result, :score,
            :rating_before, :rating_after, :rating_change, :played_at, :round
        )
        ON CONFLICT (registration_id, match_id) DO UPDATE
        SET opponent_id = EXCLUDED.opponent_id,
            result = EXCLUDED.result,
            score = EXCLUDED.score,
            rating_before = EXCLUDED.rating_before,
            rating_after = EXCLUDED.rating_after,
            rating_change = EXCLUDED.rating_change,
            played_at = EXCLUDED.played_at,
            round = EXCLUDED.round
    """
    await database.execute_many(
        query=query, values=[entry.model_dump(mode="python") for entry in entries]
    )


async def sql_delete_match_history_for_match(match_id: MatchId) -> None:
    await database.execute(
        "DELETE FROM match_history WHERE match_id = :match_id", values={"match_id": match_id}
    )


async def sql_delete_match_history_for_registrations(
    registration_ids: Sequence[RegistrationId],
) -> None:
    if len(registration_ids) < 1:
        return
    await database.execute(
        "DELETE FROM match_history WHERE registration_id = ANY(:registration_ids)",
        values={"registration_ids": list(registration_ids)},
    )


async def get_match_history_for_player(player_id: PlayerId) -> list[MatchHistoryEntryWithOpponent]:
    query = """
        SELECT match_history.*, opponents.name AS opponent_name
        FROM match_history
        JOIN registrations ON registrations.id = match_history.registration_id
        LEFT JOIN players opponents ON opponents.id = match_history.opponent_id
        WHERE registrations.player_id = :player_id
        ORDER BY match_history.played_at ASC, match_history.match_id ASC
    """
    result = await database.fetch_all(query=query, values={"player_id": player_id})
    return [MatchHistoryEntryWithOpponent.model_validate(dict(row._mapping)) for row in result]
