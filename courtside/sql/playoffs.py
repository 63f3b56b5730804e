from collections.abc import Sequence

from courtside.database import database
from courtside.models.db.playoff import (
    PlayoffConfig,
    PlayoffConfigInsertable,
    PlayoffPhase,
    QualifiedPlayer,
)
from courtside.utils.errors import LockedSnapshotViolation
from courtside.utils.id_types import LeagueId, SeasonId

_PLAYOFF_LOCK_SCOPE = 72002


async def sql_acquire_playoff_lock(league_id: LeagueId, season_id: SeasonId) -> None:
    # Two-int advisory keys only carry one id each, fold league and season into the key.
    await database.execute(
        "SELECT pg_advisory_xact_lock(:lock_scope, hashtext(:lock_key))",
        values={"lock_scope": _PLAYOFF_LOCK_SCOPE, "lock_key": f"{league_id}:{season_id}"},
    )


async def get_qualified_players(
    league_id: LeagueId, season_id: SeasonId
) -> list[QualifiedPlayer]:
    query = """
        SELECT pqp.*, players.name AS player_name
        FROM playoff_qualified_players pqp
        LEFT JOIN players ON players.id = pqp.player_id
        WHERE pqp.league_id = :league_id
        AND pqp.season_id = :season_id
        ORDER BY pqp."group" ASC, pqp.seed ASC
    """
    result = await database.fetch_all(
        query=query, values={"league_id": league_id, "season_id": season_id}
    )
    return [QualifiedPlayer.model_validate(dict(row._mapping)) for row in result]


async def get_playoff_config(league_id: LeagueId, season_id: SeasonId) -> PlayoffConfig:
    """A league+season without a stored config is still in its regular season."""
    result = await database.fetch_one(
        """
        SELECT *
        FROM playoff_configs
        WHERE league_id = :league_id
        AND season_id = :season_id
        """,
        values={"league_id": league_id, "season_id": season_id},
    )
    qualified_players = await get_qualified_players(league_id, season_id)
    if result is None:
        return PlayoffConfig(
            league_id=league_id, season_id=season_id, qualified_players=qualified_players
        )
    return PlayoffConfig.model_validate(
        {**dict(result._mapping), "qualified_players": qualified_players}
    )


async def sql_upsert_playoff_config(config: PlayoffConfigInsertable) -> None:
    query = """
        INSERT INTO playoff_configs (
            league_id, season_id, enabled, number_of_groups, current_phase, playoff_start_date
        )
        VALUES (
            :league_id, :season_id, :enabled, :number_of_groups, :current_phase,
            :playoff_start_date
        )
        ON CONFLICT (league_id, season_id) DO UPDATE
        SET enabled = EXCLUDED.enabled,
            number_of_groups = EXCLUDED.number_of_groups,
            current_phase = EXCLUDED.current_phase,
            playoff_start_date = EXCLUDED.playoff_start_date
    """
    await database.execute(
        query=query,
        values=config.model_dump(include=set(PlayoffConfigInsertable.model_fields)),
    )


async def sql_set_playoff_phase(
    league_id: LeagueId, season_id: SeasonId, phase: PlayoffPhase
) -> None:
    await database.execute(
        """
        UPDATE playoff_configs
        SET current_phase = :current_phase
        WHERE league_id = :league_id
        AND season_id = :season_id
        """,
        values={"league_id": league_id, "season_id": season_id, "current_phase": phase.value},
    )


async def sql_store_qualified_players(
    league_id: LeagueId, season_id: SeasonId, qualified_players: Sequence[QualifiedPlayer]
) -> None:
    """
    Write the seeding snapshot of a league+season.

    Refused once the playoffs started, the snapshot can only be replaced after a playoff reset.
    """
    config = await get_playoff_config(league_id, season_id)
    if config.is_locked:
        raise LockedSnapshotViolation(
            f"Playoffs of league {league_id} season {season_id} are {config.current_phase}, "
            "the qualified players can no longer change"
        )

    await sql_delete_qualified_players(league_id, season_id)
    if len(qualified_players) < 1:
        return

    await database.execute_many(
        query="""
            INSERT INTO playoff_qualified_players (
                league_id, season_id, "group", seed, player_id, regular_season_position
            )
            VALUES (
                :league_id, :season_id, :group, :seed, :player_id, :regular_season_position
            )
        """,
        values=[
            {
                "league_id": league_id,
                "season_id": season_id,
                "group": player.group.value,
                "seed": player.seed,
                "player_id": player.player_id,
                "regular_season_position": player.regular_season_position,
            }
            for player in qualified_players
        ],
    )


async def sql_delete_qualified_players(league_id: LeagueId, season_id: SeasonId) -> None:
    await database.execute(
        """
        DELETE FROM playoff_qualified_players
        WHERE league_id = :league_id
        AND season_id = :season_id
        """,
        values={"league_id": league_id, "season_id": season_id},
    )
