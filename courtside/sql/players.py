from collections.abc import Iterable

from heliclockter import datetime_utc

from courtside.database import database
from courtside.logic.ranking.elo import initial_rating
from courtside.models.db.match import Match
from courtside.models.db.player import (
    STATS_COLUMNS,
    Player,
    PlayerInsertable,
    Registration,
    RegistrationInsertable,
    RegistrationStats,
    RegistrationWithPlayer,
    SkillLevel,
)
from courtside.utils.id_types import LeagueId, PlayerId, RegistrationId, SeasonId
from courtside.utils.types import assert_some


async def get_player_by_id(player_id: PlayerId) -> Player | None:
    query = """
        SELECT *
        FROM players
        WHERE id = :player_id
    """
    result = await database.fetch_one(query=query, values={"player_id": player_id})
    return Player.model_validate(dict(result._mapping)) if result is not None else None


async def get_players_by_ids(player_ids: Iterable[PlayerId]) -> dict[PlayerId, Player]:
    ids = sorted(set(player_ids))
    if len(ids) < 1:
        return {}

    query = """
        SELECT *
        FROM players
        WHERE id = ANY(:player_ids)
    """
    result = await database.fetch_all(query=query, values={"player_ids": ids})
    return {
        player.id: player
        for player in (Player.model_validate(dict(row._mapping)) for row in result)
    }


async def get_players_for_update(player_ids: Iterable[PlayerId]) -> dict[PlayerId, Player]:
    """
    Lock player rows in ascending id order.

    Two results touching the same pair of players always lock in the same order, so they
    serialize instead of deadlocking.
    """
    ids = sorted(set(player_ids))
    if len(ids) < 1:
        return {}

    query = """
        SELECT *
        FROM players
        WHERE id = ANY(:player_ids)
        ORDER BY id ASC
        FOR UPDATE
    """
    result = await database.fetch_all(query=query, values={"player_ids": ids})
    return {
        player.id: player
        for player in (Player.model_validate(dict(row._mapping)) for row in result)
    }


async def sql_update_player_rating(
    player_id: PlayerId, elo_rating: int, highest_elo: int, lowest_elo: int
) -> None:
    query = """
        UPDATE players
        SET elo_rating = :elo_rating,
            highest_elo = :highest_elo,
            lowest_elo = :lowest_elo
        WHERE id = :player_id
    """
    await database.execute(
        query=query,
        values={
            "player_id": player_id,
            "elo_rating": elo_rating,
            "highest_elo": highest_elo,
            "lowest_elo": lowest_elo,
        },
    )


async def insert_player(name: str, level: SkillLevel = SkillLevel.INTERMEDIATE) -> Player:
    rating = initial_rating(level)
    player = PlayerInsertable(
        name=name,
        created=datetime_utc.now(),
        elo_rating=rating,
        highest_elo=rating,
        lowest_elo=rating,
    )
    query = """
        INSERT INTO players (name, created, elo_rating, highest_elo, lowest_elo)
        VALUES (:name, :created, :elo_rating, :highest_elo, :lowest_elo)
        RETURNING *
    """
    result = await database.fetch_one(query=query, values=player.model_dump())
    return Player.model_validate(dict(assert_some(result)._mapping))


async def insert_registration(
    player_id: PlayerId,
    league_id: LeagueId,
    season_id: SeasonId,
    level: SkillLevel = SkillLevel.INTERMEDIATE,
) -> Registration:
    registration = RegistrationInsertable(
        player_id=player_id,
        league_id=league_id,
        season_id=season_id,
        level=level,
        created=datetime_utc.now(),
    )
    query = """
        INSERT INTO registrations (player_id, league_id, season_id, level, status, created)
        VALUES (:player_id, :league_id, :season_id, :level, :status, :created)
        RETURNING *
    """
    result = await database.fetch_one(query=query, values=registration.model_dump())
    return Registration.model_validate(dict(assert_some(result)._mapping))


async def get_registrations_for_player(player_id: PlayerId) -> list[Registration]:
    query = """
        SELECT *
        FROM registrations
        WHERE player_id = :player_id
        ORDER BY created ASC, id ASC
    """
    result = await database.fetch_all(query=query, values={"player_id": player_id})
    return [Registration.model_validate(dict(row._mapping)) for row in result]


async def get_registrations_for_league_season(
    league_id: LeagueId, season_id: SeasonId
) -> list[RegistrationWithPlayer]:
    query = """
        SELECT registrations.*, players.name AS player_name
        FROM registrations
        JOIN players ON players.id = registrations.player_id
        WHERE registrations.league_id = :league_id
        AND registrations.season_id = :season_id
        ORDER BY registrations.id ASC
    """
    result = await database.fetch_all(
        query=query, values={"league_id": league_id, "season_id": season_id}
    )
    return [RegistrationWithPlayer.model_validate(dict(row._mapping)) for row in result]


async def get_registrations_for_match(match: Match) -> dict[PlayerId, Registration]:
    query = """
        SELECT *
        FROM registrations
        WHERE league_id = :league_id
        AND season_id = :season_id
        AND player_id = ANY(:player_ids)
    """
    result = await database.fetch_all(
        query=query,
        values={
            "league_id": match.league_id,
            "season_id": match.season_id,
            "player_ids": [match.player1_id, match.player2_id],
        },
    )
    return {
        registration.player_id: registration
        for registration in (Registration.model_validate(dict(row._mapping)) for row in result)
    }


async def get_player_ids_in_league(league_id: LeagueId) -> list[PlayerId]:
    query = """
        SELECT DISTINCT player_id
        FROM registrations
        WHERE league_id = :league_id
        ORDER BY player_id ASC
    """
    result = await database.fetch_all(query=query, values={"league_id": league_id})
    return [PlayerId(int(row._mapping["player_id"])) for row in result]


async def sql_apply_stats_delta(
    registration_id: RegistrationId, delta: RegistrationStats, *, sign: int = 1
) -> None:
    """Increment (or with sign=-1, decrement) the stats snapshot of a registration in place."""
    assignments = ",\n            ".join(
        f"{column} = {column} + :{column}" for column in STATS_COLUMNS
    )
    query = f"""
        UPDATE registrations
        SET {assignments}
        WHERE id = :registration_id
    """
    values = {column: sign * getattr(delta, column) for column in STATS_COLUMNS}
    await database.execute(query=query, values={"registration_id": registration_id, **values})


async def sql_overwrite_registration_stats(
    registration_id: RegistrationId, stats: RegistrationStats
) -> None:
    assignments = ",\n            ".join(f"{column} = :{column}" for column in STATS_COLUMNS)
    query = f"""
        UPDATE registrations
        SET {assignments}
        WHERE id = :registration_id
    """
    await database.execute(
        query=query, values={"registration_id": registration_id, **stats.model_dump()}
    )
