#!/usr/bin/env python3
import argparse
import asyncio
import random

from heliclockter import datetime_utc, timedelta

from courtside.database import database
from courtside.logic.ranking.match_results import record_match_result
from courtside.logic.ranking.standings import get_league_standings
from courtside.models.db.match import MatchCreateBody, SetScore
from courtside.models.db.player import Player, SkillLevel
from courtside.models.league import RecordMatchResultBody
from courtside.sql.league import insert_league, insert_season
from courtside.sql.matches import sql_create_match
from courtside.sql.players import insert_player, insert_registration
from courtside.utils.id_types import LeagueId, SeasonId

SAMPLE_NAMES = [
    "Ana Ruiz",
    "Ben Okafor",
    "Chloe Martin",
    "Dario Costa",
    "Elif Yilmaz",
    "Femi Adeyemi",
    "Greta Lind",
    "Hugo Petit",
    "Ines Duarte",
    "Jonas Berg",
    "Kaito Mori",
    "Lena Vogel",
    "Marco Bianchi",
    "Nora Haddad",
    "Oscar Navarro",
    "Pia Hansen",
    "Quinn Walsh",
    "Rosa Ortega",
]


def round_robin_pairings(players: list[Player]) -> list[list[tuple[Player, Player]]]:
    """Circle method, one list of pairings per round; odd player counts get a bye."""
    slots: list[Player | None] = [*players]
    if len(slots) % 2 == 1:
        slots.append(None)

    rounds: list[list[tuple[Player, Player]]] = []
    for _ in range(len(slots) - 1):
        half = len(slots) // 2
        rounds.append(
            [
                (home, away)
                for home, away in zip(slots[:half], reversed(slots[half:]))
                if home is not None and away is not None
            ]
        )
        slots = [slots[0], slots[-1], *slots[1:-1]]
    return rounds


def random_sets(rng: random.Random) -> tuple[int, list[SetScore]]:
    """A plausible best-of-three score, returns the winning side and the sets."""
    winner_side = rng.choice((1, 2))
    loser_sets = rng.choice((0, 1))
    sets: list[SetScore] = []
    outcomes = [winner_side] * 2 + [3 - winner_side] * loser_sets
    rng.shuffle(outcomes)
    # The deciding set must go to the winner.
    if outcomes[-1] != winner_side:
        outcomes.reverse()
    for side in outcomes:
        winner_games = rng.choice((6, 6, 6, 7))
        loser_games = 5 if winner_games == 7 and rng.random() < 0.5 else rng.randint(0, 4)
        if winner_games == 7 and loser_games != 5:
            loser_games = 6
        sets.append(
            SetScore(player1_games=winner_games, player2_games=loser_games)
            if side == 1
            else SetScore(player1_games=loser_games, player2_games=winner_games)
        )
    return winner_side, sets


async def seed_league(
    league_name: str, season_name: str, player_count: int, played_rounds: int, seed: int
) -> tuple[LeagueId, SeasonId]:
    rng = random.Random(seed)
    league = await insert_league(league_name)
    season = await insert_season(league.id, season_name)

    players: list[Player] = []
    for index in range(player_count):
        name = SAMPLE_NAMES[index] if index < len(SAMPLE_NAMES) else f"Player {index + 1}"
        level = rng.choice(list(SkillLevel))
        player = await insert_player(name, level)
        await insert_registration(player.id, league.id, season.id, level)
        players.append(player)

    played_at = datetime_utc.now() - timedelta(weeks=played_rounds)
    for round_number, pairings in enumerate(round_robin_pairings(players), start=1):
        for player1, player2 in pairings:
            match = await sql_create_match(
                MatchCreateBody(
                    league_id=league.id,
                    season_id=season.id,
                    round=round_number,
                    player1_id=player1.id,
                    player2_id=player2.id,
                )
            )
            if round_number > played_rounds:
                continue

            if rng.random() < 0.05:
                await record_match_result(
                    match.id,
                    RecordMatchResultBody(
                        winner_id=rng.choice((player1.id, player2.id)),
                        walkover=True,
                        played_at=played_at,
                    ),
                )
                continue

            winner_side, sets = random_sets(rng)
            await record_match_result(
                match.id,
                RecordMatchResultBody(
                    winner_id=player1.id if winner_side == 1 else player2.id,
                    sets=sets,
                    played_at=played_at,
                ),
            )
        played_at = played_at + timedelta(weeks=1)

    return league.id, season.id


async def async_main() -> None:
    parser = argparse.ArgumentParser(
        description="Seed a sample league: players, registrations and round robin results."
    )
    parser.add_argument("--league-name", type=str, default="Sample Tennis League")
    parser.add_argument("--season-name", type=str, default="Season 1")
    parser.add_argument("--players", type=int, default=16)
    parser.add_argument(
        "--played-rounds",
        type=int,
        default=None,
        help="Number of rounds that get a result. If omitted, every round is played.",
    )
    parser.add_argument("--seed", type=int, default=1)
    args = parser.parse_args()

    if args.players < 2:
        raise ValueError("--players must be at least 2")

    played_rounds = (
        args.played_rounds
        if args.played_rounds is not None
        else args.players - 1 + args.players % 2
    )

    await database.connect()
    try:
        league_id, season_id = await seed_league(
            league_name=str(args.league_name),
            season_name=str(args.season_name),
            player_count=int(args.players),
            played_rounds=int(played_rounds),
            seed=int(args.seed),
        )
        standings = await get_league_standings(league_id, season_id)
        print(f"Seeded league={int(league_id)} season={int(season_id)}")
        for row in standings:
            print(
                f"{row.position:>3}. {row.player_name:<20} pts={row.stats.total_points:<3} "
                f"sets={row.stats.set_differential:+} games={row.stats.game_differential:+}"
            )
    finally:
        await database.disconnect()


if __name__ == "__main__":
    asyncio.run(async_main())
