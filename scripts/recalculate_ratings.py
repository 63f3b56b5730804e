#!/usr/bin/env python3
import argparse
import asyncio

from courtside.database import database
from courtside.logic.ranking.recalculation import (
    recalculate_league,
    recalculate_player,
    verify_player_stats,
)
from courtside.utils.id_types import LeagueId, PlayerId


async def async_main() -> None:
    parser = argparse.ArgumentParser(
        description=(
            "Rebuild ratings, stats and match history from recorded matches, "
            "or check stored stats against a fresh replay."
        )
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--league-id", type=int, default=None)
    target.add_argument("--player-id", type=int, default=None)
    parser.add_argument(
        "--scope-league-id",
        type=int,
        default=None,
        help="With --player-id, only rewrite the registrations of this league.",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="With --player-id, report discrepancies instead of rewriting anything.",
    )
    args = parser.parse_args()

    await database.connect()
    try:
        if args.league_id is not None:
            report = await recalculate_league(LeagueId(args.league_id))
            print(
                f"Recalculated {len(report.succeeded)} players in {report.duration_ms}ms, "
                f"{len(report.failed)} failed"
            )
            for failure in report.failed:
                print(f"  player={int(failure.player_id)} status={failure.status_code}: {failure.detail}")
            return

        player_id = PlayerId(args.player_id)
        scope = LeagueId(args.scope_league_id) if args.scope_league_id is not None else None
        if args.verify:
            verification = await verify_player_stats(player_id, scope)
            print(
                f"Rating stored={verification.stored_rating} "
                f"calculated={verification.calculated_rating} valid={verification.is_valid}"
            )
            for discrepancy in verification.discrepancies:
                print(
                    f"  registration={int(discrepancy.registration_id)} {discrepancy.stat}: "
                    f"stored={discrepancy.stored} calculated={discrepancy.calculated}"
                )
            return

        replay = await recalculate_player(player_id, scope)
        print(
            f"Player {int(player_id)}: rating={replay.rating} peak={replay.highest_elo} "
            f"low={replay.lowest_elo} matches={len(replay.history)}"
        )
    finally:
        await database.disconnect()


if __name__ == "__main__":
    asyncio.run(async_main())
