from collections.abc import Sequence

from courtside.logic.ranking.elo import get_starting_rating
from courtside.models.db.match import MatchOutcome
from courtside.models.db.player import MatchHistoryEntryWithOpponent, Player
from courtside.models.league import RatingHistoryPoint, RatingHistorySummary, RatingHistoryView
from courtside.sql.match_history import get_match_history_for_player
from courtside.sql.players import get_player_by_id, get_registrations_for_player
from courtside.utils.errors import NotFound
from courtside.utils.id_types import PlayerId

START_LABEL = "Start"


def build_rating_history(
    player: Player, starting_rating: int, entries: Sequence[MatchHistoryEntryWithOpponent]
) -> RatingHistoryView:
    """
    Chart points of a player's rating, oldest first, opened by a synthetic start point.

    Entries of all registrations are merged into one timeline.
    """
    ordered = sorted(entries, key=lambda entry: (entry.played_at, entry.match_id))
    points = [RatingHistoryPoint(match_number=0, label=START_LABEL, rating_after=starting_rating)]
    points.extend(
        RatingHistoryPoint(
            match_number=index,
            rating_after=entry.rating_after,
            rating_change=entry.rating_change,
            match_id=entry.match_id,
            opponent_id=entry.opponent_id,
            opponent_name=entry.opponent_name,
            result=entry.result,
            score=entry.score,
            played_at=entry.played_at,
            round=entry.round,
        )
        for index, entry in enumerate(ordered, start=1)
    )

    ratings = [point.rating_after for point in points]
    wins = sum(1 for entry in ordered if entry.result is MatchOutcome.WON)
    losses = len(ordered) - wins
    return RatingHistoryView(
        player_id=player.id,
        points=points,
        summary=RatingHistorySummary(
            starting_rating=starting_rating,
            current_rating=player.elo_rating,
            peak_rating=max(ratings),
            lowest_rating=min(ratings),
            total_change=player.elo_rating - starting_rating,
            last_match_change=ordered[-1].rating_change if len(ordered) > 0 else 0,
            total_matches=len(ordered),
            wins=wins,
            losses=losses,
            win_rate=round(wins * 100 / len(ordered)) if len(ordered) > 0 else 0,
        ),
    )


async def get_rating_history(player_id: PlayerId) -> RatingHistoryView:
    player = await get_player_by_id(player_id)
    if player is None:
        raise NotFound(f"Player {player_id} does not exist")

    registrations = await get_registrations_for_player(player_id)
    entries = await get_match_history_for_player(player_id)
    return build_rating_history(player, get_starting_rating(registrations), entries)
