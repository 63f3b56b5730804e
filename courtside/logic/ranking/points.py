from typing import NamedTuple

from courtside.models.db.match import Match, MatchScore, MatchStatus
from courtside.utils.errors import InconsistentScore
from courtside.utils.id_types import PlayerId

WALKOVER_WINNER_POINTS = 2
WALKOVER_GAMES = 12
WALKOVER_SETS = 2

# (sets won, sets lost) -> points awarded
SET_RESULT_POINTS: dict[tuple[int, int], int] = {
    (2, 0): 3,
    (2, 1): 2,
    (1, 2): 1,
    (0, 2): 0,
}


class MatchPoints(NamedTuple):
    player1_points: int
    player2_points: int


class GamesAndSets(NamedTuple):
    p1_sets: int
    p2_sets: int
    p1_games: int
    p2_games: int


def get_points_for_sets(sets_won: int, sets_lost: int) -> int:
    return SET_RESULT_POINTS.get((sets_won, sets_lost), 0)


def count_sets(score: MatchScore) -> tuple[int, int]:
    p1_sets = sum(1 for set_ in score.sets if set_.winning_side() == 1)
    p2_sets = sum(1 for set_ in score.sets if set_.winning_side() == 2)
    return p1_sets, p2_sets


def points_for_match(match: Match) -> MatchPoints:
    """
    Regular-season points awarded to both players of a match.

    Playoff matches, unfinished matches and matches without a winner never award points.
    A walkover is worth a flat 2 points to the winner regardless of sets.
    """
    if match.status is not MatchStatus.COMPLETED or match.result is None:
        return MatchPoints(0, 0)

    if match.is_playoff:
        return MatchPoints(0, 0)

    player1_won = match.result.winner_id == match.player1_id
    if match.result.score.walkover:
        return (
            MatchPoints(WALKOVER_WINNER_POINTS, 0)
            if player1_won
            else MatchPoints(0, WALKOVER_WINNER_POINTS)
        )

    p1_sets, p2_sets = count_sets(match.result.score)
    return MatchPoints(get_points_for_sets(p1_sets, p2_sets), get_points_for_sets(p2_sets, p1_sets))


def games_and_sets_for_match(match: Match) -> GamesAndSets:
    if match.result is None:
        return GamesAndSets(0, 0, 0, 0)

    if match.result.score.walkover:
        # No sets were played, the winner is credited a canonical 6-0 6-0.
        if match.result.winner_id == match.player1_id:
            return GamesAndSets(WALKOVER_SETS, 0, WALKOVER_GAMES, 0)
        return GamesAndSets(0, WALKOVER_SETS, 0, WALKOVER_GAMES)

    p1_sets, p2_sets = count_sets(match.result.score)
    return GamesAndSets(
        p1_sets=p1_sets,
        p2_sets=p2_sets,
        p1_games=sum(set_.player1_games for set_ in match.result.score.sets),
        p2_games=sum(set_.player2_games for set_ in match.result.score.sets),
    )


def validate_match_score(
    player1_id: PlayerId,
    player2_id: PlayerId,
    winner_id: PlayerId,
    score: MatchScore,
) -> None:
    players = (player1_id, player2_id)
    if winner_id not in players:
        raise InconsistentScore(f"Winner {winner_id} did not play this match")

    if score.walkover:
        if len(score.sets) > 0:
            raise InconsistentScore("A walkover cannot have sets")
        if score.retired_player_id is not None:
            raise InconsistentScore("A match cannot be both a walkover and a retirement")
        return

    if len(score.sets) < 1:
        raise InconsistentScore("A match that is not a walkover needs at least one set")

    for index, set_ in enumerate(score.sets, start=1):
        if set_.player1_games < 0 or set_.player2_games < 0:
            raise InconsistentScore(f"Set {index} has a negative game count")
        if set_.winning_side() is None:
            raise InconsistentScore(
                f"Set {index} is tied at {set_.player1_games}-{set_.player2_games}"
            )

    if score.retired_player_id is not None:
        if score.retired_player_id not in players:
            raise InconsistentScore(f"Retired player {score.retired_player_id} did not play")
        if score.retired_player_id == winner_id:
            raise InconsistentScore("The retired player cannot be the winner")
        return

    p1_sets, p2_sets = count_sets(score)
    winner_sets, loser_sets = (p1_sets, p2_sets) if winner_id == player1_id else (p2_sets, p1_sets)
    if winner_sets <= loser_sets:
        raise InconsistentScore(
            f"Winner {winner_id} won {winner_sets} sets against {loser_sets}"
        )


def score_display(score: MatchScore) -> str:
    if score.walkover:
        return "Walkover"

    display = ", ".join(f"{set_.player1_games}-{set_.player2_games}" for set_ in score.sets)
    if score.retired_player_id is not None:
        display += " ret."
    return display
