import math
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from courtside.models.db.match import Match
from courtside.models.db.player import Registration, SkillLevel

DEFAULT_K_FACTOR = 32
DEFAULT_INITIAL_RATING = 1200

INITIAL_RATINGS: dict[SkillLevel, int] = {
    SkillLevel.BEGINNER: 1100,
    SkillLevel.INTERMEDIATE: 1200,
    SkillLevel.ADVANCED: 1300,
}


class RatingChange(NamedTuple):
    new_rating_a: int
    new_rating_b: int
    delta: int

    @property
    def delta_a(self) -> int:
        return self.delta

    @property
    def delta_b(self) -> int:
        return -self.delta


def initial_rating(level: SkillLevel | str | None) -> int:
    try:
        return INITIAL_RATINGS[SkillLevel(str(level).upper())]
    except ValueError:
        return DEFAULT_INITIAL_RATING


def expected_score(rating_a: int, rating_b: int) -> float:
    return 1 / (1 + math.pow(10, (rating_b - rating_a) / 400))


def _round_half_away_from_zero(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def apply_rating_change(
    rating_a: int, rating_b: int, a_won: bool, k_factor: int = DEFAULT_K_FACTOR
) -> RatingChange:
    """
    Standard ELO update for a single match between A and B.

    The delta is rounded once and applied with opposite signs, so the exchange is zero-sum
    and mirrored calls (swapping A and B and the outcome) produce exactly opposite deltas.
    """
    actual = 1.0 if a_won else 0.0
    delta = _round_half_away_from_zero(k_factor * (actual - expected_score(rating_a, rating_b)))
    return RatingChange(new_rating_a=rating_a + delta, new_rating_b=rating_b - delta, delta=delta)


def rating_change_for_match(
    match: Match, player1_rating: int, player2_rating: int, k_factor: int = DEFAULT_K_FACTOR
) -> RatingChange:
    """Playoff matches and walkovers never move ratings."""
    if match.result is None or match.is_playoff or match.result.score.walkover:
        return RatingChange(new_rating_a=player1_rating, new_rating_b=player2_rating, delta=0)

    return apply_rating_change(
        player1_rating,
        player2_rating,
        match.result.winner_id == match.player1_id,
        k_factor,
    )


def updated_extremes(highest: int, lowest: int, rating: int) -> tuple[int, int]:
    return max(highest, rating), min(lowest, rating)


def determine_rating_extremes(starting_rating: int, ratings: Iterable[int]) -> tuple[int, int]:
    highest = lowest = starting_rating
    for rating in ratings:
        highest, lowest = updated_extremes(highest, lowest, rating)
    return highest, lowest


def get_starting_rating(registrations: Sequence[Registration]) -> int:
    """A player's rating chain starts from the level of their earliest registration."""
    if len(registrations) < 1:
        return DEFAULT_INITIAL_RATING
    earliest = min(registrations, key=lambda registration: (registration.created, registration.id))
    return initial_rating(earliest.level)
