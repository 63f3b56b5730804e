from collections.abc import Iterable, Sequence

from courtside.logic.ranking.points import games_and_sets_for_match, points_for_match
from courtside.models.db.match import Match, MatchStatus, MatchType
from courtside.models.db.player import RegistrationStats, RegistrationWithPlayer
from courtside.models.league import StandingsRow
from courtside.sql.matches import get_completed_regular_matches
from courtside.sql.players import get_registrations_for_league_season
from courtside.utils.errors import InvalidMatchState, MissingRegistration
from courtside.utils.id_types import LeagueId, PlayerId, SeasonId


def stats_for_player(match: Match, player_id: PlayerId) -> RegistrationStats:
    """The contribution of a single completed match to one player's stats."""
    if match.result is None:
        return RegistrationStats()

    points = points_for_match(match)
    games_and_sets = games_and_sets_for_match(match)
    is_player1 = player_id == match.player1_id
    if not is_player1 and player_id != match.player2_id:
        raise ValueError(f"Player {player_id} did not play match {match.id}")

    score = match.result.score
    loser_id = match.get_loser_id()
    return RegistrationStats(
        matches_played=1,
        matches_won=1 if match.result.winner_id == player_id else 0,
        total_points=points.player1_points if is_player1 else points.player2_points,
        sets_won=games_and_sets.p1_sets if is_player1 else games_and_sets.p2_sets,
        sets_lost=games_and_sets.p2_sets if is_player1 else games_and_sets.p1_sets,
        games_won=games_and_sets.p1_games if is_player1 else games_and_sets.p2_games,
        games_lost=games_and_sets.p2_games if is_player1 else games_and_sets.p1_games,
        retirements=1 if score.retired_player_id == player_id else 0,
        walkovers=1 if score.walkover and loser_id == player_id else 0,
    )


def assert_regular_season_matches(matches: Iterable[Match]) -> None:
    for match in matches:
        if match.match_type is not MatchType.REGULAR:
            raise InvalidMatchState(
                f"Match {match.id} is a playoff match and cannot be used for standings"
            )
        if match.status is not MatchStatus.COMPLETED or match.result is None:
            raise InvalidMatchState(
                f"Match {match.id} is not completed and cannot be used for standings"
            )


def standings_sort_key(row: StandingsRow) -> tuple[int, int, int, str, str, int]:
    return (
        -row.stats.total_points,
        -row.stats.set_differential,
        -row.stats.game_differential,
        row.player_name.casefold(),
        row.player_name,
        row.player_id,
    )


def compute_standings(
    matches: Sequence[Match], registrations: Sequence[RegistrationWithPlayer]
) -> list[StandingsRow]:
    """
    Fold completed regular-season matches of one league+season into a ranked table.

    Callers must filter out playoff and unfinished matches beforehand, passing them in is
    rejected. The result only depends on the set of matches, not on their order.
    """
    assert_regular_season_matches(matches)

    rows: dict[PlayerId, StandingsRow] = {
        registration.player_id: StandingsRow(
            position=0,
            player_id=registration.player_id,
            player_name=registration.player_name,
            registration_id=registration.id,
        )
        for registration in registrations
    }

    for match in matches:
        for player_id in (match.player1_id, match.player2_id):
            row = rows.get(player_id)
            if row is None:
                raise MissingRegistration(
                    f"Player {player_id} of match {match.id} is not registered "
                    f"for league {match.league_id} season {match.season_id}"
                )
            row.stats = row.stats.combined_with(stats_for_player(match, player_id))

    ranked = sorted(rows.values(), key=standings_sort_key)
    for position, row in enumerate(ranked, start=1):
        row.position = position
    return ranked


def eligible_rows(rows: Sequence[StandingsRow]) -> list[StandingsRow]:
    return [row for row in rows if row.stats.matches_played >= 1]


async def get_league_standings(league_id: LeagueId, season_id: SeasonId) -> list[StandingsRow]:
    matches = await get_completed_regular_matches(league_id, season_id)
    registrations = await get_registrations_for_league_season(league_id, season_id)
    return compute_standings(matches, registrations)
