from collections.abc import Sequence
from zoneinfo import ZoneInfo

from heliclockter import datetime_utc, timedelta

from courtside.logic.ranking.elo import initial_rating
from courtside.models.db.match import (
    Match,
    MatchResult,
    MatchScore,
    MatchStatus,
    MatchType,
    PlayoffGroup,
    PlayoffInfo,
    PlayoffStage,
    SetScore,
)
from courtside.models.db.player import (
    Player,
    Registration,
    RegistrationStats,
    RegistrationWithPlayer,
    SkillLevel,
)
from courtside.utils.id_types import LeagueId, MatchId, PlayerId, RegistrationId, SeasonId

DUMMY_MOCK_TIME = datetime_utc(2026, 3, 2, 18, 0, 0, tzinfo=ZoneInfo("UTC"))
DUMMY_LEAGUE_ID = LeagueId(1)
DUMMY_SEASON_ID = SeasonId(1)


def dummy_sets(*games: tuple[int, int]) -> list[SetScore]:
    return [SetScore(player1_games=player1, player2_games=player2) for player1, player2 in games]


def dummy_match(
    match_id: int,
    player1_id: int,
    player2_id: int,
    *,
    winner_id: int | None = None,
    sets: Sequence[tuple[int, int]] = (),
    walkover: bool = False,
    retired_player_id: int | None = None,
    played_at: datetime_utc | None = None,
    round_: int = 1,
    league_id: LeagueId = DUMMY_LEAGUE_ID,
    season_id: SeasonId = DUMMY_SEASON_ID,
    playoff_info: PlayoffInfo | None = None,
    rating_audit: tuple[int, int, int, int] | None = None,
) -> Match:
    """A match, completed when a winner is given."""
    result = (
        None
        if winner_id is None
        else MatchResult(
            winner_id=PlayerId(winner_id),
            score=MatchScore(
                sets=dummy_sets(*sets),
                walkover=walkover,
                retired_player_id=(
                    PlayerId(retired_player_id) if retired_player_id is not None else None
                ),
            ),
            played_at=(
                played_at
                if played_at is not None
                else DUMMY_MOCK_TIME + timedelta(days=match_id)
            ),
        )
    )
    player1_before, player1_change, player2_before, player2_change = (
        rating_audit if rating_audit is not None else (None, None, None, None)
    )
    return Match(
        id=MatchId(match_id),
        created=DUMMY_MOCK_TIME,
        league_id=league_id,
        season_id=season_id,
        round=round_,
        match_type=MatchType.PLAYOFF if playoff_info is not None else MatchType.REGULAR,
        player1_id=PlayerId(player1_id),
        player2_id=PlayerId(player2_id),
        status=MatchStatus.COMPLETED if result is not None else MatchStatus.SCHEDULED,
        result=result,
        playoff_info=playoff_info,
        player1_rating_before=player1_before,
        player1_rating_change=player1_change,
        player2_rating_before=player2_before,
        player2_rating_change=player2_change,
    )


def dummy_playoff_match(
    match_id: int,
    player1_id: int,
    player2_id: int,
    *,
    stage: PlayoffStage,
    match_number: int,
    group: PlayoffGroup = PlayoffGroup.A,
    seeds: tuple[int | None, int | None] = (None, None),
    winner_id: int | None = None,
    round_: int = 10,
) -> Match:
    return dummy_match(
        match_id,
        player1_id,
        player2_id,
        winner_id=winner_id,
        sets=((6, 3), (6, 4)) if winner_id == player1_id else ((3, 6), (4, 6)),
        round_=round_,
        playoff_info=PlayoffInfo(
            group=group,
            stage=stage,
            match_number=match_number,
            seed1=seeds[0],
            seed2=seeds[1],
        ),
    )


def dummy_player(
    player_id: int,
    *,
    name: str | None = None,
    elo_rating: int | None = None,
    highest_elo: int | None = None,
    lowest_elo: int | None = None,
    level: SkillLevel = SkillLevel.INTERMEDIATE,
) -> Player:
    rating = elo_rating if elo_rating is not None else initial_rating(level)
    return Player(
        id=PlayerId(player_id),
        name=name if name is not None else f"Player {player_id}",
        created=DUMMY_MOCK_TIME,
        elo_rating=rating,
        highest_elo=highest_elo if highest_elo is not None else rating,
        lowest_elo=lowest_elo if lowest_elo is not None else rating,
    )


def dummy_registration(
    registration_id: int,
    player_id: int,
    *,
    name: str | None = None,
    level: SkillLevel = SkillLevel.INTERMEDIATE,
    league_id: LeagueId = DUMMY_LEAGUE_ID,
    season_id: SeasonId = DUMMY_SEASON_ID,
    stats: RegistrationStats | None = None,
    created: datetime_utc = DUMMY_MOCK_TIME,
) -> RegistrationWithPlayer:
    return RegistrationWithPlayer(
        id=RegistrationId(registration_id),
        player_id=PlayerId(player_id),
        league_id=league_id,
        season_id=season_id,
        level=level,
        created=created,
        stats=stats if stats is not None else RegistrationStats(),
        player_name=name if name is not None else f"Player {player_id}",
    )


def dummy_registrations(player_ids: Sequence[int]) -> list[RegistrationWithPlayer]:
    """One registration per player, registration id equal to player id."""
    return [dummy_registration(player_id, player_id) for player_id in player_ids]


def as_registration_map(
    registrations: Sequence[Registration],
) -> dict[PlayerId, Registration]:
    return {registration.player_id: registration for registration in registrations}
