from collections.abc import Iterable, Sequence
from typing import NamedTuple

from heliclockter import datetime_utc

from courtside.database import database
from courtside.logic.ranking.standings import eligible_rows, get_league_standings
from courtside.models.db.match import (
    Match,
    MatchCreateBody,
    MatchStatus,
    MatchType,
    PlayoffGroup,
    PlayoffInfo,
    PlayoffStage,
)
from courtside.models.db.playoff import (
    PHASE_ORDER,
    PlayoffConfig,
    PlayoffPhase,
    QualifiedPlayer,
)
from courtside.models.league import PlayoffBracketView, StandingsRow
from courtside.sql.matches import (
    get_last_regular_round,
    get_playoff_matches,
    sql_create_match,
    sql_create_playoff_match_if_absent,
    sql_delete_matches,
    sql_delete_playoff_matches,
)
from courtside.sql.playoffs import (
    get_playoff_config,
    sql_acquire_playoff_lock,
    sql_delete_qualified_players,
    sql_set_playoff_phase,
    sql_store_qualified_players,
    sql_upsert_playoff_config,
)
from courtside.utils.errors import (
    FeederNotReady,
    InsufficientPlayers,
    InvalidMatchState,
    LockedSnapshotViolation,
)
from courtside.utils.id_types import LeagueId, PlayerId, SeasonId
from courtside.utils.logging import logger
from courtside.utils.types import assert_some

PLAYOFF_GROUP_SIZE = 8
STANDINGS_PREVIEW_SIZE = 16
QUARTERFINAL_SEED_PAIRS = ((1, 8), (2, 7), (3, 6), (4, 5))


class BracketSlot(NamedTuple):
    group: PlayoffGroup
    stage: PlayoffStage
    match_number: int


def get_slot(match: Match) -> BracketSlot:
    playoff_info = match.playoff_info
    if not match.is_playoff or playoff_info is None:
        raise InvalidMatchState(f"Match {match.id} is not part of a playoff bracket")
    return BracketSlot(playoff_info.group, playoff_info.stage, playoff_info.match_number)


def get_feeding_slots(slot: BracketSlot) -> tuple[BracketSlot, BracketSlot] | None:
    """The two matches whose outcome decides who plays in `slot`, lower match number first."""
    match slot.stage:
        case PlayoffStage.QUARTERFINAL:
            return None
        case PlayoffStage.SEMIFINAL:
            return (
                BracketSlot(slot.group, PlayoffStage.QUARTERFINAL, 2 * slot.match_number - 1),
                BracketSlot(slot.group, PlayoffStage.QUARTERFINAL, 2 * slot.match_number),
            )
        case PlayoffStage.FINAL | PlayoffStage.THIRD_PLACE:
            return (
                BracketSlot(slot.group, PlayoffStage.SEMIFINAL, 1),
                BracketSlot(slot.group, PlayoffStage.SEMIFINAL, 2),
            )


def get_next_slots(slot: BracketSlot) -> list[BracketSlot]:
    match slot.stage:
        case PlayoffStage.QUARTERFINAL:
            return [
                BracketSlot(slot.group, PlayoffStage.SEMIFINAL, (slot.match_number + 1) // 2)
            ]
        case PlayoffStage.SEMIFINAL:
            return [
                BracketSlot(slot.group, PlayoffStage.FINAL, 1),
                BracketSlot(slot.group, PlayoffStage.THIRD_PLACE, 1),
            ]
        case _:
            return []


def is_valid_slot(slot: BracketSlot) -> bool:
    match slot.stage:
        case PlayoffStage.QUARTERFINAL:
            return 1 <= slot.match_number <= len(QUARTERFINAL_SEED_PAIRS)
        case PlayoffStage.SEMIFINAL:
            return slot.match_number in (1, 2)
        case _:
            return slot.match_number == 1


def matches_by_slot(matches: Iterable[Match]) -> dict[BracketSlot, Match]:
    return {get_slot(match): match for match in matches if match.is_playoff}


def determine_qualified_players(
    rows: Sequence[StandingsRow], number_of_groups: int
) -> list[QualifiedPlayer]:
    """
    Split the top of the eligible standings positionally into playoff groups.

    Group A gets positions 1-8, group B positions 9-16. Asking for two groups with fewer than
    16 eligible players is rejected rather than degraded to a single group.
    """
    needed = PLAYOFF_GROUP_SIZE * number_of_groups
    if len(rows) < needed:
        raise InsufficientPlayers(
            f"{needed} eligible players are needed for {number_of_groups} playoff group(s), "
            f"only {len(rows)} played a regular season match"
        )

    groups = [PlayoffGroup.A, PlayoffGroup.B][:number_of_groups]
    return [
        QualifiedPlayer(
            group=groups[index // PLAYOFF_GROUP_SIZE],
            seed=index % PLAYOFF_GROUP_SIZE + 1,
            player_id=row.player_id,
            regular_season_position=index + 1,
            player_name=row.player_name,
        )
        for index, row in enumerate(rows[:needed])
    ]


def determine_quarterfinal_matches(
    league_id: LeagueId,
    season_id: SeasonId,
    group: PlayoffGroup,
    qualified_players: Sequence[QualifiedPlayer],
    round_: int,
) -> list[MatchCreateBody]:
    players_by_seed = {player.seed: player for player in qualified_players if player.group is group}
    if sorted(players_by_seed) != list(range(1, PLAYOFF_GROUP_SIZE + 1)):
        raise InsufficientPlayers(
            f"Group {group} needs seeds 1 to {PLAYOFF_GROUP_SIZE}, got {sorted(players_by_seed)}"
        )

    return [
        MatchCreateBody(
            league_id=league_id,
            season_id=season_id,
            round=round_,
            match_type=MatchType.PLAYOFF,
            player1_id=players_by_seed[seed1].player_id,
            player2_id=players_by_seed[seed2].player_id,
            playoff_info=PlayoffInfo(
                group=group,
                stage=PlayoffStage.QUARTERFINAL,
                match_number=match_number,
                seed1=seed1,
                seed2=seed2,
            ),
        )
        for match_number, (seed1, seed2) in enumerate(QUARTERFINAL_SEED_PAIRS, start=1)
    ]


def _seed_of(match: Match, player_id: PlayerId) -> int | None:
    if match.playoff_info is None:
        return None
    return match.playoff_info.seed1 if player_id == match.player1_id else match.playoff_info.seed2


def _advancing_player(feeder: Match, stage: PlayoffStage) -> PlayerId:
    player_id = feeder.get_loser_id() if stage is PlayoffStage.THIRD_PLACE else feeder.get_winner_id()
    return assert_some(player_id)


def determine_match_for_slot(
    slot: BracketSlot, bracket: dict[BracketSlot, Match]
) -> MatchCreateBody | None:
    """
    Build the match for a semifinal, final or third-place slot.

    Returns None while either feeder is missing or unfinished. A walkover in a feeder needs no
    special casing, its recorded winner simply advances.
    """
    feeding_slots = get_feeding_slots(slot)
    if feeding_slots is None:
        return None

    feeders = [bracket.get(feeding_slot) for feeding_slot in feeding_slots]
    if any(feeder is None or feeder.status is not MatchStatus.COMPLETED for feeder in feeders):
        return None

    feeder1, feeder2 = assert_some(feeders[0]), assert_some(feeders[1])
    player1_id = _advancing_player(feeder1, slot.stage)
    player2_id = _advancing_player(feeder2, slot.stage)
    return MatchCreateBody(
        league_id=feeder1.league_id,
        season_id=feeder1.season_id,
        round=max(feeder1.round, feeder2.round) + 1,
        match_type=MatchType.PLAYOFF,
        player1_id=player1_id,
        player2_id=player2_id,
        playoff_info=PlayoffInfo(
            group=slot.group,
            stage=slot.stage,
            match_number=slot.match_number,
            seed1=_seed_of(feeder1, player1_id),
            seed2=_seed_of(feeder2, player2_id),
        ),
    )


def determine_next_round_matches(
    completed_match: Match, group_matches: Iterable[Match]
) -> list[MatchCreateBody]:
    """Matches unlocked by `completed_match`, skipping slots that already exist."""
    bracket = matches_by_slot(group_matches)
    slot = get_slot(completed_match)
    bracket[slot] = completed_match

    suggestions: list[MatchCreateBody] = []
    for next_slot in get_next_slots(slot):
        if next_slot in bracket:
            continue
        suggestion = determine_match_for_slot(next_slot, bracket)
        if suggestion is not None:
            suggestions.append(suggestion)
    return suggestions


def determine_phase(config: PlayoffConfig, playoff_matches: Iterable[Match]) -> PlayoffPhase:
    if config.current_phase is PlayoffPhase.REGULAR_SEASON:
        return PlayoffPhase.REGULAR_SEASON

    decided_groups = {
        slot.group
        for slot, match in matches_by_slot(playoff_matches).items()
        if slot.stage is PlayoffStage.FINAL and match.status is MatchStatus.COMPLETED
    }
    if all(group in decided_groups for group in config.get_groups()):
        phase = PlayoffPhase.COMPLETED
    elif PlayoffGroup.A in decided_groups:
        phase = PlayoffPhase.PLAYOFFS_GROUP_B
    else:
        phase = PlayoffPhase.PLAYOFFS_GROUP_A

    # Phases only move forward, going back requires a playoff reset.
    return max(phase, config.current_phase, key=PHASE_ORDER.index)


def _group_matches(matches: Iterable[Match], group: PlayoffGroup) -> list[Match]:
    return [
        match
        for match in matches
        if match.playoff_info is not None and match.playoff_info.group is group
    ]


async def initialize_playoffs(
    league_id: LeagueId, season_id: SeasonId, number_of_groups: int
) -> PlayoffConfig:
    async with database.transaction():
        await sql_acquire_playoff_lock(league_id, season_id)
        config = await get_playoff_config(league_id, season_id)
        if config.is_locked:
            raise LockedSnapshotViolation(
                f"Playoffs of league {league_id} season {season_id} already started "
                f"({config.current_phase}), reset them first"
            )

        rows = eligible_rows(await get_league_standings(league_id, season_id))
        qualified_players = determine_qualified_players(rows, number_of_groups)
        await sql_store_qualified_players(league_id, season_id, qualified_players)

        config = PlayoffConfig(
            league_id=league_id,
            season_id=season_id,
            enabled=True,
            number_of_groups=1 if number_of_groups == 1 else 2,
            current_phase=PlayoffPhase.PLAYOFFS_GROUP_A,
            playoff_start_date=datetime_utc.now(),
            qualified_players=qualified_players,
        )
        await sql_upsert_playoff_config(config)

        quarterfinal_round = await get_last_regular_round(league_id, season_id) + 1
        for group in config.get_groups():
            for body in determine_quarterfinal_matches(
                league_id,
                season_id,
                group,
                config.get_qualified_players_in_group(group),
                quarterfinal_round,
            ):
                await sql_create_match(body)

    logger.info(
        "Playoffs initialized: league_id=%s season_id=%s groups=%s qualified=%s",
        int(league_id),
        int(season_id),
        number_of_groups,
        len(qualified_players),
    )
    return config


async def reset_playoffs(league_id: LeagueId, season_id: SeasonId) -> int:
    async with database.transaction():
        await sql_acquire_playoff_lock(league_id, season_id)
        deleted_count = await sql_delete_playoff_matches(league_id, season_id)
        await sql_delete_qualified_players(league_id, season_id)
        config = await get_playoff_config(league_id, season_id)
        await sql_upsert_playoff_config(
            config.model_copy(
                update={
                    "enabled": False,
                    "current_phase": PlayoffPhase.REGULAR_SEASON,
                    "playoff_start_date": None,
                    "qualified_players": [],
                }
            )
        )

    logger.info(
        "Playoffs reset: league_id=%s season_id=%s deleted_matches=%s",
        int(league_id),
        int(season_id),
        deleted_count,
    )
    return deleted_count


async def update_playoff_config(
    league_id: LeagueId, season_id: SeasonId, number_of_groups: int
) -> PlayoffConfig:
    async with database.transaction():
        await sql_acquire_playoff_lock(league_id, season_id)
        config = await get_playoff_config(league_id, season_id)
        if config.is_locked:
            raise LockedSnapshotViolation(
                f"Playoffs of league {league_id} season {season_id} already started, "
                "the configuration can only change after a reset"
            )

        config = config.model_copy(
            update={"number_of_groups": 1 if number_of_groups == 1 else 2}
        )
        await sql_upsert_playoff_config(config)
    return config


async def refresh_playoff_phase(
    league_id: LeagueId, season_id: SeasonId, playoff_matches: Sequence[Match]
) -> PlayoffPhase:
    config = await get_playoff_config(league_id, season_id)
    phase = determine_phase(config, playoff_matches)
    if phase is not config.current_phase:
        await sql_set_playoff_phase(league_id, season_id, phase)
        logger.info(
            "Playoff phase changed: league_id=%s season_id=%s phase=%s",
            int(league_id),
            int(season_id),
            phase,
        )
    return phase


async def advance_playoff_bracket(completed_match: Match) -> list[Match]:
    """
    Create the next-round matches a freshly completed playoff match unlocks.

    Runs inside the transaction that recorded the result, after the playoff lock of the
    league+season was taken, so sibling feeders completing concurrently see each other.
    Slot creation is insert-if-absent, so a match is never created twice.
    """
    slot = get_slot(completed_match)
    playoff_matches = [
        completed_match if match.id == completed_match.id else match
        for match in await get_playoff_matches(
            completed_match.league_id, completed_match.season_id
        )
    ]

    created: list[Match] = []
    for body in determine_next_round_matches(
        completed_match, _group_matches(playoff_matches, slot.group)
    ):
        match = await sql_create_playoff_match_if_absent(body)
        if match is None:
            continue
        created.append(match)
        logger.info(
            "Playoff match created: league_id=%s season_id=%s group=%s stage=%s match_number=%s",
            int(match.league_id),
            int(match.season_id),
            slot.group,
            assert_some(match.playoff_info).stage,
            assert_some(match.playoff_info).match_number,
        )

    await refresh_playoff_phase(
        completed_match.league_id, completed_match.season_id, playoff_matches + created
    )
    return created


async def release_playoff_match(match: Match) -> list[Match]:
    """
    Undo the bracket progression of a playoff match that is being reset to unplayed.

    Deletes the unplayed next-round matches it fed. Refused once a downstream match has a result
    or the group's final is decided, since the phase can not move backwards.
    """
    slot = get_slot(match)
    bracket = matches_by_slot(
        _group_matches(await get_playoff_matches(match.league_id, match.season_id), slot.group)
    )

    final = bracket.get(BracketSlot(slot.group, PlayoffStage.FINAL, 1))
    if final is not None and final.status is MatchStatus.COMPLETED:
        raise InvalidMatchState(
            f"The final of group {slot.group} is decided, reset the playoffs instead"
        )

    downstream = [bracket[next_slot] for next_slot in get_next_slots(slot) if next_slot in bracket]
    for next_match in downstream:
        if next_match.status is MatchStatus.COMPLETED:
            raise InvalidMatchState(
                f"Match {next_match.id} fed by match {match.id} already has a result"
            )

    await sql_delete_matches(next_match.id for next_match in downstream)
    return downstream


async def create_next_round_match(
    league_id: LeagueId,
    season_id: SeasonId,
    group: PlayoffGroup,
    stage: PlayoffStage,
    match_number: int,
) -> Match:
    slot = BracketSlot(group, stage, match_number)
    if stage is PlayoffStage.QUARTERFINAL:
        raise InvalidMatchState("Quarterfinals are created when the playoffs are initialized")
    if not is_valid_slot(slot):
        raise InvalidMatchState(f"There is no {stage} number {match_number} in a playoff bracket")

    async with database.transaction():
        await sql_acquire_playoff_lock(league_id, season_id)
        config = await get_playoff_config(league_id, season_id)
        if not config.is_locked:
            raise InvalidMatchState(
                f"Playoffs of league {league_id} season {season_id} have not started"
            )
        if group not in config.get_groups():
            raise InvalidMatchState(f"Group {group} is not part of these playoffs")

        bracket = matches_by_slot(
            _group_matches(await get_playoff_matches(league_id, season_id), group)
        )
        existing = bracket.get(slot)
        if existing is not None:
            return existing

        body = determine_match_for_slot(slot, bracket)
        if body is None:
            raise FeederNotReady(
                f"Both feeder matches of group {group} {stage} {match_number} must be completed"
            )
        match = assert_some(await sql_create_playoff_match_if_absent(body))

    logger.info(
        "Playoff match forced: league_id=%s season_id=%s group=%s stage=%s match_number=%s",
        int(league_id),
        int(season_id),
        group,
        stage,
        match_number,
    )
    return match


async def get_playoff_bracket(league_id: LeagueId, season_id: SeasonId) -> PlayoffBracketView:
    config = await get_playoff_config(league_id, season_id)
    bracket = PlayoffBracketView(
        league_id=league_id,
        season_id=season_id,
        phase=config.current_phase,
        enabled=config.enabled,
        number_of_groups=config.number_of_groups,
        playoff_start_date=config.playoff_start_date,
        qualified_players={
            group: config.get_qualified_players_in_group(group) for group in config.get_groups()
        },
        matches=await get_playoff_matches(league_id, season_id),
    )

    if not config.is_locked:
        rows = eligible_rows(await get_league_standings(league_id, season_id))
        bracket.standings_preview = rows[:STANDINGS_PREVIEW_SIZE]
        bracket.eligible_player_count = len(rows)
    return bracket
