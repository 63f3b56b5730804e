"""create league, registration, match and playoff tables

Revision ID: 4e8a1f3c7b20
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4e8a1f3c7b20"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUMS = {
    "skill_level": ("BEGINNER", "INTERMEDIATE", "ADVANCED"),
    "registration_status": ("PENDING", "CONFIRMED", "ACTIVE", "INACTIVE"),
    "match_type": ("REGULAR", "PLAYOFF"),
    "match_status": ("SCHEDULED", "COMPLETED", "CANCELLED", "POSTPONED"),
    "match_outcome": ("WON", "LOST"),
    "playoff_group": ("A", "B"),
    "playoff_stage": ("QUARTERFINAL", "SEMIFINAL", "FINAL", "THIRD_PLACE"),
    "playoff_phase": ("REGULAR_SEASON", "PLAYOFFS_GROUP_A", "PLAYOFFS_GROUP_B", "COMPLETED"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _stats_columns() -> list[sa.Column]:
    return [
        sa.Column(column, sa.Integer(), server_default="0", nullable=False)
        for column in (
            "matches_played",
            "matches_won",
            "total_points",
            "sets_won",
            "sets_lost",
            "games_won",
            "games_lost",
            "retirements",
            "walkovers",
        )
    ]


def upgrade() -> None:
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        "leagues",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_leagues_id"), "leagues", ["id"], unique=False)
    op.create_index(op.f("ix_leagues_name"), "leagues", ["name"], unique=False)

    op.create_table(
        "seasons",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("league_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="t", nullable=False),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_seasons_id"), "seasons", ["id"], unique=False)
    op.create_index(op.f("ix_seasons_league_id"), "seasons", ["league_id"], unique=False)
    op.create_index(op.f("ix_seasons_is_active"), "seasons", ["is_active"], unique=False)

    op.create_table(
        "players",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("elo_rating", sa.Integer(), nullable=False),
        sa.Column("highest_elo", sa.Integer(), nullable=False),
        sa.Column("lowest_elo", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_players_id"), "players", ["id"], unique=False)
    op.create_index(op.f("ix_players_name"), "players", ["name"], unique=False)

    op.create_table(
        "registrations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("league_id", sa.BigInteger(), nullable=False),
        sa.Column("season_id", sa.BigInteger(), nullable=False),
        sa.Column("level", _enum("skill_level"), server_default="INTERMEDIATE", nullable=False),
        sa.Column("status", _enum("registration_status"), server_default="PENDING", nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_stats_columns(),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "league_id", "season_id"),
    )
    op.create_index(op.f("ix_registrations_id"), "registrations", ["id"], unique=False)
    op.create_index(op.f("ix_registrations_player_id"), "registrations", ["player_id"], unique=False)
    op.create_index(op.f("ix_registrations_league_id"), "registrations", ["league_id"], unique=False)
    op.create_index(op.f("ix_registrations_season_id"), "registrations", ["season_id"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("league_id", sa.BigInteger(), nullable=False),
        sa.Column("season_id", sa.BigInteger(), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("match_type", _enum("match_type"), server_default="REGULAR", nullable=False),
        sa.Column("player1_id", sa.BigInteger(), nullable=False),
        sa.Column("player2_id", sa.BigInteger(), nullable=False),
        sa.Column("status", _enum("match_status"), server_default="SCHEDULED", nullable=False),
        sa.Column("winner_id", sa.BigInteger(), nullable=True),
        sa.Column("sets", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("walkover", sa.Boolean(), server_default="f", nullable=False),
        sa.Column("retired_player_id", sa.BigInteger(), nullable=True),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("player1_rating_before", sa.Integer(), nullable=True),
        sa.Column("player1_rating_change", sa.Integer(), nullable=True),
        sa.Column("player2_rating_before", sa.Integer(), nullable=True),
        sa.Column("player2_rating_change", sa.Integer(), nullable=True),
        sa.Column("playoff_group", _enum("playoff_group"), nullable=True),
        sa.Column("playoff_stage", _enum("playoff_stage"), nullable=True),
        sa.Column("playoff_match_number", sa.Integer(), nullable=True),
        sa.Column("seed1", sa.Integer(), nullable=True),
        sa.Column("seed2", sa.Integer(), nullable=True),
        sa.CheckConstraint("round >= 1", name="ck_matches_round_positive"),
        sa.CheckConstraint("player1_id <> player2_id", name="ck_matches_distinct_players"),
        sa.CheckConstraint(
            "(status = 'COMPLETED') = (winner_id IS NOT NULL)",
            name="ck_matches_result_iff_completed",
        ),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player1_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["retired_player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_matches_id"), "matches", ["id"], unique=False)
    op.create_index(op.f("ix_matches_league_id"), "matches", ["league_id"], unique=False)
    op.create_index(op.f("ix_matches_season_id"), "matches", ["season_id"], unique=False)
    op.create_index(op.f("ix_matches_match_type"), "matches", ["match_type"], unique=False)
    op.create_index(op.f("ix_matches_player1_id"), "matches", ["player1_id"], unique=False)
    op.create_index(op.f("ix_matches_player2_id"), "matches", ["player2_id"], unique=False)
    op.create_index(op.f("ix_matches_status"), "matches", ["status"], unique=False)
    op.create_index(op.f("ix_matches_played_at"), "matches", ["played_at"], unique=False)
    op.create_index(
        "ix_matches_league_id_season_id_round",
        "matches",
        ["league_id", "season_id", "round"],
        unique=False,
    )
    op.create_index(
        "uq_matches_playoff_slot",
        "matches",
        ["league_id", "season_id", "playoff_group", "playoff_stage", "playoff_match_number"],
        unique=True,
        postgresql_where=sa.text("match_type = 'PLAYOFF'"),
    )

    op.create_table(
        "match_history",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("registration_id", sa.BigInteger(), nullable=False),
        sa.Column("match_id", sa.BigInteger(), nullable=False),
        sa.Column("opponent_id", sa.BigInteger(), nullable=False),
        sa.Column("result", _enum("match_outcome"), nullable=False),
        sa.Column("score", sa.String(), nullable=False),
        sa.Column("rating_before", sa.Integer(), nullable=False),
        sa.Column("rating_after", sa.Integer(), nullable=False),
        sa.Column("rating_change", sa.Integer(), nullable=False),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["registration_id"], ["registrations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["opponent_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("registration_id", "match_id"),
    )
    op.create_index(op.f("ix_match_history_id"), "match_history", ["id"], unique=False)
    op.create_index(
        op.f("ix_match_history_registration_id"), "match_history", ["registration_id"], unique=False
    )
    op.create_index(op.f("ix_match_history_match_id"), "match_history", ["match_id"], unique=False)

    op.create_table(
        "playoff_configs",
        sa.Column("league_id", sa.BigInteger(), nullable=False),
        sa.Column("season_id", sa.BigInteger(), nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default="f", nullable=False),
        sa.Column("number_of_groups", sa.Integer(), server_default="1", nullable=False),
        sa.Column("current_phase", _enum("playoff_phase"), server_default="REGULAR_SEASON", nullable=False),
        sa.Column("playoff_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("number_of_groups IN (1, 2)", name="ck_playoff_configs_number_of_groups"),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("league_id", "season_id"),
    )

    op.create_table(
        "playoff_qualified_players",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("league_id", sa.BigInteger(), nullable=False),
        sa.Column("season_id", sa.BigInteger(), nullable=False),
        sa.Column("group", _enum("playoff_group"), nullable=False),
        sa.Column("seed", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.BigInteger(), nullable=False),
        sa.Column("regular_season_position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["league_id"], ["leagues.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("league_id", "season_id", "group", "seed"),
        sa.UniqueConstraint("league_id", "season_id", "player_id"),
    )
    op.create_index(
        op.f("ix_playoff_qualified_players_id"), "playoff_qualified_players", ["id"], unique=False
    )
    op.create_index(
        op.f("ix_playoff_qualified_players_league_id"),
        "playoff_qualified_players",
        ["league_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_playoff_qualified_players_season_id"),
        "playoff_qualified_players",
        ["season_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("playoff_qualified_players")
    op.drop_table("playoff_configs")
    op.drop_table("match_history")
    op.drop_table("matches")
    op.drop_table("registrations")
    op.drop_table("players")
    op.drop_table("seasons")
    op.drop_table("leagues")
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
