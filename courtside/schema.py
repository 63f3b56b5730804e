from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import declarative_base  # type: ignore[attr-defined]
from sqlalchemy.sql.sqltypes import JSON, BigInteger, Boolean, DateTime, Enum

Base = declarative_base()
metadata = Base.metadata
DateTimeTZ = DateTime(timezone=True)

leagues = Table(
    "leagues",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column("name", String, nullable=False, index=True),
    Column("created", DateTimeTZ, nullable=False, server_default=func.now()),
)

seasons = Table(
    "seasons",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column("league_id", BigInteger, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("name", String, nullable=False),
    Column("created", DateTimeTZ, nullable=False, server_default=func.now()),
    Column("start_time", DateTimeTZ, nullable=True),
    Column("end_time", DateTimeTZ, nullable=True),
    Column("is_active", Boolean, nullable=False, server_default="t", index=True),
)

players = Table(
    "players",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column("name", String, nullable=False, index=True),
    Column("created", DateTimeTZ, nullable=False, server_default=func.now()),
    Column("elo_rating", Integer, nullable=False),
    Column("highest_elo", Integer, nullable=False),
    Column("lowest_elo", Integer, nullable=False),
)

registrations = Table(
    "registrations",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column("player_id", BigInteger, ForeignKey("players.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("league_id", BigInteger, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("season_id", BigInteger, ForeignKey("seasons.id", ondelete="CASCADE"), index=True, nullable=False),
    Column(
        "level",
        Enum("BEGINNER", "INTERMEDIATE", "ADVANCED", name="skill_level"),
        nullable=False,
        server_default="INTERMEDIATE",
    ),
    Column(
        "status",
        Enum("PENDING", "CONFIRMED", "ACTIVE", "INACTIVE", name="registration_status"),
        nullable=False,
        server_default="PENDING",
    ),
    Column("created", DateTimeTZ, nullable=False, server_default=func.now()),
    Column("matches_played", Integer, nullable=False, server_default="0"),
    Column("matches_won", Integer, nullable=False, server_default="0"),
    Column("total_points", Integer, nullable=False, server_default="0"),
    Column("sets_won", Integer, nullable=False, server_default="0"),
    Column("sets_lost", Integer, nullable=False, server_default="0"),
    Column("games_won", Integer, nullable=False, server_default="0"),
    Column("games_lost", Integer, nullable=False, server_default="0"),
    Column("retirements", Integer, nullable=False, server_default="0"),
    Column("walkovers", Integer, nullable=False, server_default="0"),
    UniqueConstraint("player_id", "league_id", "season_id"),
)

matches = Table(
    "matches",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column("created", DateTimeTZ, nullable=False, server_default=func.now()),
    Column("league_id", BigInteger, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("season_id", BigInteger, ForeignKey("seasons.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("round", Integer, nullable=False),
    Column(
        "match_type",
        Enum("REGULAR", "PLAYOFF", name="match_type"),
        nullable=False,
        server_default="REGULAR",
        index=True,
    ),
    Column("player1_id", BigInteger, ForeignKey("players.id"), index=True, nullable=False),
    Column("player2_id", BigInteger, ForeignKey("players.id"), index=True, nullable=False),
    Column(
        "status",
        Enum("SCHEDULED", "COMPLETED", "CANCELLED", "POSTPONED", name="match_status"),
        nullable=False,
        server_default="SCHEDULED",
        index=True,
    ),
    Column("winner_id", BigInteger, ForeignKey("players.id"), nullable=True),
    Column("sets", JSON, nullable=False, server_default="[]"),
    Column("walkover", Boolean, nullable=False, server_default="f"),
    Column("retired_player_id", BigInteger, ForeignKey("players.id"), nullable=True),
    Column("played_at", DateTimeTZ, nullable=True, index=True),
    Column("player1_rating_before", Integer, nullable=True),
    Column("player1_rating_change", Integer, nullable=True),
    Column("player2_rating_before", Integer, nullable=True),
    Column("player2_rating_change", Integer, nullable=True),
    Column("playoff_group", Enum("A", "B", name="playoff_group"), nullable=True),
    Column(
        "playoff_stage",
        Enum("QUARTERFINAL", "SEMIFINAL", "FINAL", "THIRD_PLACE", name="playoff_stage"),
        nullable=True,
    ),
    Column("playoff_match_number", Integer, nullable=True),
    Column("seed1", Integer, nullable=True),
    Column("seed2", Integer, nullable=True),
    CheckConstraint("round >= 1", name="ck_matches_round_positive"),
    CheckConstraint("player1_id <> player2_id", name="ck_matches_distinct_players"),
    CheckConstraint(
        "(status = 'COMPLETED') = (winner_id IS NOT NULL)",
        name="ck_matches_result_iff_completed",
    ),
    Index("ix_matches_league_id_season_id_round", "league_id", "season_id", "round"),
    Index(
        "uq_matches_playoff_slot",
        "league_id",
        "season_id",
        "playoff_group",
        "playoff_stage",
        "playoff_match_number",
        unique=True,
        postgresql_where=text("match_type = 'PLAYOFF'"),
    ),
)

match_history = Table(
    "match_history",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column(
        "registration_id",
        BigInteger,
        ForeignKey("registrations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    ),
    Column("match_id", BigInteger, ForeignKey("matches.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("opponent_id", BigInteger, ForeignKey("players.id"), nullable=False),
    Column("result", Enum("WON", "LOST", name="match_outcome"), nullable=False),
    Column("score", String, nullable=False),
    Column("rating_before", Integer, nullable=False),
    Column("rating_after", Integer, nullable=False),
    Column("rating_change", Integer, nullable=False),
    Column("played_at", DateTimeTZ, nullable=False),
    Column("round", Integer, nullable=False),
    UniqueConstraint("registration_id", "match_id"),
)

playoff_configs = Table(
    "playoff_configs",
    metadata,
    Column("league_id", BigInteger, ForeignKey("leagues.id", ondelete="CASCADE"), primary_key=True),
    Column("season_id", BigInteger, ForeignKey("seasons.id", ondelete="CASCADE"), primary_key=True),
    Column("enabled", Boolean, nullable=False, server_default="f"),
    Column("number_of_groups", Integer, nullable=False, server_default="1"),
    Column(
        "current_phase",
        Enum(
            "REGULAR_SEASON",
            "PLAYOFFS_GROUP_A",
            "PLAYOFFS_GROUP_B",
            "COMPLETED",
            name="playoff_phase",
        ),
        nullable=False,
        server_default="REGULAR_SEASON",
    ),
    Column("playoff_start_date", DateTimeTZ, nullable=True),
    CheckConstraint("number_of_groups IN (1, 2)", name="ck_playoff_configs_number_of_groups"),
)

playoff_qualified_players = Table(
    "playoff_qualified_players",
    metadata,
    Column("id", BigInteger, primary_key=True, index=True, autoincrement=True),
    Column("league_id", BigInteger, ForeignKey("leagues.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("season_id", BigInteger, ForeignKey("seasons.id", ondelete="CASCADE"), index=True, nullable=False),
    Column("group", Enum("A", "B", name="playoff_group"), nullable=False),
    Column("seed", Integer, nullable=False),
    Column("player_id", BigInteger, ForeignKey("players.id"), nullable=False),
    Column("regular_season_position", Integer, nullable=False),
    UniqueConstraint("league_id", "season_id", "group", "seed"),
    UniqueConstraint("league_id", "season_id", "player_id"),
)
