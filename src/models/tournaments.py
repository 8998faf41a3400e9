"""tournaments, tournament_players, tournament_groups, tournament_brackets and tournament_matches models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, JSONType
from models.core import Game, User
from models.mixins import TimestampMixin


class Tournament(TimestampMixin, Base):
    """Bounded competitive event with a bracket or group format."""

    __tablename__ = "tournaments"
    __table_args__ = (Index("idx_tournaments_status", "status"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="upcoming")
    stage: Mapped[str] = mapped_column(String(32), nullable=False, default="registration")
    tournament_type: Mapped[str] = mapped_column(String(32), nullable=False, default="single_elimination")
    seeding_method: Mapped[str] = mapped_column(String(32), nullable=False, default="random")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    application_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    requires_application: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_approve_applications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)
    entry_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    prize_pool: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    races_to: Mapped[int | None] = mapped_column(Integer, nullable=True, default=7)
    round_races_to: Mapped[dict[str, int] | None] = mapped_column(JSONType, nullable=True)
    has_third_place_match: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    group_size_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    group_size_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    playoff_players_per_group: Mapped[int | None] = mapped_column(Integer, nullable=True)
    olympic_phase_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    olympic_has_third_place: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_old: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seeding_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seeding_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    brackets_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    game: Mapped[Game] = relationship()


class TournamentPlayer(TimestampMixin, Base):
    """Registration and result of one player in one tournament."""

    __tablename__ = "tournament_players"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_tournament_players_tournament_user"),
        Index("idx_tournament_players_status", "tournament_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="registered")
    seed_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    group_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    group_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    group_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    group_losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    group_games_diff: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tiebreaker_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tiebreaker_games_diff: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    elimination_round: Mapped[str | None] = mapped_column(String(32), nullable=True)
    rating_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prize_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bonus_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    achievement_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    registered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped[User] = relationship()


class TournamentGroup(Base):
    """Round-robin group inside a group-stage tournament."""

    __tablename__ = "tournament_groups"
    __table_args__ = (UniqueConstraint("tournament_id", "group_code", name="uq_tournament_groups_code"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    group_code: Mapped[str] = mapped_column(String(8), nullable=False)
    group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    advance_count: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    standings_cache: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)


class TournamentBracket(Base):
    """Bracket summary row (one per upper/lower/single bracket)."""

    __tablename__ = "tournament_brackets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    bracket_type: Mapped[str] = mapped_column(String(16), nullable=False)
    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    players_count: Mapped[int] = mapped_column(Integer, nullable=False)
    bracket_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)


class TournamentMatch(TimestampMixin, Base):
    """One match slot in a bracket, group or tiebreaker round."""

    __tablename__ = "tournament_matches"
    __table_args__ = (
        UniqueConstraint("tournament_id", "match_code", name="uq_tournament_matches_code"),
        Index("idx_tournament_matches_status", "tournament_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    match_code: Mapped[str] = mapped_column(String(64), nullable=False)
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    round: Mapped[str | None] = mapped_column(String(32), nullable=True)
    bracket_side: Mapped[str | None] = mapped_column(String(8), nullable=True)
    bracket_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player1_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    player2_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    winner_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    player1_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    player2_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    races_to: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    frame_scores: Mapped[list[dict[str, int]] | None] = mapped_column(JSONType, nullable=True)
    next_match_id: Mapped[int | None] = mapped_column(
        ForeignKey("tournament_matches.id", ondelete="SET NULL"), nullable=True
    )
    previous_match1_id: Mapped[int | None] = mapped_column(
        ForeignKey("tournament_matches.id", ondelete="SET NULL"), nullable=True
    )
    previous_match2_id: Mapped[int | None] = mapped_column(
        ForeignKey("tournament_matches.id", ondelete="SET NULL"), nullable=True
    )
    loser_next_match_id: Mapped[int | None] = mapped_column(
        ForeignKey("tournament_matches.id", ondelete="SET NULL"), nullable=True
    )
    loser_next_match_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    match_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    stream_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    @property
    def is_tiebreaker(self) -> bool:
        return bool((self.match_metadata or {}).get("is_tiebreaker", False))

    def loser_id(self) -> int | None:
        if self.winner_id is None:
            return None
        return self.player2_id if self.winner_id == self.player1_id else self.player1_id
