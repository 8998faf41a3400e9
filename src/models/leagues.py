"""leagues, ratings and match_games table models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
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


class League(TimestampMixin, Base):
    """Persistent ladder with its own rating rules."""

    __tablename__ = "leagues"
    __table_args__ = (
        CheckConstraint("rating_type IN ('elo', 'killer_pool')", name="ck_leagues_rating_type"),
        CheckConstraint("max_score > 0", name="ck_leagues_max_score"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    rating_type: Mapped[str] = mapped_column(String(16), nullable=False, default="elo")
    start_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    rating_change_for_winners_rule: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    rating_change_for_losers_rule: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    max_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    invite_days_expire: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    game: Mapped[Game] = relationship()


class Rating(TimestampMixin, Base):
    """One player's standing inside one league."""

    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_ratings_league_user"),
        Index("idx_ratings_league_position", "league_id", "position"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user: Mapped[User] = relationship()


class MatchGame(TimestampMixin, Base):
    """Challenge match between two league ratings."""

    __tablename__ = "match_games"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'must_be_confirmed')",
            name="ck_match_games_status",
        ),
        Index("idx_match_games_league_status", "league_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    first_rating_id: Mapped[int] = mapped_column(ForeignKey("ratings.id"), nullable=False)
    second_rating_id: Mapped[int] = mapped_column(ForeignKey("ratings.id"), nullable=False)
    first_user_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    second_user_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winner_rating_id: Mapped[int | None] = mapped_column(ForeignKey("ratings.id"), nullable=True)
    loser_rating_id: Mapped[int | None] = mapped_column(ForeignKey("ratings.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    rating_change_for_winner: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_change_for_loser: Mapped[int | None] = mapped_column(Integer, nullable=True)
    first_rating_before_game: Mapped[int] = mapped_column(Integer, nullable=False)
    second_rating_before_game: Mapped[int] = mapped_column(Integer, nullable=False)
    invitation_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    invitation_available_till: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    invitation_accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    stream_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    details: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    first_rating: Mapped[Rating] = relationship(foreign_keys=[first_rating_id])
    second_rating: Mapped[Rating] = relationship(foreign_keys=[second_rating_id])
