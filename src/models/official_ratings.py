"""official_ratings, official_rating_tournaments and official_rating_players models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, JSONType
from models.core import User
from models.mixins import TimestampMixin


class OfficialRating(TimestampMixin, Base):
    """Cross-tournament ranking for one game type."""

    __tablename__ = "official_ratings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    game_type: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    initial_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculation_method: Mapped[str] = mapped_column(String(32), nullable=False, default="tournament_points")
    rating_rules: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)


class OfficialRatingTournament(Base):
    """Tournament attached to an official rating with its weight."""

    __tablename__ = "official_rating_tournaments"
    __table_args__ = (
        UniqueConstraint("official_rating_id", "tournament_id", name="uq_official_rating_tournaments"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    official_rating_id: Mapped[int] = mapped_column(
        ForeignKey("official_ratings.id", ondelete="CASCADE"), nullable=False
    )
    tournament_id: Mapped[int] = mapped_column(ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False)
    rating_coefficient: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    is_counting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class OfficialRatingPlayer(TimestampMixin, Base):
    """Player standing in one official rating, with per-tournament records."""

    __tablename__ = "official_rating_players"
    __table_args__ = (
        UniqueConstraint("official_rating_id", "user_id", name="uq_official_rating_players_rating_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    official_rating_id: Mapped[int] = mapped_column(
        ForeignKey("official_ratings.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    rating_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tournaments_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tournaments_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_tournament_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    tournament_records: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    total_prize_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_bonus_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_achievement_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_killer_pool_prize_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    user: Mapped[User] = relationship()
