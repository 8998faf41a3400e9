"""multiplayer_games, multiplayer_game_players and multiplayer_game_logs table models."""

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
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, JSONType
from models.core import User
from models.mixins import TimestampMixin


class MultiplayerGame(TimestampMixin, Base):
    """Killer-pool game played inside a league."""

    __tablename__ = "multiplayer_games"
    __table_args__ = (
        CheckConstraint(
            "status IN ('registration', 'in_progress', 'completed', 'finished')",
            name="ck_multiplayer_games_status",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False)
    official_rating_id: Mapped[int | None] = mapped_column(ForeignKey("official_ratings.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="registration")
    initial_lives: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_players: Mapped[int | None] = mapped_column(Integer, nullable=True)
    registration_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    moderator_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    current_player_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    next_turn_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allow_player_targeting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    entrance_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=300)
    first_place_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    second_place_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    grand_final_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    penalty_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    prize_pool: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    current_prize_pool: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    allow_rebuy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rebuy_rounds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lives_per_new_player: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enable_penalties: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    penalty_rounds_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rebuy_history: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)

    players: Mapped[list["MultiplayerGamePlayer"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="MultiplayerGamePlayer.id",
    )


class MultiplayerGamePlayer(Base):
    """Per-player state in one killer-pool game."""

    __tablename__ = "multiplayer_game_players"
    __table_args__ = (
        UniqueConstraint("multiplayer_game_id", "user_id", name="uq_multiplayer_game_players_game_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    multiplayer_game_id: Mapped[int] = mapped_column(
        ForeignKey("multiplayer_games.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    lives: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    turn_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    finish_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cards: Mapped[dict[str, bool] | None] = mapped_column(JSONType, nullable=True)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, server_default=func.now()
    )
    eliminated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    rating_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    prize_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalty_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rebuy_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rounds_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    game_stats: Mapped[dict[str, int] | None] = mapped_column(JSONType, nullable=True)
    is_rebuy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_rebuy_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    game: Mapped[MultiplayerGame] = relationship(back_populates="players")
    user: Mapped[User] = relationship()

    def has_card(self, card_type: str) -> bool:
        return bool((self.cards or {}).get(card_type, False))


class MultiplayerGameLog(Base):
    """Audit trail of actions performed in a killer-pool game."""

    __tablename__ = "multiplayer_game_logs"
    __table_args__ = (Index("idx_multiplayer_game_logs_game", "multiplayer_game_id", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    multiplayer_game_id: Mapped[int] = mapped_column(
        ForeignKey("multiplayer_games.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    action_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, server_default=func.now()
    )
