"""users, clubs and games table models."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base
from models.mixins import TimestampMixin


class Club(Base):
    """Venue a player calls home."""

    __tablename__ = "clubs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)


class User(TimestampMixin, Base):
    """Registered player or administrator."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    firstname: Mapped[str] = mapped_column(String(128), nullable=False)
    lastname: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    home_club_id: Mapped[int | None] = mapped_column(ForeignKey("clubs.id", ondelete="SET NULL"), nullable=True)

    home_club: Mapped[Club | None] = relationship()

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.lastname}"


class Game(TimestampMixin, Base):
    """Cue-sport discipline a league or tournament is played in."""

    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("type IN ('pool', 'pyramid', 'snooker')", name="ck_games_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="pool")
    is_multiplayer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
