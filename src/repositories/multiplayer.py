"""Queries for killer-pool games and their action logs."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import MultiplayerGame, MultiplayerGameLog


def list_games(session: Session, league_id: int) -> list[MultiplayerGame]:
    """League games, newest first."""
    return list(
        session.execute(
            select(MultiplayerGame)
            .where(MultiplayerGame.league_id == league_id)
            .order_by(MultiplayerGame.created_at.desc(), MultiplayerGame.id.desc())
        ).scalars()
    )


def add_log(
    session: Session,
    *,
    game_id: int,
    user_id: int,
    action_type: str,
    action_data: dict[str, Any] | None = None,
) -> MultiplayerGameLog:
    log = MultiplayerGameLog(
        multiplayer_game_id=game_id,
        user_id=user_id,
        action_type=action_type,
        action_data=action_data,
    )
    session.add(log)
    return log


def list_logs(session: Session, game_id: int) -> list[MultiplayerGameLog]:
    session.flush()
    return list(
        session.execute(
            select(MultiplayerGameLog)
            .where(MultiplayerGameLog.multiplayer_game_id == game_id)
            .order_by(MultiplayerGameLog.id)
        ).scalars()
    )


__all__ = ["add_log", "list_games", "list_logs"]
