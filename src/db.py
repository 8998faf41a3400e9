"""Database engine/session helpers."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import models  # noqa: F401  (registers every mapped table)
from models.base import Base


def create_db_engine(db_url: str) -> Engine:
    """Create a SQLAlchemy engine with conservative defaults for scripts."""
    return create_engine(db_url, pool_pre_ping=True, future=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the provided engine."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def ensure_schema(engine: Engine) -> list[str]:
    """Create every mapped table that does not exist yet and return all table names."""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    return sorted(Base.metadata.tables)


__all__ = ["create_db_engine", "create_session_factory", "ensure_schema"]
