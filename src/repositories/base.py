"""Generic lookups shared by the per-area repositories."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from domain.errors import NotFoundError

ModelT = TypeVar("ModelT")


def get_or_raise(session: Session, model: type[ModelT], row_id: int, *, label: str | None = None) -> ModelT:
    """Fetch a row by primary key or raise NotFoundError."""
    row = session.get(model, row_id)
    if row is None:
        name = label or getattr(model, "__tablename__", model.__name__)
        raise NotFoundError(f"{name} {row_id} not found")
    return row


def count_rows(session: Session, model: type[Any], *criteria: Any) -> int:
    """Count rows of a model matching all criteria."""
    statement = select(func.count()).select_from(model)
    for criterion in criteria:
        statement = statement.where(criterion)
    return int(session.execute(statement).scalar_one())


__all__ = ["count_rows", "get_or_raise"]
