"""Database query helpers grouped by aggregate."""

from repositories.base import count_rows, get_or_raise

__all__ = ["count_rows", "get_or_raise"]
