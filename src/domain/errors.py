"""Domain exceptions raised by services when a business rule is violated."""

from __future__ import annotations


class DomainError(RuntimeError):
    """An operation is not allowed in the current state."""


class PermissionDeniedError(DomainError):
    """The acting user may not perform the operation."""


class NotFoundError(DomainError, LookupError):
    """A referenced row does not exist."""


__all__ = ["DomainError", "NotFoundError", "PermissionDeniedError"]
