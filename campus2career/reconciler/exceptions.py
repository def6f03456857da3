"""Exceptions raised by the transition reconciler.

Each maps to one HTTP status in the API layer; messages are user-facing.
"""

from typing import Optional


class ReconcilerError(Exception):
    """Base exception for reconciler operations."""


class ValidationError(ReconcilerError):
    """Submitted input failed validation."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ConflictError(ReconcilerError):
    """The record is not in a state that allows the requested change."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        current_status: Optional[str] = None,
        entity_type: str = "application",
    ):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id
        self.current_status = current_status
        self.entity_type = entity_type


class AuthorizationError(ReconcilerError):
    """The caller may not act on the record."""


class NotFoundError(ReconcilerError):
    """The referenced record does not exist."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id
