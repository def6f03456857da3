"""Scoped logging context propagated through contextvars.

Fields pushed here (``application_id``, ``task_name``, ``transaction_id`` ...)
are attached to every record emitted inside the scope by ``ContextualFilter``.
Background tasks copy the submitting thread's context so fan-out logs stay
correlated with the request that scheduled them.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

_log_context: ContextVar[Dict[str, Any]] = ContextVar("campus2career_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active logging context."""
    return dict(_log_context.get())


def push_log_context(**fields) -> Token:
    """Merge ``fields`` into the active context; pass the token to ``pop_log_context``."""
    return _log_context.set({**_log_context.get(), **fields})


def pop_log_context(token: Token) -> None:
    _log_context.reset(token)


def clear_log_context() -> None:
    """Drop every context field. Mostly useful in tests."""
    _log_context.set({})


class log_context:
    """Context manager pushing fields for the duration of a block.

    Example:
        >>> with log_context(application_id="app_1", caller_id="user-1"):
        ...     logger.info("Accepting application")
    """

    def __init__(self, **fields):
        self.fields = fields
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
