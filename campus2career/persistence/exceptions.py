"""Persistence layer exceptions.

Every repository failure surfaces as a PersistenceError subclass so callers
can treat the record store as a single failure domain.
"""


class PersistenceError(Exception):
    """Base exception for all record store errors."""


class DatabaseConnectionError(PersistenceError):
    """Database initialization or connection failed, or the store is not initialized."""


class RecordNotFoundError(PersistenceError):
    """A record that must exist for the operation was not found.

    Optional lookups return None instead of raising this.
    """


class DataIntegrityError(PersistenceError):
    """A constraint was violated (primary key, unique pending application, ...)."""
