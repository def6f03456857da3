"""Record store: SQLAlchemy-backed persistence for campus2career.

Example usage:
    >>> from campus2career.persistence import init_database, get_session, NotificationRepository
    >>> init_database("sqlite:///./data/campus2career.db")
    >>> with get_session() as session:
    ...     unread = NotificationRepository(session).get_unread_count("user-1")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    ApplicationRepository,
    InviteRepository,
    NdaSignatureRepository,
    NotificationRepository,
)

__all__ = [
    "ApplicationRepository",
    "DataIntegrityError",
    "DatabaseConnectionError",
    "InviteRepository",
    "NdaSignatureRepository",
    "NotificationRepository",
    "PersistenceError",
    "RecordNotFoundError",
    "close_database",
    "get_engine",
    "get_session",
    "init_database",
]
