"""Periodic execution of the application repair pass."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
