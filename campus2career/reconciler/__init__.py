"""Transition reconciler: application and invite lifecycle over the marketplace."""

from .exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ReconcilerError,
    ValidationError,
)
from .repair import RepairJob, RepairSummary
from .service import ApplicationReconciler, ReconcilerSettings
from .validation import validate_listing_id, validate_submission

__all__ = [
    "ApplicationReconciler",
    "AuthorizationError",
    "ConflictError",
    "NotFoundError",
    "ReconcilerError",
    "ReconcilerSettings",
    "RepairJob",
    "RepairSummary",
    "ValidationError",
    "validate_listing_id",
    "validate_submission",
]
