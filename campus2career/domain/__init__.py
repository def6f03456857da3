"""Domain models shared across the record store, dispatcher and reconciler."""

from .models import (
    Application,
    ApplicationForm,
    ApplicationStatus,
    Invite,
    InviteStatus,
    NdaSignature,
    NdaStatus,
    Notification,
    NotificationType,
)

__all__ = [
    "Application",
    "ApplicationForm",
    "ApplicationStatus",
    "Invite",
    "InviteStatus",
    "NdaSignature",
    "NdaStatus",
    "Notification",
    "NotificationType",
]
