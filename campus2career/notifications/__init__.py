"""Notification dispatch and mail delivery."""

from .models import (
    DispatchResult,
    MailResult,
    NotificationError,
    NotificationTemplateError,
    SMTPDeliveryError,
)
from .payloads import PAYLOAD_MODELS, NotificationPayload
from .service import NotificationDispatcher
from .smtp_client import SMTPClient
from .templates import NOTIFICATION_TEMPLATES, EmailHtmlRenderer, interpolate, text_to_html
from .transport import MailTransport, SlidingWindowRateLimiter

__all__ = [
    "DispatchResult",
    "EmailHtmlRenderer",
    "MailResult",
    "MailTransport",
    "NOTIFICATION_TEMPLATES",
    "NotificationDispatcher",
    "NotificationError",
    "NotificationPayload",
    "NotificationTemplateError",
    "PAYLOAD_MODELS",
    "SMTPClient",
    "SMTPDeliveryError",
    "SlidingWindowRateLimiter",
    "interpolate",
    "text_to_html",
]
