"""Result types and exceptions for notification dispatch and mail delivery."""

from dataclasses import dataclass
from typing import Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""


class NotificationTemplateError(NotificationError):
    """Raised when the HTML email wrapper cannot be rendered."""


class SMTPDeliveryError(NotificationError):
    """Raised by SMTPClient when a single delivery attempt fails.

    ``retryable`` tells the transport whether another attempt may succeed
    (connection drops, timeouts, 4xx replies) or is pointless (auth, 5xx).
    """

    def __init__(self, message: str, retryable: bool = False, smtp_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.smtp_code = smtp_code


@dataclass
class MailResult:
    """Outcome of MailTransport.send_email.

    Attributes:
        success: True when the message was sent, or deliberately not sent
            because email is disabled or running in console mode
        mode: "smtp", "console" or "disabled"
        message_id: Message-ID header of a delivered message
        error: Failure description when success is False
        attempts: SMTP attempts made (0 when nothing was sent)
    """

    success: bool
    mode: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


@dataclass
class DispatchResult:
    """Outcome of NotificationDispatcher.dispatch.

    ``success`` reflects only whether the in-app notification was persisted;
    ``email_status`` reports the best-effort email leg separately.
    """

    success: bool
    notification_id: Optional[str] = None
    email_status: Optional[str] = None  # "sent", "in_app_only", "failed", "console", "disabled"
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.success
