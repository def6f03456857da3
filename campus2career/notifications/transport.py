"""Mail transport: rate-limited, retried email delivery that never raises.

``MailTransport.send_email`` is the only entry point the dispatcher uses.
It reports every outcome as a MailResult so callers can log and move on.
"""

import random
import threading
import time
from collections import deque
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from campus2career.config.environment import EnvironmentConfig
from campus2career.config.models import EmailConfig
from campus2career.logging import get_logger
from campus2career.utils.timestamps import utc_now

from .models import MailResult, NotificationTemplateError, SMTPDeliveryError
from .smtp_client import SMTPClient, build_sender_address, normalize_recipient
from .templates import EmailHtmlRenderer

logger = get_logger(__name__, component="mail")

RATE_LIMIT_WINDOW_SECONDS = 60.0
JITTER_RATIO = 0.1


class SlidingWindowRateLimiter:
    """Allows at most ``limit`` acquisitions per trailing ``window`` seconds."""

    def __init__(self, limit: int, window: float = RATE_LIMIT_WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._timestamps: Deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._prune()
            if len(self._timestamps) >= self.limit:
                return False
            self._timestamps.append(now)
            return True

    def used(self) -> int:
        with self._lock:
            self._prune()
            return len(self._timestamps)

    def _prune(self) -> float:
        now = self.clock()
        while self._timestamps and now - self._timestamps[0] >= self.window:
            self._timestamps.popleft()
        return now


class MailTransport:
    """Email delivery with disabled/console modes, rate limiting and retries.

    Modes:
        disabled: EMAIL_ENABLED is false; nothing is sent, success reported
        console: SMTP is not configured; the message is logged, success reported
        smtp: real delivery through SMTPClient
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        smtp_client: Optional[SMTPClient] = None,
        html_renderer: Optional[EmailHtmlRenderer] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.smtp_client = smtp_client or SMTPClient()
        self.html_renderer = html_renderer or EmailHtmlRenderer()
        self.sleep = sleep
        self.rate_limiter = SlidingWindowRateLimiter(
            self.email_config.rate_limit_per_minute, clock=clock
        )
        self._log: Deque[Dict[str, Any]] = deque(maxlen=self.email_config.log_capacity)
        self._log_lock = threading.Lock()

    @property
    def mode(self) -> str:
        if not self.env_config.email_enabled:
            return "disabled"
        if not self.env_config.smtp_configured:
            return "console"
        return "smtp"

    def send_email(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> MailResult:
        """Send one email. Never raises.

        Args:
            to: Recipient address
            subject: Subject line
            text: Plain-text body
            html: HTML body; synthesized from ``text`` when omitted
            tags: Labels recorded in the delivery log and X-Tags header

        Returns:
            MailResult; success is True for delivered, disabled and console sends
        """
        tags = list(tags or [])
        mode = self.mode

        if mode == "disabled":
            logger.debug(
                f"Email disabled; not sending '{subject}'",
                extra={"event": "mail.send.disabled", "tags": tags},
            )
            return self._record(MailResult(success=True, mode=mode), to, subject, tags)

        if mode == "console":
            logger.info(
                f"Email (console mode) to {to}: {subject}\n{text}",
                extra={"event": "mail.send.console", "recipient": to, "tags": tags},
            )
            return self._record(MailResult(success=True, mode=mode), to, subject, tags)

        try:
            recipient = normalize_recipient(to)
        except ValueError as e:
            logger.warning(str(e), extra={"event": "mail.send.invalid_recipient"})
            return self._record(MailResult(success=False, mode=mode, error=str(e)), to, subject, tags)

        if not self.rate_limiter.try_acquire():
            logger.warning(
                f"Email rate limit reached ({self.email_config.rate_limit_per_minute}/min); dropping '{subject}'",
                extra={"event": "mail.send.rate_limited", "recipient": recipient, "tags": tags},
            )
            return self._record(
                MailResult(success=False, mode=mode, error="Rate limit exceeded"), recipient, subject, tags
            )

        try:
            message = self._build_message(recipient, subject, text, html, tags)
        except NotificationTemplateError as e:
            return self._record(MailResult(success=False, mode=mode, error=str(e)), recipient, subject, tags)

        return self._record(self._deliver(message, recipient, subject), recipient, subject, tags)

    def _build_message(
        self, recipient: str, subject: str, text: str, html: Optional[str], tags: List[str]
    ) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = build_sender_address(self.env_config)
        message["To"] = recipient
        message["Message-ID"] = make_msgid(domain=self._sender_domain())
        if tags:
            message["X-Tags"] = ", ".join(tags)
        message.set_content(text)
        message.add_alternative(html or self.html_renderer.render(subject, text), subtype="html")
        return message

    def _deliver(self, message: EmailMessage, recipient: str, subject: str) -> MailResult:
        max_attempts = self.email_config.max_retries + 1
        last_error: Optional[str] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self._backoff_delay(attempt)
                logger.warning(
                    f"Retrying email to {recipient} (attempt {attempt}/{max_attempts}) after {delay:.2f}s",
                    extra={"event": "mail.send.retry", "attempt": attempt, "delay_seconds": delay},
                )
                self.sleep(delay)

            try:
                self.smtp_client.send(
                    message,
                    self.env_config,
                    use_tls=self.email_config.use_tls,
                    timeout=self.email_config.timeout_seconds,
                )
            except SMTPDeliveryError as e:
                last_error = str(e)
                if e.retryable and attempt < max_attempts:
                    logger.warning(
                        f"Email delivery attempt {attempt}/{max_attempts} to {recipient} failed: {e}",
                        extra={"event": "mail.send.attempt_failed", "attempt": attempt, "retryable": True},
                    )
                    continue
                logger.error(
                    f"Email delivery to {recipient} failed after {attempt} attempt(s): {e}",
                    extra={
                        "event": "mail.send.failed",
                        "attempts": attempt,
                        "retryable": e.retryable,
                        "smtp_code": e.smtp_code,
                    },
                )
                return MailResult(success=False, mode="smtp", error=last_error, attempts=attempt)

            logger.info(
                f"Email '{subject}' sent to {recipient}",
                extra={"event": "mail.send.success", "attempts": attempt, "recipient": recipient},
            )
            return MailResult(success=True, mode="smtp", message_id=message["Message-ID"], attempts=attempt)

        return MailResult(success=False, mode="smtp", error=last_error, attempts=max_attempts)

    def _backoff_delay(self, attempt: int) -> float:
        cfg = self.email_config
        delay = min(cfg.retry_initial_delay * cfg.retry_backoff_multiplier ** (attempt - 2), cfg.retry_max_delay)
        return delay + random.uniform(0, delay * JITTER_RATIO)

    def _sender_domain(self) -> str:
        address = self.env_config.email_from_address or ""
        return address.rpartition("@")[2] or "campus2career.local"

    def _record(self, result: MailResult, to: str, subject: str, tags: List[str]) -> MailResult:
        with self._log_lock:
            self._log.append(
                {
                    "to": to,
                    "subject": subject,
                    "tags": tags,
                    "mode": result.mode,
                    "success": result.success,
                    "messageId": result.message_id,
                    "error": result.error,
                    "attempts": result.attempts,
                    "timestamp": utc_now().isoformat(),
                }
            )
        return result

    def get_email_log(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent delivery log entries, newest first."""
        with self._log_lock:
            entries = list(self._log)
        return list(reversed(entries))[:limit]

    def get_rate_limit_status(self) -> Dict[str, int]:
        used = self.rate_limiter.used()
        limit = self.email_config.rate_limit_per_minute
        return {"sent_last_minute": used, "limit": limit, "remaining": max(limit - used, 0)}

    def get_service_status(self) -> Mapping[str, Any]:
        return {
            "mode": self.mode,
            "configured": self.env_config.smtp_configured,
            "enabled": self.env_config.email_enabled,
            "host": self.env_config.smtp_host,
            "rate_limit": self.get_rate_limit_status(),
        }
