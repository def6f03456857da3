"""SMTP client wrapper for a single email delivery attempt.

Thin layer over smtplib handling TLS/SSL, authentication, explicit socket
timeouts and connection cleanup. Failures are raised as SMTPDeliveryError
carrying a ``retryable`` classification for the transport's retry loop.
"""

import smtplib
import socket
import ssl
from email.message import EmailMessage
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from campus2career.config.environment import EnvironmentConfig
from campus2career.logging import get_logger

from .models import SMTPDeliveryError

logger = get_logger(__name__, component="mail")

_RETRYABLE_HINTS = ("timeout", "timed out", "connection", "rate limit", "try again")


class SMTPClient:
    """Sends one EmailMessage per call. Factories are injectable for tests."""

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    def send(
        self,
        message: EmailMessage,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        """Deliver ``message`` through the configured SMTP server.

        Port 465 uses implicit TLS; other ports upgrade with STARTTLS when
        ``use_tls`` is set. The connection is always closed.

        Raises:
            SMTPDeliveryError: If delivery fails for any reason
        """
        smtp = None
        try:
            if env_config.smtp_port == 465:
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host,
                    env_config.smtp_port,
                    timeout=timeout,
                    context=ssl.create_default_context(),
                )
            else:
                smtp = self.smtp_factory(env_config.smtp_host, env_config.smtp_port, timeout=timeout)
                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.smtp_user and env_config.smtp_pass:
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            smtp.send_message(message)
            logger.debug(f"Message delivered to {message['To']}")

        except smtplib.SMTPException as e:
            raise SMTPDeliveryError(
                f"SMTP error during message delivery: {e}",
                retryable=is_retryable_error(e),
                smtp_code=getattr(e, "smtp_code", None),
            ) from e
        except OSError as e:
            # socket.timeout, ConnectionRefusedError, DNS failures ...
            raise SMTPDeliveryError(
                f"Network error during SMTP connection: {e}", retryable=True
            ) from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.debug(f"Error closing SMTP connection: {e}")


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether another attempt could succeed.

    Connection drops, timeouts and 4xx (transient) replies are retryable;
    authentication failures and 5xx (permanent) replies are not.
    """
    if isinstance(error, smtplib.SMTPAuthenticationError):
        return False
    if isinstance(error, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError)):
        return True
    if isinstance(error, (socket.timeout, TimeoutError, ConnectionError)):
        return True
    if isinstance(error, smtplib.SMTPRecipientsRefused):
        codes = [code for code, _ in error.recipients.values()]
        return bool(codes) and all(400 <= code < 500 for code in codes)
    code = getattr(error, "smtp_code", None)
    if isinstance(code, int) and code > 0:
        return 400 <= code < 500
    message = str(error).lower()
    return any(hint in message for hint in _RETRYABLE_HINTS)


def normalize_recipient(address: str) -> str:
    """Validate a single recipient address and return its normalized form.

    Raises:
        ValueError: If the address is not a valid email address
    """
    try:
        return validate_email(address.strip(), check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(f"Invalid recipient email address '{address}': {e}") from e


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the From header, e.g. ``Campus2Career <noreply@street2ivy.com>``."""
    sender_email = env_config.email_from_address or f"noreply@{env_config.smtp_host or 'localhost'}"
    return f"{env_config.email_from_name} <{sender_email}>"
