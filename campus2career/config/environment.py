"""Environment variable loading and validation."""

import os
from typing import List, Optional
from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/campus2career.db"
DEFAULT_ROOT_URL = "https://street2ivy.com"
DEFAULT_SENDER_NAME = "Campus2Career"

_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and deployment settings read from the process environment."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        email_enabled: bool = True,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        email_from_address: Optional[str] = None,
        email_from_name: Optional[str] = None,
        marketplace_api_url: Optional[str] = None,
        marketplace_api_token: Optional[str] = None,
        marketplace_root_url: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: str = "local",
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.email_enabled = email_enabled
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.email_from_address = email_from_address or smtp_user
        self.email_from_name = email_from_name or DEFAULT_SENDER_NAME
        self.marketplace_api_url = marketplace_api_url
        self.marketplace_api_token = marketplace_api_token
        self.marketplace_root_url = (marketplace_root_url or DEFAULT_ROOT_URL).rstrip("/")
        self.log_level = log_level
        self.environment = environment

    @property
    def smtp_configured(self) -> bool:
        """True when enough SMTP settings exist to attempt real delivery."""
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Every variable is optional. Without SMTP credentials email runs in console
    mode; without MARKETPLACE_API_URL the marketplace client cannot be built,
    which is reported by the caller that needs it.

    Returns:
        EnvironmentConfig with validated values

    Raises:
        ConfigurationError: If any variable is present but malformed
    """
    errors: List[str] = []

    smtp_port = 587
    smtp_port_str = os.getenv("SMTP_PORT")
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    if smtp_user and not smtp_pass:
        errors.append("SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication.")
    elif smtp_pass and not smtp_user:
        errors.append("SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication.")

    email_from_address = os.getenv("EMAIL_FROM_ADDRESS")
    if email_from_address:
        try:
            validate_email(email_from_address, check_deliverability=False)
        except EmailNotValidError as exc:
            errors.append(f"Invalid EMAIL_FROM_ADDRESS '{email_from_address}': {exc}")

    marketplace_api_url = os.getenv("MARKETPLACE_API_URL")
    marketplace_root_url = os.getenv("MARKETPLACE_ROOT_URL")
    for name, value in (
        ("MARKETPLACE_API_URL", marketplace_api_url),
        ("MARKETPLACE_ROOT_URL", marketplace_root_url),
    ):
        if value and not _is_http_url(value):
            errors.append(f"Invalid {name}: '{value}'. Must be an http(s) URL.")

    log_level = os.getenv("LOG_LEVEL")
    if log_level and log_level.upper() not in _LOG_LEVELS:
        errors.append(f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_LOG_LEVELS)}")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your settings",
                "Leave SMTP_* unset to run email in console mode",
            ],
        )

    return EnvironmentConfig(
        database_url=os.getenv("DATABASE_URL"),
        email_enabled=os.getenv("EMAIL_ENABLED", "true").strip().lower() not in _FALSE_VALUES,
        smtp_host=os.getenv("SMTP_HOST"),
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        email_from_address=email_from_address,
        email_from_name=os.getenv("EMAIL_FROM_NAME"),
        marketplace_api_url=marketplace_api_url,
        marketplace_api_token=os.getenv("MARKETPLACE_API_TOKEN"),
        marketplace_root_url=marketplace_root_url,
        log_level=log_level.upper() if log_level else None,
        environment=os.getenv("ENVIRONMENT", "local"),
    )


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
