"""Errors raised by the marketplace client.

MarketplaceError is the dependency failure of the external transaction
process. Callers on best-effort paths catch it and continue; callers on the
primary path decide case by case.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base exception for every marketplace API failure."""


class MarketplaceHTTPError(MarketplaceError):
    """The API answered with an error status, or the request never completed.

    ``status_code`` is 0 for connection-level failures.
    """

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class MarketplaceTimeoutError(MarketplaceError):
    """The request did not complete within the configured timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class MarketplaceResponseError(MarketplaceError):
    """The API answered but the body was not the expected JSON document."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class MarketplaceConfigurationError(MarketplaceError):
    """The client was built with unusable settings (missing URL, bad timeout)."""
