"""Client for the hosted marketplace that owns the transaction state machine."""

from .client import DEFAULT_INCLUDE, MarketplaceClient
from .exceptions import (
    MarketplaceConfigurationError,
    MarketplaceError,
    MarketplaceHTTPError,
    MarketplaceResponseError,
    MarketplaceTimeoutError,
)
from .models import Listing, MarketplaceUser, Transaction, TransactionContext

__all__ = [
    "DEFAULT_INCLUDE",
    "Listing",
    "MarketplaceClient",
    "MarketplaceConfigurationError",
    "MarketplaceError",
    "MarketplaceHTTPError",
    "MarketplaceResponseError",
    "MarketplaceTimeoutError",
    "MarketplaceUser",
    "Transaction",
    "TransactionContext",
]
