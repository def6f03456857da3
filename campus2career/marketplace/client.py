"""HTTP client for the hosted marketplace's transaction, listing and user API.

The marketplace owns the project-application state machine. This client
only reads resources and asks for transitions; every call is a synchronous
request with an explicit timeout, and every failure surfaces as a
MarketplaceError subclass.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import requests

from campus2career.logging import get_logger

from .exceptions import (
    MarketplaceConfigurationError,
    MarketplaceHTTPError,
    MarketplaceResponseError,
    MarketplaceTimeoutError,
)
from .models import Listing, MarketplaceUser, TransactionContext

logger = get_logger(__name__, component="marketplace")

DEFAULT_INCLUDE = ("listing", "customer", "provider")


class MarketplaceClient:
    """Client for the marketplace integration API.

    Attributes:
        base_url: API root, e.g. ``https://api.example.com/v1/integration_api``
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: float = 10.0,
        user_agent: str = "Campus2Career/0.1",
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Raises:
            MarketplaceConfigurationError: If base_url is empty or timeout is out of range
        """
        if not base_url or not base_url.strip():
            raise MarketplaceConfigurationError("Marketplace base URL is required (MARKETPLACE_API_URL)")
        if not 1 <= timeout <= 60:
            raise MarketplaceConfigurationError(f"Timeout must be between 1 and 60 seconds, got: {timeout}")

        self.base_url = base_url.strip().rstrip("/")
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        if api_token:
            self._session.headers["Authorization"] = f"Bearer {api_token}"

    def initiate_transaction(
        self,
        transition: str,
        listing_id: str,
        customer_id: str,
        process_alias: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Start a new transaction on ``listing_id`` for ``customer_id``.

        Returns:
            The new transaction id
        """
        document = self._request(
            "POST",
            "/transactions/initiate",
            json_data={
                "processAlias": process_alias,
                "transition": transition,
                "customerId": customer_id,
                "params": {"listingId": listing_id, **(params or {})},
            },
        )
        transaction_id = self._data(document, "/transactions/initiate").get("id")
        if not transaction_id:
            raise MarketplaceResponseError("Initiated transaction has no id", url=self._url("/transactions/initiate"))
        return str(transaction_id)

    def post_message(self, transaction_id: str, text: str, sender_id: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"transactionId": transaction_id, "content": text}
        if sender_id:
            payload["senderId"] = sender_id
        self._request("POST", "/messages/send", json_data=payload)

    def transition_transaction(
        self, transaction_id: str, transition: str, params: Optional[Dict[str, Any]] = None
    ) -> None:
        self._request(
            "POST",
            "/transactions/transition",
            json_data={"id": transaction_id, "transition": transition, "params": params or {}},
        )

    def show_transaction(
        self, transaction_id: str, include: Iterable[str] = DEFAULT_INCLUDE
    ) -> TransactionContext:
        """Fetch a transaction with its listing and parties resolved from ``included``."""
        document = self._request(
            "GET",
            "/transactions/show",
            params={"id": transaction_id, "include": ",".join(include)},
        )
        return self._parse(TransactionContext.from_document, document, "/transactions/show")

    def show_user(self, user_id: str) -> MarketplaceUser:
        document = self._request("GET", "/users/show", params={"id": user_id})
        return self._parse(MarketplaceUser.from_resource, self._data(document, "/users/show"), "/users/show")

    def show_listing(self, listing_id: str) -> Listing:
        document = self._request("GET", "/listings/show", params={"id": listing_id})
        return self._parse(Listing.from_resource, self._data(document, "/listings/show"), "/listings/show")

    def verify_listing_ownership(self, listing_id: str, caller_id: str) -> bool:
        """True if ``caller_id`` authored the listing; False if it does not exist.

        Raises:
            MarketplaceError: If ownership could not be determined
        """
        try:
            listing = self.show_listing(listing_id)
        except MarketplaceHTTPError as e:
            if e.is_not_found:
                return False
            raise
        return listing.author_id is not None and listing.author_id == caller_id

    def close(self) -> None:
        self._session.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Perform a request and return the decoded JSON document.

        Raises:
            MarketplaceHTTPError: On 4xx/5xx status or connection failure
            MarketplaceTimeoutError: On timeout
            MarketplaceResponseError: On a non-JSON or non-object body
        """
        url = self._url(path)
        logger.debug(
            f"HTTP {method} {url}",
            extra={"event": "marketplace.request.started", "method": method, "url": url},
        )
        try:
            response = self._session.request(
                method=method, url=url, params=params, json=json_data, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "marketplace.request.timeout", "url": url, "timeout": self.timeout},
            )
            raise MarketplaceTimeoutError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={"event": "marketplace.request.error", "error_type": type(e).__name__, "url": url},
            )
            raise MarketplaceHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            is_server_error = response.status_code >= 500
            logger.log(
                logging.WARNING if is_server_error else logging.ERROR,
                f"HTTP {response.status_code} from {url}",
                extra={
                    "event": "marketplace.request.error",
                    "status_code": response.status_code,
                    "url": url,
                },
            )
            raise MarketplaceHTTPError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
            )

        if not response.content:
            return {}
        try:
            document = response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {url}",
                extra={"event": "marketplace.request.error", "error_type": "JSONDecodeError", "url": url},
            )
            raise MarketplaceResponseError(f"Failed to parse JSON response from {url}: {e}", url=url) from e
        if not isinstance(document, dict):
            raise MarketplaceResponseError(f"Expected a JSON object from {url}", url=url)

        logger.debug(
            "Marketplace request succeeded",
            extra={"event": "marketplace.request.succeeded", "status_code": response.status_code, "url": url},
        )
        return document

    def _data(self, document: Dict[str, Any], path: str) -> Dict[str, Any]:
        data = document.get("data")
        if not isinstance(data, dict):
            raise MarketplaceResponseError(f"Response from {path} has no data object", url=self._url(path))
        return data

    def _parse(self, parser, payload: Dict[str, Any], path: str):
        try:
            return parser(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise MarketplaceResponseError(f"Malformed resource from {path}: {e}", url=self._url(path)) from e

