"""HTTP client for the remote search store."""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    ConfigError,
    StoreAPIError,
    StoreAuthenticationError,
    StoreInvalidResponseError,
    StoreNetworkError,
    StoreNotFoundError,
    StorePermissionError,
    StoreRateLimitError,
    StoreServerError,
    StoreValidationError,
)
from .store import RemoteDocument

logger = logging.getLogger(__name__)

VALIDATION_STATUS_CODES = (400, 413, 415, 422)


class StoreClient:
    """Client for the remote search store API.

    Implements the :class:`osgrep.store.Store` protocol. Transient failures
    (network errors, rate limiting, 5xx responses) are retried with
    exponential backoff; every request is bounded by ``timeout``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float | None = None,
        page_size: int = 100,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the store client.

        Args:
            api_key: Optional API key (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (uses config if not provided)
            page_size: Number of documents fetched per listing page
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or config.api_key
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout if timeout is not None else config.request_timeout
        self.page_size = page_size
        self._transport = transport

        if not self.api_key:
            raise ConfigError(
                "API key not configured. Run 'osgrep init' or set OSGREP_API_KEY."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> StoreClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Jitter of +/- 25% to avoid synchronized retries from parallel workers
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_from_response(self, response: httpx.Response) -> StoreAPIError:
        """Map an error response to the matching exception.

        Args:
            response: HTTP response with a 4xx/5xx status

        Returns:
            Exception describing the failure
        """
        status_code = response.status_code

        if status_code == 401:
            return StoreAuthenticationError(
                "Invalid API key or unauthorized access", status_code
            )
        if status_code == 403:
            return StorePermissionError(
                "Access forbidden - check your permissions", status_code
            )
        if status_code == 404:
            return StoreNotFoundError("Resource not found", status_code)
        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return StoreRateLimitError(
                "Rate limit exceeded - please try again later",
                status_code,
                retry_after=float(retry_after)
                if retry_after and retry_after.isdigit()
                else None,
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON, keep the status-based message
            pass

        if status_code in VALIDATION_STATUS_CODES:
            return StoreValidationError(error_msg, status_code)
        if 500 <= status_code < 600:
            return StoreServerError(error_msg, status_code)
        return StoreAPIError(error_msg, status_code)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty bodies)

        Raises:
            StoreAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: StoreAPIError = StoreNetworkError(f"Network error: {e}")
                if attempt < self.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        f"{method} {endpoint} failed ({e}), retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    continue
                raise error from e

            if response.is_error:
                error = self._error_from_response(response)
                if error.transient and attempt < self.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    if isinstance(error, StoreRateLimitError) and error.retry_after:
                        delay = error.retry_after
                    logger.debug(
                        f"{method} {endpoint} returned {response.status_code}, "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    continue
                raise error

            if not response.content:
                return {}
            content_type = response.headers.get("Content-Type", "")
            if "application/json" not in content_type:
                raise StoreInvalidResponseError(
                    f"Unexpected response type: {content_type}"
                )
            try:
                return response.json()
            except ValueError as e:
                raise StoreInvalidResponseError(
                    "Invalid JSON response from server"
                ) from e

        raise StoreAPIError("Request failed after all retry attempts")

    @staticmethod
    def _document_path(collection: str, external_id: str) -> str:
        return (
            f"stores/{quote(collection, safe='')}/documents/"
            f"{quote(external_id, safe='')}"
        )

    # =========================
    # Collections
    # =========================

    def get_collection(self, name: str) -> dict[str, Any]:
        """Get store information.

        Raises:
            StoreNotFoundError: If the store does not exist
        """
        return self._request("GET", f"stores/{quote(name, safe='')}")

    def create_collection(self, name: str, description: str = "") -> Any:
        """Create a new store."""
        return self._request(
            "POST", "stores", json={"name": name, "description": description}
        )

    # =========================
    # Documents
    # =========================

    def list_documents(self, collection: str) -> Iterator[RemoteDocument]:
        """Iterate over all documents in a store, fetching pages lazily.

        Args:
            collection: Store name

        Yields:
            RemoteDocument for every stored document
        """
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"limit": self.page_size}
            if cursor:
                params["after"] = cursor
            result = self._request(
                "GET", f"stores/{quote(collection, safe='')}/documents", params=params
            )
            for item in result.get("data", []):
                if item.get("external_id"):
                    yield RemoteDocument.from_api_response(item)

            pagination = result.get("pagination") or {}
            cursor = pagination.get("last_cursor")
            if not pagination.get("has_more") or not cursor:
                break

    def index_document(
        self,
        collection: str,
        content: bytes,
        external_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        """Upload content under an external identifier, replacing any previous
        document with the same identifier.

        Args:
            collection: Store name
            content: Raw file content
            external_id: Stable identifier of the document
            metadata: Extra metadata stored with the document

        Returns:
            API response
        """
        filename = external_id.rsplit("/", 1)[-1]
        return self._request(
            "PUT",
            self._document_path(collection, external_id),
            files={"file": (filename, content, "application/octet-stream")},
            data={"metadata": json.dumps(metadata or {})},
        )

    def delete_document(self, collection: str, external_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        try:
            self._request("DELETE", self._document_path(collection, external_id))
        except StoreNotFoundError:
            logger.debug(f"Document {external_id} already absent from {collection}")

    # =========================
    # Index materialization
    # =========================

    def create_text_index(self, collection: str) -> Any:
        """Build or refresh the full-text index of a store."""
        return self._request(
            "POST", f"stores/{quote(collection, safe='')}/indexes/text"
        )

    def create_vector_index(self, collection: str) -> Any:
        """Build or refresh the vector index of a store."""
        return self._request(
            "POST", f"stores/{quote(collection, safe='')}/indexes/vector"
        )
