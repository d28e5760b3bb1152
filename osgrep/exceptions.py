"""Exceptions raised by osgrep."""

from typing import Optional


class OsgrepError(Exception):
    """Base exception for all osgrep errors."""


class ConfigError(OsgrepError):
    """Raised when configuration is missing or invalid."""


class StoreAPIError(OsgrepError):
    """Base exception for remote store errors.

    Attributes:
        status_code: HTTP status code if the error came from a response
        transient: True if retrying the same call may succeed
    """

    transient = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreNetworkError(StoreAPIError):
    """Connection failure or request timeout."""

    transient = True


class StoreRateLimitError(StoreAPIError):
    """The store rejected the request with HTTP 429."""

    transient = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = 429,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class StoreServerError(StoreAPIError):
    """The store failed with a 5xx response."""

    transient = True


class StoreAuthenticationError(StoreAPIError):
    """Invalid or missing API key."""


class StorePermissionError(StoreAPIError):
    """The API key is not allowed to perform the operation."""


class StoreNotFoundError(StoreAPIError):
    """The requested store or document does not exist."""


class StoreValidationError(StoreAPIError):
    """The store refused the payload (unsupported or oversized content)."""


class StoreInvalidResponseError(StoreAPIError):
    """The store answered with a body that could not be understood."""


class SyncInProgressError(OsgrepError):
    """An initial sync is already running for the collection."""


class LeaseHeldError(OsgrepError):
    """Another live watcher already holds the lease for the sync root."""

    def __init__(self, message: str, pid: int):
        super().__init__(message)
        self.pid = pid
