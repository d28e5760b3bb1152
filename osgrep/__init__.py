"""osgrep - keep a semantic search store in sync with a local directory."""

from .api import StoreClient
from .exceptions import (
    ConfigError,
    LeaseHeldError,
    OsgrepError,
    StoreAPIError,
    StoreAuthenticationError,
    StoreInvalidResponseError,
    StoreNetworkError,
    StoreNotFoundError,
    StorePermissionError,
    StoreRateLimitError,
    StoreServerError,
    StoreValidationError,
    SyncInProgressError,
)
from .store import RemoteDocument, Store, ensure_collection
from .store_resolver import get_auto_store_id

__all__ = [
    "StoreClient",
    "Store",
    "RemoteDocument",
    "ensure_collection",
    "get_auto_store_id",
    "OsgrepError",
    "ConfigError",
    "LeaseHeldError",
    "StoreAPIError",
    "StoreAuthenticationError",
    "StoreInvalidResponseError",
    "StoreNetworkError",
    "StoreNotFoundError",
    "StorePermissionError",
    "StoreRateLimitError",
    "StoreServerError",
    "StoreValidationError",
    "SyncInProgressError",
]
