"""Remote store protocol shared by the sync engine and the watcher."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from .exceptions import StoreNotFoundError
from .utils import STORE_DESCRIPTION

logger = logging.getLogger(__name__)


@dataclass
class RemoteDocument:
    """A document stored remotely, keyed by its external identifier."""

    external_id: str
    """Root-relative path of the local file the document was built from"""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Metadata attached when the document was indexed"""

    @property
    def hash(self) -> Optional[str]:
        """Content fingerprint recorded at index time, if any."""
        value = self.metadata.get("hash")
        return value if isinstance(value, str) else None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteDocument":
        metadata = data.get("metadata") or {}
        return cls(
            external_id=str(data["external_id"]),
            metadata=metadata if isinstance(metadata, dict) else {},
        )


class Store(Protocol):
    """Capabilities the sync core needs from a remote search store."""

    def list_documents(self, collection: str) -> Iterator[RemoteDocument]: ...

    def index_document(
        self,
        collection: str,
        content: bytes,
        external_id: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Any: ...

    def delete_document(self, collection: str, external_id: str) -> None: ...

    def create_collection(self, name: str, description: str = "") -> Any: ...

    def get_collection(self, name: str) -> dict[str, Any]: ...

    def create_text_index(self, collection: str) -> Any: ...

    def create_vector_index(self, collection: str) -> Any: ...


def ensure_collection(store: Store, name: str) -> dict[str, Any]:
    """Retrieve a collection, creating it when it does not exist yet.

    Args:
        store: Remote store
        name: Collection name

    Returns:
        Collection info as returned by the store

    Raises:
        StoreAPIError: If the collection can neither be retrieved nor created
    """
    try:
        return store.get_collection(name)
    except StoreNotFoundError:
        logger.info(f"Creating store {name}")
        store.create_collection(name, description=STORE_DESCRIPTION)
        return {"name": name}
