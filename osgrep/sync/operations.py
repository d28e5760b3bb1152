"""Per-file store operations shared by the sync engine and the watcher."""

import logging
import time
from typing import Any, Optional

from ..store import Store
from ..utils import compute_hash
from .scanner import LocalFile

logger = logging.getLogger(__name__)


class SyncOperations:
    """Index and delete single files in one store collection.

    Both the initial sync and the watcher go through these methods, so a
    file always maps to the same document whichever path triggered it.
    """

    def __init__(self, store: Store, collection: str):
        """Initialize sync operations.

        Args:
            store: Remote store
            collection: Store collection name
        """
        self.store = store
        self.collection = collection

    def upload_file(
        self,
        local_file: LocalFile,
        content: Optional[bytes] = None,
        content_hash: Optional[str] = None,
    ) -> Any:
        """Index a local file under its external identifier.

        Args:
            local_file: Local file to upload
            content: File content if already read
            content_hash: Fingerprint of content if already computed

        Returns:
            Response from the store
        """
        if content is None:
            content = local_file.read()
        if content_hash is None:
            content_hash = compute_hash(content)

        start = time.time()
        response = self.store.index_document(
            self.collection,
            content,
            external_id=local_file.external_id,
            metadata={"path": str(local_file.path), "hash": content_hash},
        )
        logger.debug(
            f"Indexed {local_file.external_id} ({len(content)} bytes) "
            f"in {time.time() - start:.2f}s"
        )
        return response

    def delete_remote(self, external_id: str) -> None:
        """Delete the remote document of a file."""
        self.store.delete_document(self.collection, external_id)
        logger.debug(f"Deleted {external_id}")
