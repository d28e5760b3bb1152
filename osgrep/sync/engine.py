"""Core sync engine for reconciling a local tree with a remote store."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..config import DEFAULT_MAX_WORKERS
from ..exceptions import SyncInProgressError
from ..store import RemoteDocument, Store, ensure_collection
from ..utils import IN_FLIGHT_PER_WORKER, compute_hash
from .comparator import FileComparator, SyncAction, SyncDecision
from .operations import SyncOperations
from .progress import ProgressCallback, SyncProgressTracker, SyncResult
from .scanner import DirectoryScanner, LocalFile

logger = logging.getLogger(__name__)

# Collections with a pass currently running in this process
_active_collections: set[str] = set()
_active_lock = threading.Lock()


@contextmanager
def _exclusive_pass(collection: str) -> Iterator[None]:
    with _active_lock:
        if collection in _active_collections:
            raise SyncInProgressError(
                f"A sync of store {collection!r} is already running"
            )
        _active_collections.add(collection)
    try:
        yield
    finally:
        with _active_lock:
            _active_collections.discard(collection)


class SyncEngine:
    """Runs the initial reconciliation pass of a directory against a store.

    A pass lists the remote documents, walks the local tree once, uploads
    new and changed files, deletes documents whose file is gone and finally
    rebuilds the store's search indexes if anything changed.
    """

    def __init__(
        self,
        store: Store,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_file_size: Optional[int] = None,
        scanner: Optional[DirectoryScanner] = None,
    ):
        """Initialize sync engine.

        Args:
            store: Remote store client
            max_workers: Number of concurrent uploads/deletes
            max_file_size: Files larger than this are not uploaded
            scanner: Directory scanner (a fresh one per pass by default)
        """
        self.store = store
        self.max_workers = max(1, max_workers)
        self.max_file_size = max_file_size
        self.scanner = scanner

    def sync(
        self,
        collection: str,
        root: Path,
        force: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncResult:
        """Synchronize a directory with a store collection.

        Args:
            collection: Store collection name (created if missing)
            root: Sync root directory
            force: Re-upload every file even if unchanged
            progress_callback: Called with a SyncProgress snapshot after each
                local file is evaluated

        Returns:
            SyncResult with the pass statistics

        Raises:
            ValueError: If root is not an existing directory
            SyncInProgressError: If a pass for the collection is running
            StoreAPIError: If the collection cannot be created or listed

        Examples:
            >>> engine = SyncEngine(client)
            >>> result = engine.sync("my-store", Path("/project"))
            >>> print(f"Uploaded {result.uploaded} of {result.total} files")
        """
        if not root.exists():
            raise ValueError(f"Local directory does not exist: {root}")
        if not root.is_dir():
            raise ValueError(f"Local path is not a directory: {root}")
        root = root.resolve()

        with _exclusive_pass(collection):
            start_time = time.time()
            ensure_collection(self.store, collection)
            remote_documents = self._fetch_remote(collection)

            result = self._reconcile(
                collection, root, remote_documents, force, progress_callback
            )

            if result.changed:
                self._materialize(collection)
            else:
                logger.debug("No changes, skipping index materialization")

            logger.debug(
                f"Sync of {root} into {collection} took "
                f"{time.time() - start_time:.2f}s: {result.to_dict()}"
            )
            return result

    def _fetch_remote(self, collection: str) -> dict[str, RemoteDocument]:
        """List every remote document of the collection.

        Returns:
            Remote documents keyed by external identifier
        """
        list_start = time.time()
        remote_documents = {
            document.external_id: document
            for document in self.store.list_documents(collection)
        }
        logger.debug(
            f"Remote listing took {time.time() - list_start:.2f}s "
            f"for {len(remote_documents)} documents"
        )
        return remote_documents

    def _reconcile(
        self,
        collection: str,
        root: Path,
        remote_documents: dict[str, RemoteDocument],
        force: bool,
        progress_callback: Optional[ProgressCallback],
    ) -> SyncResult:
        """Walk the tree, upload what changed and delete what disappeared."""
        scanner = self.scanner or DirectoryScanner()
        comparator = FileComparator(force=force, max_file_size=self.max_file_size)
        operations = SyncOperations(self.store, collection)
        tracker = SyncProgressTracker(progress_callback)

        result = SyncResult()
        result_lock = threading.Lock()
        seen_paths: set[str] = set()

        # Bounds the work queued ahead of the workers during the walk
        slots = threading.BoundedSemaphore(self.max_workers * IN_FLIGHT_PER_WORKER)

        def release_slot(_future) -> None:
            slots.release()

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for local_file in scanner.scan_local(root):
                seen_paths.add(local_file.relative_path)
                tracker.discovered()
                slots.acquire()
                future = executor.submit(
                    self._process_file,
                    local_file,
                    remote_documents.get(local_file.relative_path),
                    comparator,
                    operations,
                    tracker,
                    result,
                    result_lock,
                )
                future.add_done_callback(release_slot)

            for decision in comparator.find_stale(remote_documents, seen_paths):
                slots.acquire()
                future = executor.submit(
                    self._delete_document, decision, operations, result, result_lock
                )
                future.add_done_callback(release_slot)

        progress = tracker.snapshot()
        result.total = progress.total
        result.processed = progress.processed
        result.uploaded = progress.uploaded
        return result

    def _process_file(
        self,
        local_file: LocalFile,
        remote_document: Optional[RemoteDocument],
        comparator: FileComparator,
        operations: SyncOperations,
        tracker: SyncProgressTracker,
        result: SyncResult,
        result_lock: threading.Lock,
    ) -> None:
        """Evaluate one local file and upload it when needed.

        Failures are logged and counted; they never abort the pass.
        """
        uploaded = False
        try:
            decision = comparator.check_size(local_file)
            if decision is None:
                content = local_file.read()
                content_hash = compute_hash(content)
                decision = comparator.compare(
                    local_file, content_hash, remote_document
                )
                if decision.action == SyncAction.UPLOAD:
                    logger.debug(
                        f"Uploading {local_file.relative_path}: {decision.reason}"
                    )
                    operations.upload_file(local_file, content, content_hash)
                    uploaded = True

            if decision.action == SyncAction.SKIP:
                logger.debug(f"Skipping {local_file.relative_path}: {decision.reason}")
                with result_lock:
                    result.skipped += 1
        except OSError as e:
            logger.warning(f"Cannot read {local_file.relative_path}: {e}")
            with result_lock:
                result.skipped += 1
        except Exception as e:
            logger.error(f"Failed to upload {local_file.relative_path}: {e}")
            with result_lock:
                result.failed += 1
                result.errors.append(f"{local_file.relative_path}: {e}")
        finally:
            tracker.file_done(str(local_file.path), uploaded)

    def _delete_document(
        self,
        decision: SyncDecision,
        operations: SyncOperations,
        result: SyncResult,
        result_lock: threading.Lock,
    ) -> None:
        """Delete one stale remote document, counting failures."""
        try:
            logger.debug(f"Deleting {decision.relative_path}: {decision.reason}")
            operations.delete_remote(decision.relative_path)
        except Exception as e:
            logger.error(f"Failed to delete {decision.relative_path}: {e}")
            with result_lock:
                result.failed += 1
                result.errors.append(f"{decision.relative_path}: {e}")
        else:
            with result_lock:
                result.deleted += 1

    def _materialize(self, collection: str) -> None:
        """Rebuild the full-text and vector indexes of the collection."""
        index_start = time.time()
        self.store.create_text_index(collection)
        self.store.create_vector_index(collection)
        logger.debug(f"Index materialization took {time.time() - index_start:.2f}s")
