"""Incremental sync driven by filesystem change notifications."""

import logging
import os
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config import DEFAULT_DEBOUNCE, DEFAULT_MAX_WORKERS
from ..store import Store
from ..utils import compute_hash
from .ignore import IgnoreFileManager
from .operations import SyncOperations
from .scanner import LocalFile

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 10000


class _EventHandler(FileSystemEventHandler):
    """Forwards changed paths to the watcher queue without blocking.

    Only events that can change file content are forwarded. Open and
    close-without-write events are raised by every read, including the
    watcher's own reads while uploading, so they are dropped here.
    """

    def __init__(self, watcher: "IncrementalWatcher"):
        super().__init__()
        self.watcher = watcher

    def _forward(self, event: FileSystemEvent, path) -> None:
        if not event.is_directory:
            self.watcher.notify(os.fsdecode(path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(event, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(event, event.src_path)

    def on_closed(self, event: FileSystemEvent) -> None:
        self._forward(event, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward(event, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # The source is gone; stale documents are pruned by the next sync
        self._forward(event, event.dest_path)


class IncrementalWatcher:
    """Keeps a store collection in sync with changes under a directory.

    Notifications land in a bounded queue. A dispatcher thread coalesces
    repeated events for the same path over ``debounce`` seconds and hands
    each path to a worker pool, which uploads it if it is still a regular,
    non-ignored file whose content differs from what this watcher last
    uploaded for it. Removal events are not turned into deletes; stale
    documents are pruned by the next initial sync.

    Examples:
        >>> watcher = IncrementalWatcher(client, "my-store", Path("/project"))
        >>> watcher.run_forever()  # until Ctrl-C
    """

    def __init__(
        self,
        store: Store,
        collection: str,
        root: Path,
        max_workers: int = DEFAULT_MAX_WORKERS,
        max_file_size: Optional[int] = None,
        debounce: float = DEFAULT_DEBOUNCE,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        """Initialize the watcher.

        Args:
            store: Remote store client
            collection: Store collection name
            root: Directory to watch (recursively)
            max_workers: Number of concurrent uploads
            max_file_size: Files larger than this are not uploaded
            debounce: Seconds to wait for more events on a path before syncing it
            queue_size: Maximum number of pending notifications
        """
        self.root = root.resolve()
        self.operations = SyncOperations(store, collection)
        self.ignore_manager = IgnoreFileManager(self.root)
        self.max_workers = max(1, max_workers)
        self.max_file_size = max_file_size
        self.debounce = debounce

        self._events: "queue.Queue[str]" = queue.Queue(maxsize=queue_size)
        self._pending: dict[str, float] = {}
        # Content hash of the last upload per external id
        self._uploaded: dict[str, str] = {}
        self._uploaded_lock = threading.Lock()
        self._stop = threading.Event()
        self._observer: Optional[Observer] = None
        self._dispatcher: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    # =========================
    # Lifecycle
    # =========================

    def start(self) -> None:
        """Start watching. Returns immediately."""
        if self._observer is not None:
            return
        self._stop.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="osgrep-watch"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="osgrep-dispatch", daemon=True
        )
        self._dispatcher.start()

        observer = Observer()
        observer.daemon = True
        observer.schedule(_EventHandler(self), str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.root}")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop watching and wait for in-flight uploads to finish."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None
        self._stop.set()
        if self._dispatcher is not None:
            self._dispatcher.join(timeout=timeout)
            self._dispatcher = None
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def run_forever(self, poll_interval: float = 1.0) -> None:
        """Start watching and block until interrupted."""
        self.start()
        try:
            while not self._stop.is_set():
                time.sleep(poll_interval)
        finally:
            self.stop()

    def __enter__(self) -> "IncrementalWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # =========================
    # Event flow
    # =========================

    def notify(self, path: str) -> None:
        """Queue a changed path. Never blocks.

        When the queue is full the notification is dropped; the next initial
        sync picks the change up.
        """
        try:
            self._events.put_nowait(path)
        except queue.Full:
            logger.warning(f"Event queue full, dropping change to {path}")

    def _dispatch_loop(self) -> None:
        while not self._stop.is_set():
            try:
                path = self._events.get(timeout=0.1)
            except queue.Empty:
                path = None
            if path is not None:
                self._pending[path] = time.monotonic() + self.debounce
            self.flush()

    def flush(self, force: bool = False) -> list[str]:
        """Submit every pending path whose debounce window has elapsed.

        Args:
            force: Submit all pending paths regardless of their deadline

        Returns:
            Paths submitted
        """
        now = time.monotonic()
        due = [
            path for path, deadline in self._pending.items() if force or deadline <= now
        ]
        for path in due:
            del self._pending[path]
            if self._executor is not None:
                future = self._executor.submit(self.handle_path, path)
                future.add_done_callback(partial(_log_failure, path))
            else:
                self.handle_path(path)
        return due

    def handle_path(self, raw_path: str) -> bool:
        """Bring the remote document of one changed path up to date.

        Args:
            raw_path: Path reported by the filesystem notification

        Returns:
            True if the file was uploaded
        """
        path = Path(raw_path)
        if not path.is_absolute():
            path = self.root / path

        if self.ignore_manager.is_rule_source(path):
            # Rules changed, classify this and later events with the new ones
            self.ignore_manager.reload()

        try:
            # Follows symlinks; dangling links and removed paths are not files
            if not path.is_file():
                return False
        except OSError:
            return False

        if self.ignore_manager.is_path_ignored(path):
            logger.debug(f"Ignoring change to {path}")
            return False

        try:
            local_file = LocalFile.from_path(path, self.root)
            if local_file.size == 0:
                return False
            if self.max_file_size is not None and local_file.size > self.max_file_size:
                logger.debug(f"Skipping {local_file.relative_path}: file too large")
                return False
            content = local_file.read()
            content_hash = compute_hash(content)
            with self._uploaded_lock:
                if self._uploaded.get(local_file.external_id) == content_hash:
                    logger.debug(f"Unchanged since upload: {local_file.external_id}")
                    return False
            self.operations.upload_file(local_file, content, content_hash)
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to upload changed file {path}: {e}")
            return False

        with self._uploaded_lock:
            self._uploaded[local_file.external_id] = content_hash
        logger.info(f"Indexed {local_file.relative_path}")
        return True


def _log_failure(path: str, future: Future) -> None:
    """Done-callback for worker futures; nothing else collects them."""
    error = future.exception()
    if error is not None:
        logger.error(f"Failed to handle change to {path}: {error!r}")
