"""Progress and result records for sync passes."""

import logging
import threading
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class SyncProgress:
    """Running counters of one sync pass.

    ``total`` grows while the walk discovers files, so it is an estimate
    until the walk has finished.
    """

    processed: int = 0
    """Local files evaluated so far"""

    uploaded: int = 0
    """Local files successfully indexed"""

    total: int = 0
    """Local files discovered so far"""

    current_path: Optional[str] = None
    """Absolute path of the file evaluated last"""


ProgressCallback = Callable[[SyncProgress], None]


class SyncProgressTracker:
    """Thread-safe holder of a :class:`SyncProgress` that notifies a callback.

    Worker threads report through the tracker; the callback always receives
    a snapshot, never the live object.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self._progress = SyncProgress()
        self._lock = threading.Lock()

    def discovered(self) -> None:
        """Count one more file found by the walk."""
        with self._lock:
            self._progress.total += 1

    def file_done(self, path: str, uploaded: bool) -> None:
        """Record that a file was evaluated and notify the callback.

        The callback runs on the worker thread with the tracker lock held,
        so callbacks observe monotonic counters and must return quickly.
        An exception raised by the callback is logged and does not affect
        the file's outcome.
        """
        with self._lock:
            self._progress.processed += 1
            if uploaded:
                self._progress.uploaded += 1
            self._progress.current_path = path
            if self.callback is None:
                return
            snapshot = SyncProgress(**asdict(self._progress))
            try:
                self.callback(snapshot)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def snapshot(self) -> SyncProgress:
        with self._lock:
            return SyncProgress(**asdict(self._progress))


@dataclass
class SyncResult:
    """Outcome of a completed sync pass."""

    total: int = 0
    processed: int = 0
    uploaded: int = 0
    deleted: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def indexed(self) -> int:
        """Alias of ``uploaded``."""
        return self.uploaded

    @property
    def changed(self) -> bool:
        """Whether the pass modified the remote store."""
        return self.uploaded > 0 or self.deleted > 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["indexed"] = self.indexed
        return data
