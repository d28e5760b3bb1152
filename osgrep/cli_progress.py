"""CLI progress display for sync operations.

This module provides a Rich-based spinner that is fed by the progress
callback of the sync engine.
"""

from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.progress import (
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.progress import SyncProgress


class SyncProgressDisplay:
    """Rich-based spinner showing "Indexing files (processed/total)".

    Use as a context manager and pass :meth:`update` as the engine's
    progress callback.
    """

    def __init__(self, root: Path):
        """Initialize the progress display.

        Args:
            root: Sync root, used to shorten displayed paths
        """
        self.root = root
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def _describe(self, info: SyncProgress) -> str:
        current = ""
        if info.current_path:
            try:
                current = Path(info.current_path).relative_to(self.root).as_posix()
            except ValueError:
                current = info.current_path
        return (
            f"Indexing files ({info.processed}/{info.total}) "
            f"• uploaded {info.uploaded} [dim]{escape(current)}[/dim]"
        )

    def update(self, info: SyncProgress) -> None:
        """Progress callback for SyncEngine.sync()."""
        if self._progress is None or self._task is None:
            return
        self._progress.update(self._task, description=self._describe(info))

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            TimeElapsedColumn(),
            refresh_per_second=8,
            transient=True,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Indexing files...", total=None)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None
