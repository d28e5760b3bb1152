"""Directory scanning for sync operations."""

import logging
import os
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .ignore import IgnoreFileManager

logger = logging.getLogger(__name__)


def external_id_for(file_path: Path, base_path: Path) -> str:
    """Derive the external identifier of a file.

    The identifier is the path relative to the sync root with forward
    slashes, so it is stable across runs and platforms and unique within
    one root.

    Args:
        file_path: Absolute path to the file
        base_path: Sync root

    Returns:
        External identifier (e.g. "src/index.ts")

    Raises:
        ValueError: If file_path is not below base_path
    """
    return file_path.relative_to(base_path).as_posix()


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @property
    def external_id(self) -> str:
        """Identifier of the remote document for this file."""
        return self.relative_path

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance

        Raises:
            OSError: If the file cannot be stat'ed
        """
        st = file_path.stat()
        return cls(
            path=file_path,
            relative_path=external_id_for(file_path, base_path),
            size=st.st_size,
            mtime=st.st_mtime,
        )

    def read(self) -> bytes:
        """Read the file content."""
        return self.path.read_bytes()


class DirectoryScanner:
    """Walks a directory tree and yields the files to sync.

    Every call to :meth:`scan_local` starts a fresh walk with freshly loaded
    ignore rules. Ignored directories are pruned without being read, and
    anything that is not a regular file (sockets, devices, dangling or
    directory symlinks) is skipped.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> for local_file in scanner.scan_local(Path("/project")):
        ...     print(local_file.relative_path)
    """

    def __init__(self, ignore_manager: Optional[IgnoreFileManager] = None):
        """Initialize directory scanner.

        Args:
            ignore_manager: Rules to apply. A new manager for the scanned root
                is created for each scan when omitted.
        """
        self.ignore_manager = ignore_manager

    def scan_local(self, directory: Path) -> Iterator[LocalFile]:
        """Lazily scan a local directory.

        Args:
            directory: Sync root

        Yields:
            LocalFile for every regular, non-ignored file, in sorted
            depth-first order
        """
        manager = self.ignore_manager
        if manager is None or manager.base_path != directory:
            manager = IgnoreFileManager(directory)
        yield from self._scan_dir(directory, directory, manager)

    def _scan_dir(
        self, directory: Path, base_path: Path, manager: IgnoreFileManager
    ) -> Iterator[LocalFile]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            # Skip directories we can't read
            logger.warning(f"Cannot read directory {directory}: {e}")
            return

        for entry in entries:
            item = Path(entry.path)
            relative_path = item.relative_to(base_path).as_posix()
            try:
                # Symlinks are not followed, a link to a directory could loop
                is_dir = entry.is_dir(follow_symlinks=False)
                mode = entry.stat().st_mode if not is_dir else 0
            except OSError as e:
                logger.debug(f"Skipping {relative_path}: {e}")
                continue

            if manager.is_ignored(relative_path, is_dir=is_dir, check_parents=False):
                logger.debug(f"Ignoring (from rules): {relative_path}")
                continue

            if is_dir:
                yield from self._scan_dir(item, base_path, manager)
            elif stat.S_ISREG(mode):
                try:
                    yield LocalFile.from_path(item, base_path)
                except OSError as e:
                    # Removed or unreadable since it was listed
                    logger.debug(f"Skipping {relative_path}: {e}")
            else:
                logger.debug(f"Skipping non-regular file: {relative_path}")
