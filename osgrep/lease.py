"""Lease file recording which process watches a sync root.

The lease lives at ``<root>/.osgrep/watch.json`` and is created atomically,
so two watchers can never both believe they own a root. A lease whose
process is gone, or whose content cannot be parsed, is stale: it is
replaced on acquire and means "nothing to stop" on stop.
"""

import errno
import json
import logging
import os
import signal
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .exceptions import LeaseHeldError
from .utils import META_DIR_NAME

logger = logging.getLogger(__name__)

LEASE_FILE_NAME = "watch.json"


@dataclass
class Lease:
    """Owner of a sync root."""

    pid: int
    """Process identifier of the watcher"""

    created_at: str
    """ISO timestamp of when the lease was taken"""

    def to_dict(self) -> dict:
        return {"pid": self.pid, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, data: dict) -> "Lease":
        pid = data["pid"]
        if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
            raise ValueError(f"Invalid pid in lease: {pid!r}")
        return cls(pid=pid, created_at=str(data.get("created_at", "")))


def lease_path(root: Path) -> Path:
    """Location of the lease file for a sync root."""
    return root / META_DIR_NAME / LEASE_FILE_NAME


def is_process_alive(pid: int) -> bool:
    """Check whether a process with this pid exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    except OSError:
        return False
    return True


def read_lease(root: Path) -> Optional[Lease]:
    """Read the lease of a sync root.

    Returns:
        The lease, or None if it is absent or unparseable
    """
    path = lease_path(root)
    try:
        with open(path, encoding="utf-8") as f:
            return Lease.from_dict(json.load(f))
    except FileNotFoundError:
        return None
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.debug(f"Unreadable lease {path}: {e}")
        return None


def acquire_lease(root: Path, pid: Optional[int] = None) -> Lease:
    """Take the lease of a sync root for a process.

    Args:
        root: Sync root
        pid: Owner process id (defaults to the current process)

    Returns:
        The new lease

    Raises:
        LeaseHeldError: If a live process already holds the lease
    """
    if pid is None:
        pid = os.getpid()
    path = lease_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    lease = Lease(pid=pid, created_at=datetime.now(timezone.utc).isoformat())

    for _attempt in range(2):
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except OSError as e:
            if e.errno != errno.EEXIST:
                raise
            current = read_lease(root)
            if current is not None and current.pid != pid and is_process_alive(
                current.pid
            ):
                raise LeaseHeldError(
                    f"{root} is already watched by process {current.pid}",
                    pid=current.pid,
                ) from e
            logger.debug(f"Replacing stale lease {path}")
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            continue

        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(lease.to_dict(), f)
        return lease

    # Another process recreated the file between our unlink and create
    current = read_lease(root)
    raise LeaseHeldError(
        f"{root} is already watched by another process",
        pid=current.pid if current else 0,
    )


def release_lease(root: Path, pid: Optional[int] = None) -> bool:
    """Remove the lease if it is still owned by pid.

    Returns:
        True if the lease file was removed
    """
    if pid is None:
        pid = os.getpid()
    current = read_lease(root)
    if current is None or current.pid != pid:
        return False
    try:
        lease_path(root).unlink()
    except FileNotFoundError:
        return False
    return True


def stop_lease_owner(root: Path) -> bool:
    """Terminate the watcher recorded in the lease and remove the lease.

    Absent, stale and unparseable leases are not errors.

    Returns:
        True if a running watcher was signalled
    """
    path = lease_path(root)
    current = read_lease(root)
    signalled = False

    if current is not None and current.pid != os.getpid():
        try:
            os.kill(current.pid, signal.SIGTERM)
            signalled = True
            logger.debug(f"Sent SIGTERM to watcher {current.pid}")
        except ProcessLookupError:
            logger.debug(f"Watcher {current.pid} already gone")
        except PermissionError as e:
            logger.warning(f"Cannot stop watcher {current.pid}: {e}")

    try:
        path.unlink()
    except FileNotFoundError:
        pass
    return signalled
