"""File comparison logic for sync operations."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..store import RemoteDocument
from ..utils import format_size
from .scanner import LocalFile


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Index local file content remotely"""

    DELETE_REMOTE = "delete_remote"
    """Delete the remote document"""

    SKIP = "skip"
    """Skip file (no action needed)"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """External identifier of the file"""

    local_file: Optional[LocalFile] = None
    """Local file (if exists)"""

    remote_document: Optional[RemoteDocument] = None
    """Remote document (if exists)"""


class FileComparator:
    """Decides whether a local file must be (re)indexed or a remote
    document deleted."""

    def __init__(self, force: bool = False, max_file_size: Optional[int] = None):
        """Initialize file comparator.

        Args:
            force: Upload every file even if the remote copy is current
            max_file_size: Files larger than this are never uploaded
        """
        self.force = force
        self.max_file_size = max_file_size

    def check_size(self, local_file: LocalFile) -> Optional[SyncDecision]:
        """Reject files that cannot be indexed, before reading them.

        Returns:
            A SKIP decision, or None if the file is acceptable
        """
        if local_file.size == 0:
            reason = "Empty file"
        elif self.max_file_size is not None and local_file.size > self.max_file_size:
            reason = (
                f"File too large ({format_size(local_file.size)} > "
                f"{format_size(self.max_file_size)})"
            )
        else:
            return None
        return SyncDecision(
            action=SyncAction.SKIP,
            reason=reason,
            relative_path=local_file.relative_path,
            local_file=local_file,
        )

    def compare(
        self,
        local_file: LocalFile,
        content_hash: str,
        remote_document: Optional[RemoteDocument],
    ) -> SyncDecision:
        """Compare a local file with its remote document.

        Args:
            local_file: Local file
            content_hash: Fingerprint of the local content
            remote_document: Remote document with the same identifier, if any

        Returns:
            SyncDecision for this file
        """
        path = local_file.relative_path

        if remote_document is None:
            return SyncDecision(
                action=SyncAction.UPLOAD,
                reason="New local file",
                relative_path=path,
                local_file=local_file,
            )

        if self.force:
            reason = "Forced reindex"
        elif remote_document.hash is None:
            reason = "Remote hash unavailable"
        elif remote_document.hash != content_hash:
            reason = "Content changed"
        else:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Content unchanged",
                relative_path=path,
                local_file=local_file,
                remote_document=remote_document,
            )

        return SyncDecision(
            action=SyncAction.UPLOAD,
            reason=reason,
            relative_path=path,
            local_file=local_file,
            remote_document=remote_document,
        )

    def find_stale(
        self,
        remote_documents: Mapping[str, RemoteDocument],
        seen_paths: Iterable[str],
    ) -> list[SyncDecision]:
        """Find remote documents without a local counterpart.

        Args:
            remote_documents: Remote documents keyed by external identifier
            seen_paths: Identifiers of every local file found by the walk

        Returns:
            DELETE_REMOTE decisions, sorted by identifier
        """
        stale = set(remote_documents) - set(seen_paths)
        return [
            SyncDecision(
                action=SyncAction.DELETE_REMOTE,
                reason="File deleted locally",
                relative_path=path,
                remote_document=remote_documents[path],
            )
            for path in sorted(stale)
        ]
