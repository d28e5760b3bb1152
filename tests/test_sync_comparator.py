"""Tests for the FileComparator class."""

from pathlib import Path

from osgrep.store import RemoteDocument
from osgrep.sync.comparator import FileComparator, SyncAction
from osgrep.sync.scanner import LocalFile


def _create_local_file(relative_path: str = "test.txt", size: int = 100) -> LocalFile:
    """Create a LocalFile for testing."""
    return LocalFile(
        path=Path(f"/local/{relative_path}"),
        relative_path=relative_path,
        size=size,
        mtime=1234567890.0,
    )


def _create_remote(relative_path: str = "test.txt", hash_value=None) -> RemoteDocument:
    metadata = {"hash": hash_value} if hash_value is not None else {}
    return RemoteDocument(external_id=relative_path, metadata=metadata)


class TestCompare:
    """Tests for comparing a local file with its remote document."""

    def test_new_local_file_uploads(self):
        decision = FileComparator().compare(_create_local_file(), "abc", None)

        assert decision.action == SyncAction.UPLOAD
        assert decision.reason == "New local file"

    def test_unchanged_content_skips(self):
        decision = FileComparator().compare(
            _create_local_file(), "abc", _create_remote(hash_value="abc")
        )

        assert decision.action == SyncAction.SKIP
        assert decision.reason == "Content unchanged"

    def test_changed_content_uploads(self):
        decision = FileComparator().compare(
            _create_local_file(), "new", _create_remote(hash_value="old")
        )

        assert decision.action == SyncAction.UPLOAD
        assert decision.reason == "Content changed"

    def test_missing_remote_hash_uploads(self):
        decision = FileComparator().compare(
            _create_local_file(), "abc", _create_remote()
        )

        assert decision.action == SyncAction.UPLOAD
        assert decision.reason == "Remote hash unavailable"

    def test_force_uploads_unchanged(self):
        decision = FileComparator(force=True).compare(
            _create_local_file(), "abc", _create_remote(hash_value="abc")
        )

        assert decision.action == SyncAction.UPLOAD
        assert decision.reason == "Forced reindex"


class TestCheckSize:
    """Tests for size-based validation."""

    def test_empty_file_skipped(self):
        decision = FileComparator().check_size(_create_local_file(size=0))

        assert decision is not None
        assert decision.action == SyncAction.SKIP
        assert decision.reason == "Empty file"

    def test_oversized_file_skipped(self):
        comparator = FileComparator(max_file_size=50)

        decision = comparator.check_size(_create_local_file(size=100))

        assert decision is not None
        assert decision.action == SyncAction.SKIP
        assert "too large" in decision.reason

    def test_acceptable_file(self):
        comparator = FileComparator(max_file_size=1000)

        assert comparator.check_size(_create_local_file(size=100)) is None


class TestFindStale:
    """Tests for finding remote documents without a local file."""

    def test_remote_only_documents_deleted(self):
        remote = {
            "old/file.ts": _create_remote("old/file.ts"),
            "kept.ts": _create_remote("kept.ts"),
        }

        decisions = FileComparator().find_stale(remote, ["kept.ts", "new.ts"])

        assert [d.relative_path for d in decisions] == ["old/file.ts"]
        assert decisions[0].action == SyncAction.DELETE_REMOTE
        assert decisions[0].reason == "File deleted locally"

    def test_nothing_stale(self):
        remote = {"a.ts": _create_remote("a.ts")}

        assert FileComparator().find_stale(remote, {"a.ts"}) == []
