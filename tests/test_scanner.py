"""Tests for the directory scanner."""

import os
import socket
import sys
from pathlib import Path

import pytest

from osgrep.sync.ignore import IgnoreFileManager
from osgrep.sync.scanner import DirectoryScanner, LocalFile, external_id_for


def write(path: Path, content: str = "content") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def relative_paths(root: Path) -> list[str]:
    return [f.relative_path for f in DirectoryScanner().scan_local(root)]


class TestExternalId:
    """Tests for identifier derivation."""

    def test_root_relative_posix_path(self, temp_dir):
        assert external_id_for(temp_dir / "src" / "a.ts", temp_dir) == "src/a.ts"

    def test_same_path_same_id(self, temp_dir):
        path = temp_dir / "old" / "file.ts"
        assert external_id_for(path, temp_dir) == external_id_for(path, temp_dir)

    def test_distinct_paths_distinct_ids(self, temp_dir):
        a = external_id_for(temp_dir / "a" / "b.ts", temp_dir)
        b = external_id_for(temp_dir / "a_b.ts", temp_dir)
        assert a != b

    def test_path_outside_root_raises(self, temp_dir):
        with pytest.raises(ValueError):
            external_id_for(Path("/elsewhere/x.ts"), temp_dir)


class TestLocalFile:
    """Tests for LocalFile."""

    def test_from_path(self, temp_dir):
        path = write(temp_dir / "dir" / "file.txt", "hello")

        local_file = LocalFile.from_path(path, temp_dir)

        assert local_file.path == path
        assert local_file.relative_path == "dir/file.txt"
        assert local_file.external_id == "dir/file.txt"
        assert local_file.size == 5
        assert local_file.read() == b"hello"


class TestDirectoryScanner:
    """Tests for DirectoryScanner.scan_local."""

    def test_empty_directory(self, temp_dir):
        assert relative_paths(temp_dir) == []

    def test_finds_nested_files_in_sorted_order(self, temp_dir):
        write(temp_dir / "b.txt")
        write(temp_dir / "a" / "z.txt")
        write(temp_dir / "a" / "deep" / "y.txt")

        assert relative_paths(temp_dir) == ["a/deep/y.txt", "a/z.txt", "b.txt"]

    def test_scan_is_lazy(self, temp_dir):
        write(temp_dir / "a.txt")

        result = DirectoryScanner().scan_local(temp_dir)

        assert not isinstance(result, list)
        assert next(result).relative_path == "a.txt"

    def test_respects_gitignore(self, temp_dir):
        write(temp_dir / ".gitignore", "dist/\n*.log\n")
        write(temp_dir / "a.ts")
        write(temp_dir / "dist" / "bundle.js")
        write(temp_dir / "debug.log")

        assert relative_paths(temp_dir) == [".gitignore", "a.ts"]

    def test_does_not_descend_into_ignored_directories(self, temp_dir):
        write(temp_dir / ".gitignore", "node_modules/\n")
        write(temp_dir / "node_modules" / "pkg" / "index.js")
        manager = IgnoreFileManager(temp_dir)
        loaded: list[str] = []
        original = manager.load_from_directory

        def tracking_load(directory):
            loaded.append(directory)
            return original(directory)

        manager.load_from_directory = tracking_load

        list(DirectoryScanner(manager).scan_local(temp_dir))

        assert "node_modules" not in loaded
        assert "node_modules/pkg" not in loaded

    def test_skips_metadata_directory_and_tool_ignore_file(self, temp_dir):
        write(temp_dir / ".osgrep" / "watch.json", "{}")
        write(temp_dir / ".osgrepignore", "tmp/\n")
        write(temp_dir / "main.py")

        assert relative_paths(temp_dir) == ["main.py"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
    def test_skips_dangling_symlink(self, temp_dir):
        write(temp_dir / "real.txt")
        os.symlink(temp_dir / "missing.txt", temp_dir / "dangling.txt")

        assert relative_paths(temp_dir) == ["real.txt"]

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
    def test_does_not_follow_directory_symlinks(self, temp_dir):
        write(temp_dir / "pkg" / "a.txt")
        os.symlink(temp_dir / "pkg", temp_dir / "loop")

        assert relative_paths(temp_dir) == ["pkg/a.txt"]

    @pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="needs unix sockets")
    def test_skips_sockets(self, temp_dir):
        write(temp_dir / "a.txt")
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.bind(str(temp_dir / "s.sock"))
            assert relative_paths(temp_dir) == ["a.txt"]
        finally:
            sock.close()

    def test_rescan_reflects_current_disk_state(self, temp_dir):
        scanner = DirectoryScanner()
        write(temp_dir / "a.txt")
        assert [f.relative_path for f in scanner.scan_local(temp_dir)] == ["a.txt"]

        write(temp_dir / "b.txt")
        (temp_dir / "a.txt").unlink()
        assert [f.relative_path for f in scanner.scan_local(temp_dir)] == ["b.txt"]

    def test_rescan_reloads_ignore_rules(self, temp_dir):
        scanner = DirectoryScanner()
        write(temp_dir / "a.txt")
        assert [f.relative_path for f in scanner.scan_local(temp_dir)] == ["a.txt"]

        write(temp_dir / ".osgrepignore", "a.txt\n")
        assert [f.relative_path for f in scanner.scan_local(temp_dir)] == []
