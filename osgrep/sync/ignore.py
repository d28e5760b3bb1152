"""Gitignore-style ignore rules for sync operations.

Rules come from ``.gitignore`` and ``.osgrepignore`` files found in the
sync root and any of its subdirectories, plus ``.git/info/exclude`` at the
root. Each file applies to its own directory and everything below it.
Rules are evaluated from the root downwards and the last matching rule
wins, so a deeper file can re-include what a parent excluded (``!pattern``).
Within one directory ``.osgrepignore`` is evaluated after ``.gitignore``.

A path inside an excluded directory stays excluded regardless of later
rules, as with git.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pathspec

from ..utils import GIT_IGNORE_FILE_NAME, IGNORE_FILE_NAME, META_DIR_NAME

logger = logging.getLogger(__name__)

# Ignore files per directory, in evaluation order
IGNORE_FILE_NAMES = (GIT_IGNORE_FILE_NAME, IGNORE_FILE_NAME)

# Directories that are never synced
ALWAYS_IGNORED_DIRS = frozenset({".git", META_DIR_NAME})

# Repository-wide excludes, relative to the sync root
GIT_EXCLUDE_PATH = Path(".git", "info", "exclude")


@dataclass
class IgnoreRule:
    """A single compiled ignore pattern."""

    pattern: str
    """Pattern text as written in the ignore file"""

    base: str
    """Directory the rule is relative to ("" for the sync root)"""

    include: bool
    """True if a match excludes the path, False for negated (!) rules"""

    regex: object
    """Compiled regex from pathspec"""

    def matches(self, relative_path: str, is_dir: bool) -> Optional[bool]:
        """Check the rule against a root-relative path.

        Args:
            relative_path: Path relative to the sync root (forward slashes)
            is_dir: Whether the path is a directory

        Returns:
            True/False when the rule decides the path (ignored / re-included),
            None when the rule does not apply
        """
        if self.base:
            prefix = self.base + "/"
            if not relative_path.startswith(prefix):
                return None
            relative_path = relative_path[len(prefix) :]
        candidate = relative_path + "/" if is_dir else relative_path
        if self.regex.match(candidate):  # type: ignore[attr-defined]
            return self.include
        return None


def load_ignore_file(file_path: Path, base: str = "") -> list[IgnoreRule]:
    """Load rules from an ignore file.

    Unreadable files and invalid patterns are logged and skipped; they
    never abort a sync.

    Args:
        file_path: Path of the ignore file
        base: Root-relative directory containing the file

    Returns:
        List of rules in file order
    """
    try:
        lines = file_path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read ignore file {file_path}: {e}")
        return []

    rules: list[IgnoreRule] = []
    for line_no, line in enumerate(lines, start=1):
        try:
            spec = pathspec.PathSpec.from_lines("gitwildmatch", [line])
        except ValueError as e:
            logger.warning(f"Invalid pattern at {file_path}:{line_no}: {e}")
            continue
        for compiled in spec.patterns:
            regex = getattr(compiled, "regex", None)
            if compiled.include is None or regex is None:
                # Blank line or comment
                continue
            rules.append(
                IgnoreRule(
                    pattern=line.strip(),
                    base=base,
                    include=compiled.include,
                    regex=regex,
                )
            )
    return rules


class IgnoreFileManager:
    """Loads and evaluates ignore files below a sync root.

    Ignore files are loaded lazily, one directory at a time, the first time a
    path below that directory is classified. The loaded rule set is kept
    until :meth:`reload` is called.

    Examples:
        >>> manager = IgnoreFileManager(Path("/project"))
        >>> manager.is_ignored("dist/bundle.js")
        True
    """

    def __init__(self, base_path: Path):
        """Initialize the manager.

        Args:
            base_path: Sync root all paths are relative to
        """
        self.base_path = base_path
        self._rules_by_dir: dict[str, list[IgnoreRule]] = {}
        self._global_rules: Optional[list[IgnoreRule]] = None

    def reload(self) -> None:
        """Forget every loaded rule; files are read again on next use."""
        self._rules_by_dir.clear()
        self._global_rules = None

    def _global(self) -> list[IgnoreRule]:
        rules = self._global_rules
        if rules is None:
            exclude_file = self.base_path / GIT_EXCLUDE_PATH
            rules = load_ignore_file(exclude_file) if exclude_file.is_file() else []
            self._global_rules = rules
        return rules

    def is_rule_source(self, path: Path) -> bool:
        """Whether a change to this path can change the loaded rules."""
        if path.name in IGNORE_FILE_NAMES:
            return True
        return path == self.base_path / GIT_EXCLUDE_PATH

    def load_from_directory(self, directory: str) -> list[IgnoreRule]:
        """Load the ignore files of a directory (cached).

        Args:
            directory: Root-relative directory ("" for the root)

        Returns:
            Rules defined in that directory
        """
        rules = self._rules_by_dir.get(directory)
        if rules is not None:
            return rules

        rules = []
        dir_path = self.base_path / directory if directory else self.base_path
        for name in IGNORE_FILE_NAMES:
            ignore_file = dir_path / name
            if ignore_file.is_file():
                loaded = load_ignore_file(ignore_file, base=directory)
                logger.debug(f"Loaded {len(loaded)} rule(s) from {ignore_file}")
                rules.extend(loaded)
        self._rules_by_dir[directory] = rules
        return rules

    def _match(self, relative_path: str, is_dir: bool) -> bool:
        """Evaluate the rules of the path's ancestors, last match wins."""
        parts = relative_path.split("/")
        directories = [""] + ["/".join(parts[:i]) for i in range(1, len(parts))]

        ignored = False
        for rule in self._global():
            decision = rule.matches(relative_path, is_dir)
            if decision is not None:
                ignored = decision
        for directory in directories:
            for rule in self.load_from_directory(directory):
                decision = rule.matches(relative_path, is_dir)
                if decision is not None:
                    ignored = decision
        return ignored

    def is_ignored(
        self, relative_path: str, is_dir: bool = False, check_parents: bool = True
    ) -> bool:
        """Check whether a root-relative path is excluded.

        Args:
            relative_path: Path relative to the sync root (forward slashes)
            is_dir: Whether the path is a directory
            check_parents: Also check every ancestor directory. The scanner
                passes False because it never descends into ignored ones.

        Returns:
            True if the path must not be synced
        """
        relative_path = relative_path.strip("/")
        if not relative_path or relative_path == ".":
            return False

        parts = relative_path.split("/")
        if any(part in ALWAYS_IGNORED_DIRS for part in parts[:-1]):
            return True
        if parts[-1] in ALWAYS_IGNORED_DIRS:
            return True
        if not is_dir and parts[-1] == IGNORE_FILE_NAME:
            return True

        if check_parents:
            # A path below an excluded directory cannot be re-included
            for i in range(1, len(parts)):
                if self._match("/".join(parts[:i]), is_dir=True):
                    return True
        return self._match(relative_path, is_dir)

    def is_path_ignored(self, path: Path) -> bool:
        """Classify an absolute path, looking at the filesystem for its type.

        Paths outside the sync root are reported as ignored.
        """
        try:
            relative_path = path.relative_to(self.base_path).as_posix()
        except ValueError:
            return True
        return self.is_ignored(relative_path, is_dir=path.is_dir())
