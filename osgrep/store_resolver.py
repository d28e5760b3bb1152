"""Automatic store naming for a directory.

The store id is derived from the git remote when there is one, so every
clone of a repository shares a store, and from the directory name plus a
path hash otherwise.
"""

import hashlib
import logging
import re
import subprocess
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class GitMetadataAccessor(Protocol):
    def repository_root(self, path: Path) -> Optional[Path]: ...

    def remote_url(self, root: Path) -> Optional[str]: ...


class GitMetadata:
    """Reads repository information by running the git executable."""

    def __init__(self, git: str = "git", timeout: float = 5.0):
        self.git = git
        self.timeout = timeout

    def _run(self, cwd: Path, *args: str) -> Optional[str]:
        try:
            completed = subprocess.run(
                [self.git, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"git {' '.join(args)} failed: {e}")
            return None
        if completed.returncode != 0:
            return None
        return completed.stdout.strip() or None

    def repository_root(self, path: Path) -> Optional[Path]:
        root = self._run(path, "rev-parse", "--show-toplevel")
        return Path(root) if root else None

    def remote_url(self, root: Path) -> Optional[str]:
        remote = self._run(root, "remote", "get-url", "origin")
        if remote:
            return remote
        # Repositories without "origin": take the first remote
        remotes = self._run(root, "remote")
        if not remotes:
            return None
        return self._run(root, "remote", "get-url", remotes.splitlines()[0])


def extract_repo_info_from_url(url: str) -> str:
    """Extract "owner-repo" from a git remote URL.

    Examples:
        >>> extract_repo_info_from_url("https://github.com/owner/repo.git")
        'owner-repo'
        >>> extract_repo_info_from_url("git@github.com:owner/repo.git")
        'owner-repo'
        >>> extract_repo_info_from_url("ssh://git@server/project/repo")
        'project-repo'
    """
    clean_url = re.sub(r"\.git$", "", url.strip())
    parts = [p for p in re.split(r"[/:]", clean_url) if p]

    if len(parts) >= 2:
        return f"{parts[-2]}-{parts[-1]}".lower()
    if parts:
        return parts[-1].lower()
    return "unknown-repo"


def sanitize_store_name(name: str) -> str:
    """Replace everything but letters, digits and hyphens, and lower-case.

    Examples:
        >>> sanitize_store_name("My_Repo.v2")
        'my-repo-v2'
    """
    return re.sub(r"[^a-z0-9-]", "-", name, flags=re.IGNORECASE).lower()


def get_auto_store_id(
    target_dir: Path, git: Optional[GitMetadataAccessor] = None
) -> str:
    """Determine the store id for a directory.

    Args:
        target_dir: Directory to resolve
        git: Git metadata accessor (runs the git executable by default)

    Returns:
        Store id such as "facebook-react" or "utils-7f8a2b3c"
    """
    if git is None:
        git = GitMetadata()
    absolute_path = target_dir.resolve()

    try:
        root = git.repository_root(absolute_path)
        if root is not None:
            remote = git.remote_url(root)
            if remote:
                return sanitize_store_name(extract_repo_info_from_url(remote))
    except Exception as e:
        # Any git problem falls through to path-based naming
        logger.debug(f"Git lookup failed for {absolute_path}: {e}")

    path_hash = hashlib.sha256(str(absolute_path).encode("utf-8")).hexdigest()[:8]
    return sanitize_store_name(f"{absolute_path.name}-{path_hash}")
