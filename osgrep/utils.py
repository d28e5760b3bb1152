"""Utility functions and constants for osgrep."""

import hashlib

# =============================================================================
# Names on disk
# =============================================================================

# Directory holding the watcher lease and other tool state
META_DIR_NAME: str = ".osgrep"

# Tool-specific ignore file, same syntax as .gitignore
IGNORE_FILE_NAME: str = ".osgrepignore"

GIT_IGNORE_FILE_NAME: str = ".gitignore"

# =============================================================================
# Sync defaults
# =============================================================================

# Pending per-file operations allowed per worker before the walk blocks
IN_FLIGHT_PER_WORKER: int = 2

STORE_DESCRIPTION: str = "osgrep store - semantic search over a local directory"

# =============================================================================
# Hashing
# =============================================================================


def compute_hash(content: bytes) -> str:
    """Compute the content fingerprint stored with each document.

    Args:
        content: File content

    Returns:
        Hex-encoded SHA-256 digest

    Examples:
        >>> compute_hash(b"")[:12]
        'e3b0c44298fc'
    """
    return hashlib.sha256(content).hexdigest()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
