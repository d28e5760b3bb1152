"""Session hook handlers that start and stop a background watcher."""

import json
import logging
import subprocess
import sys
from pathlib import Path
from typing import IO, Any, Callable, Optional

from .lease import stop_lease_owner
from .utils import META_DIR_NAME

logger = logging.getLogger(__name__)

WATCH_LOG_NAME = "watch.log"

START_CONTEXT = (
    "osgrep is active and keeps the search index of this directory in sync "
    "with your edits."
)
START_FAILED_CONTEXT = (
    "osgrep failed to start. Fall back to standard tools if necessary."
)
STOP_CONTEXT = "osgrep session ended."


def read_payload(stream: IO[str]) -> dict[str, Any]:
    """Parse the JSON hook payload; anything unparseable is an empty payload."""
    try:
        raw = stream.read()
        data = json.loads(raw) if raw.strip() else {}
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def _hook_response(event_name: str, context: str) -> dict[str, Any]:
    return {
        "hookSpecificOutput": {
            "hookEventName": event_name,
            "additionalContext": context,
        }
    }


def spawn_watcher(cwd: Path) -> subprocess.Popen:
    """Start ``osgrep watch`` detached from the calling session.

    Output goes to ``<cwd>/.osgrep/watch.log``.
    """
    log_dir = cwd / META_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    with open(log_dir / WATCH_LOG_NAME, "a", encoding="utf-8") as log:
        return subprocess.Popen(
            [sys.executable, "-m", "osgrep", "watch"],
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=log,
            stderr=log,
            start_new_session=True,
        )


def handle_session_start(
    payload: dict[str, Any],
    spawn: Optional[Callable[[Path], Any]] = None,
) -> dict[str, Any]:
    """Start a background watcher for the session's working directory.

    Args:
        payload: Hook payload (uses "cwd")
        spawn: Function starting the watcher (spawn_watcher by default)

    Returns:
        Hook response for SessionStart
    """
    cwd = Path(payload.get("cwd") or Path.cwd())
    try:
        (spawn or spawn_watcher)(cwd)
    except OSError as e:
        logger.warning(f"Could not start watcher in {cwd}: {e}")
        return _hook_response("SessionStart", START_FAILED_CONTEXT)
    return _hook_response("SessionStart", START_CONTEXT)


def handle_session_end(payload: dict[str, Any]) -> dict[str, Any]:
    """Stop the watcher of the session's working directory, if any.

    Returns:
        Hook response for SessionEnd
    """
    cwd = Path(payload.get("cwd") or Path.cwd())
    try:
        stop_lease_owner(cwd)
    except OSError as e:
        logger.warning(f"Could not stop watcher in {cwd}: {e}")
    return _hook_response("SessionEnd", STOP_CONTEXT)
