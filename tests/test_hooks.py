"""Tests for the session hook handlers."""

import io
import json
from unittest.mock import Mock, patch

from osgrep.hooks import (
    START_CONTEXT,
    START_FAILED_CONTEXT,
    STOP_CONTEXT,
    handle_session_end,
    handle_session_start,
    read_payload,
    spawn_watcher,
)
from osgrep.lease import lease_path


class TestReadPayload:
    def test_json_object(self):
        assert read_payload(io.StringIO('{"cwd": "/repo"}')) == {"cwd": "/repo"}

    def test_empty_input(self):
        assert read_payload(io.StringIO("")) == {}

    def test_invalid_json(self):
        assert read_payload(io.StringIO("{oops")) == {}

    def test_non_object(self):
        assert read_payload(io.StringIO("[1, 2]")) == {}


class TestSessionStart:
    """Tests for the start hook."""

    def test_spawns_watcher_in_cwd(self, temp_dir):
        spawn = Mock()

        response = handle_session_start({"cwd": str(temp_dir)}, spawn=spawn)

        spawn.assert_called_once_with(temp_dir)
        assert response == {
            "hookSpecificOutput": {
                "hookEventName": "SessionStart",
                "additionalContext": START_CONTEXT,
            }
        }

    def test_spawn_failure_reported(self, temp_dir):
        spawn = Mock(side_effect=OSError("no such executable"))

        response = handle_session_start({"cwd": str(temp_dir)}, spawn=spawn)

        assert response["hookSpecificOutput"]["additionalContext"] == (
            START_FAILED_CONTEXT
        )

    def test_spawn_watcher_detaches(self, temp_dir):
        with patch("osgrep.hooks.subprocess.Popen") as mock_popen:
            spawn_watcher(temp_dir)

        args, kwargs = mock_popen.call_args
        assert args[0][-3:] == ["-m", "osgrep", "watch"]
        assert kwargs["cwd"] == temp_dir
        assert kwargs["start_new_session"] is True
        assert (temp_dir / ".osgrep" / "watch.log").exists()


class TestSessionEnd:
    """Tests for the stop hook."""

    def test_stops_recorded_watcher(self, temp_dir):
        path = lease_path(temp_dir)
        path.parent.mkdir()
        path.write_text(json.dumps({"pid": 4242, "created_at": "t"}))

        with patch("osgrep.lease.os.kill") as mock_kill:
            response = handle_session_end({"cwd": str(temp_dir)})

        assert mock_kill.call_args[0][0] == 4242
        assert not path.exists()
        assert response["hookSpecificOutput"] == {
            "hookEventName": "SessionEnd",
            "additionalContext": STOP_CONTEXT,
        }

    def test_nothing_to_stop(self, temp_dir):
        response = handle_session_end({"cwd": str(temp_dir)})

        assert response["hookSpecificOutput"]["hookEventName"] == "SessionEnd"
