"""Tests for the CLI output formatter."""

import json

from osgrep.output import OutputFormatter


class TestOutputFormatter:
    """Tests for OutputFormatter modes."""

    def test_text_mode(self, capsys):
        out = OutputFormatter()
        out.info("syncing")
        out.success("done")
        out.error("broken")

        captured = capsys.readouterr()
        assert "syncing" in captured.out
        assert "done" in captured.out
        assert "broken" in captured.err
        assert "broken" not in captured.out

    def test_quiet_mode_keeps_errors(self, capsys):
        out = OutputFormatter(quiet=True)
        out.info("syncing")
        out.warning("careful")
        out.error("broken")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "careful" not in captured.err
        assert "broken" in captured.err

    def test_json_mode(self, capsys):
        out = OutputFormatter(json_output=True)
        assert not out.interactive

        out.info("syncing")
        out.output_json({"store": "s", "uploaded": 2})

        assert json.loads(capsys.readouterr().out) == {"store": "s", "uploaded": 2}
