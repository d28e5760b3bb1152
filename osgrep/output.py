"""Output formatting for the osgrep CLI."""

import json
import sys
from typing import Any

from rich.console import Console


class OutputFormatter:
    """Writes user-facing messages as styled text or JSON.

    Informational messages are suppressed in quiet mode and in JSON mode,
    errors are always written to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit results as JSON instead of text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    @property
    def interactive(self) -> bool:
        """Whether progress displays should be shown."""
        return not (self.quiet or self.json_output)

    def info(self, message: str) -> None:
        if self.interactive:
            self.console.print(message, highlight=False)

    def success(self, message: str) -> None:
        if self.interactive:
            self.console.print(f"[green]{message}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[yellow]{message}[/yellow]", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]{message}[/red]", highlight=False)

    def output_json(self, data: Any) -> None:
        """Write data as JSON to stdout, regardless of quiet mode."""
        sys.stdout.write(json.dumps(data, indent=2, default=str))
        sys.stdout.write("\n")
        sys.stdout.flush()
