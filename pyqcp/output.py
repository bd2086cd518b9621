"""Console output formatting for the CLI."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormatter:
    """Writes human readable or JSON output.

    Messages go to stderr so that ``--json`` output on stdout stays
    machine readable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit JSON documents instead of formatted text
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(stderr=True, highlight=False, soft_wrap=True)
        self.stdout = Console(highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]{escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def output_json(self, data: Any) -> None:
        sys.stdout.write(json.dumps(data, indent=2, default=str))
        sys.stdout.write("\n")

    def output_table(
        self,
        columns: list[str],
        rows: list[list[Any]],
        title: Optional[str] = None,
    ) -> None:
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("" if v is None else str(v) for v in row))
        self.stdout.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self.quiet:
            return
        table = Table(title=title, show_header=False, box=None)
        table.add_column(style="bold")
        table.add_column()
        for label, value in items:
            table.add_row(label, str(value))
        self.console.print(table)

    def print_diff(self, diff_lines: list[str]) -> None:
        if not diff_lines:
            return
        text = "".join(
            line if line.endswith("\n") else line + "\n" for line in diff_lines
        )
        self.stdout.print(Syntax(text, "diff", theme="ansi_dark"))
