"""Output formatting utilities using Rich."""

import json
from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"
    RAW = "raw"


class OutputFormatter:
    """Handles console output for CLI commands.

    Every pipeline stage prints a status line before it acts and a
    success, warning or error line afterwards.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.TABLE,
        color: bool = True,
        quiet: bool = False,
    ):
        self.format = format
        self.color = color
        self.quiet = quiet
        self._console = Console(force_terminal=color, no_color=not color, highlight=False)

    def print(self, message: str, style: str | None = None) -> None:
        """Print a message to stdout."""
        if self.quiet:
            return
        self._console.print(message, style=style)

    def print_header(self, message: str) -> None:
        if self.quiet:
            return
        self._console.print(f"\n[bold]{message}[/bold]")

    def print_status(self, message: str) -> None:
        """Print a status line announcing an action."""
        if self.quiet:
            return
        self._console.print(f"[blue]ℹ[/blue] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        error_console.print(f"[red]✗ Error:[/red] {message}")

    def print_warning(self, message: str) -> None:
        if self.quiet:
            return
        self._console.print(f"[yellow]⚠ Warning:[/yellow] {message}")

    def print_success(self, message: str) -> None:
        if self.quiet:
            return
        self._console.print(f"[green]✓[/green] {message}")

    def print_data(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None = None,
        title: str | None = None,
    ) -> None:
        """Print data in the configured format."""
        if self.format == OutputFormat.JSON:
            self._print_json(data)
        elif self.format == OutputFormat.YAML:
            self._print_yaml(data)
        elif self.format == OutputFormat.RAW:
            self._print_raw(data)
        else:
            self._print_table(data, headers, title)

    def _print_json(self, data: Any) -> None:
        json_str = json.dumps(data, indent=2, default=str)
        if self.color:
            self._console.print(Syntax(json_str, "json", theme="monokai"))
        else:
            print(json_str)

    def _print_yaml(self, data: Any) -> None:
        yaml_str = yaml.dump(data, default_flow_style=False, allow_unicode=True)
        if self.color:
            self._console.print(Syntax(yaml_str, "yaml", theme="monokai"))
        else:
            print(yaml_str)

    def _print_raw(self, data: Any) -> None:
        if isinstance(data, list):
            for item in data:
                print(item)
        elif isinstance(data, dict):
            for key, value in data.items():
                print(f"{key}: {value}")
        else:
            print(data)

    def _print_table(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None = None,
        title: str | None = None,
    ) -> None:
        if isinstance(data, dict):
            # Single record - display as key-value pairs
            table = Table(title=title, show_header=True, header_style="bold cyan")
            table.add_column("Field", style="dim")
            table.add_column("Value")
            for key, value in data.items():
                table.add_row(str(key), str(value))
            self._console.print(table)
        elif isinstance(data, list) and len(data) > 0:
            if headers is None:
                headers = list(data[0].keys())

            table = Table(title=title, show_header=True, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in data:
                table.add_row(*[str(row.get(h, "")) for h in headers])
            self._console.print(table)
        else:
            self._console.print("[dim]No data to display[/dim]")

    def print_panel(self, content: str, title: str | None = None, style: str = "blue") -> None:
        """Print content in a panel."""
        if self.quiet:
            return
        self._console.print(Panel(content, title=title, border_style=style))

    def print_checklist(self, items: list[tuple[str, bool]], title: str | None = None) -> None:
        """Print a list of completed/skipped items."""
        if self.quiet:
            return
        if title:
            self._console.print(f"[bold]{title}[/bold]")
        for label, done in items:
            icon = "[green]✓[/green]" if done else "[yellow]○[/yellow]"
            self._console.print(f"   {icon} {label}")

    def prompt(self, message: str) -> str:
        """Read one line of operator input; EOF reads as empty."""
        self._console.print(message, end=" ")
        try:
            return input().strip()
        except EOFError:
            return ""

    def confirm(self, message: str, accepted: tuple[str, ...] = ("y", "Y")) -> bool:
        """Ask for confirmation; only an exact accepted token proceeds."""
        hint = "(y/N)" if accepted == ("y", "Y") else f"Type '{accepted[0]}' to confirm:"
        return self.prompt(f"{message} {hint}") in accepted


def format_duration(seconds: float) -> str:
    """Format seconds to human-readable duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"
