"""Formatting utilities for CLI output using Rich."""

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()
# Diagnostics go here when stdout carries a JSON body
err_console = Console(stderr=True)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: str | None = None,
) -> None:
    """Print a Rich table with headers and rows."""
    table = Table(title=title)

    for header in headers:
        table.add_column(header)

    for row in rows:
        table.add_row(*row)

    console.print(table)


def print_stats(stats: dict[str, Any], title: str = "Statistics", stderr: bool = False) -> None:
    """Print statistics in a panel.

    Args:
        stats: Dictionary of stat names to values.
        title: Title for the panel.
        stderr: Print to stderr instead of stdout.
    """
    lines = [f"[bold]{key}:[/bold] {value}" for key, value in stats.items()]
    target = err_console if stderr else console
    target.print(Panel("\n".join(lines), title=title))


def print_error(msg: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {msg}")


def print_success(msg: str) -> None:
    console.print(f"[bold green]Success:[/bold green] {msg}")


def print_warning(msg: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")


def truncate(text: str, max_len: int = 50) -> str:
    """Truncate text to a maximum length with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
