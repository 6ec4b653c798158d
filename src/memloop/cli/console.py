"""Shared console utilities for CLI commands."""

from datetime import UTC, datetime

from rich.console import Console
from rich.table import Table

# Shared console instance for all CLI commands
console = Console()


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{msg}[/red]")


def warning(msg: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]{msg}[/yellow]")


def success(msg: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]{msg}[/green]")


def info(msg: str) -> None:
    """Print an info message in cyan."""
    console.print(f"[cyan]{msg}[/cyan]")


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{msg}[/dim]")


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """Create a table with (name, style) columns."""
    table = Table(title=title)
    for name, style in columns:
        table.add_column(name, style=style)
    return table


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    return f"{size / 1024:.1f} KiB"


def format_relative(when: datetime | None) -> str:
    """Format a timestamp as a short relative time ("3h ago", "in 5m")."""
    if when is None:
        return "never"

    seconds = int((when - datetime.now(UTC)).total_seconds())
    future = seconds > 0
    seconds = abs(seconds)

    if seconds < 60:
        span = f"{seconds}s"
    elif seconds < 3600:
        span = f"{seconds // 60}m"
    elif seconds < 86400:
        span = f"{seconds // 3600}h {seconds % 3600 // 60}m"
    else:
        span = f"{seconds // 86400}d {seconds % 86400 // 3600}h"
    return f"in {span}" if future else f"{span} ago"
