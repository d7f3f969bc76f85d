"""Shared UI components for the datastore-mcp CLI."""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from datastore_mcp.models import ConnectionDescriptor

theme = Theme(
    {
        "info": "dim cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "tip": "blue",
        "heading": "bold cyan",
    }
)

console = Console(theme=theme)
# stdout is the JSON-RPC channel while serving; everything human goes to stderr
error_console = Console(theme=theme, stderr=True)


def print_error(title: str, message: str, tip: str | None = None) -> None:
    """Print a styled error message with an optional actionable tip."""
    content = Text()
    content.append(f"{message}\n", style="white")

    if tip:
        content.append("\nTip: ", style="bold blue")
        content.append(tip, style="blue")

    error_console.print(
        Panel(
            content,
            title=f"[bold red]Error: {title}[/bold red]",
            border_style="red",
            padding=(1, 1),
        )
    )


def connections_table(descriptors: Iterable[ConnectionDescriptor]) -> Table:
    """Render loaded connections as a table."""
    table = Table(title="Connections", header_style="heading")
    table.add_column("Id", style="bold white")
    table.add_column("Type", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Disallowed tools", style="yellow")

    for descriptor in descriptors:
        table.add_row(
            descriptor.id,
            descriptor.type,
            descriptor.source or "",
            ", ".join(sorted(descriptor.disallowed_tools)) or "-",
        )
    return table


def print_startup(config_path: object, connection_count: int, folders: Iterable[object]) -> None:
    """Print the server startup panel to stderr."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold white", justify="right")
    table.add_column("Value", style="cyan")
    table.add_row("Config", str(config_path))
    table.add_row("Workspace", ", ".join(str(folder) for folder in folders) or "-")
    table.add_row("Connections", str(connection_count))

    error_console.print(
        Panel(
            table,
            title="[bold]Data Store MCP Ready[/bold]",
            subtitle="[dim]JSON-RPC over stdio[/dim]",
            border_style="dim white",
            padding=(1, 1),
        )
    )
