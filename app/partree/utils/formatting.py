"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from partree.core.theme import get_theme

if TYPE_CHECKING:
    from partree.tree.models import FileEntry, FileStatus


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def format_status(status: FileStatus) -> str:
    """Format a file status with its theme color.

    Args:
        status: The status to format.

    Returns:
        Rich markup string for status display.
    """
    return f"[status.{status.value}]{status.label}[/]"


def create_file_table(title: str = "Files") -> Table:
    """Create a pre-configured table for displaying file entries.

    Args:
        title: Table title.

    Returns:
        Rich Table with Status and File columns.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],  # Zebra striping for readability
    )
    table.add_column("Status", width=10)
    table.add_column("File", style="text", overflow="fold")
    return table


def format_file_row(entry: FileEntry, relative_to: Path | None = None) -> tuple[str, str]:
    """Format a file entry as a table row.

    Args:
        entry: The file to format.
        relative_to: Directory to show the path relative to. If None, or
            the file is outside it, the full path is shown.

    Returns:
        Tuple of (status, path) with Rich markup.
    """
    path = entry.path
    if relative_to is not None and relative_to in path.parents:
        path = path.relative_to(relative_to)
    return (format_status(entry.status), escape(str(path)))


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
