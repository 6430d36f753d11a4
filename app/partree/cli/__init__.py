"""CLI package for partree.

This package contains the Typer application and all subcommands.
"""

from partree.cli.main import app

__all__ = ["app"]
