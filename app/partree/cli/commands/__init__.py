"""CLI commands for partree.

This package contains all subcommand implementations.
"""

from partree.cli.commands import check, config, protect, tree

__all__ = ["check", "config", "protect", "tree"]
