"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from partree import __version__
from partree.cli.commands import check, config, protect, tree
from partree.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="partree",
    help="Protect directory trees with PAR2 recovery files.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"partree version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route log records to stderr through Rich.

    Args:
        verbose: Log everything from DEBUG up instead of only warnings.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose, rich_tracebacks=verbose)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress engine output.",
        ),
    ] = False,
) -> None:
    """partree - Protect directory trees with PAR2 recovery files.

    Select directories to protect, then verify and repair them against
    bit rot or accidental deletion. Recovery files are kept in a hidden
    .ParTree folder at the top of the tree.
    """
    configure_logging(verbose)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


# Register commands
app.add_typer(tree.app, name="tree")
app.add_typer(protect.app, name="protect")
app.add_typer(check.app, name="check")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
