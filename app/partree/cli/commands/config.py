"""Settings commands.

Shows and changes the persisted redundancy percentage and the location
of the par2j executable.
"""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.table import Table

from partree.cli.session import load_settings
from partree.core.config import (
    MAX_REDUNDANCY_PERCENT,
    MIN_REDUNDANCY_PERCENT,
    ConfigError,
    PartreeConfig,
    save_config,
)
from partree.core.paths import ensure_config_dir, get_config_path
from partree.tree.orchestrator import get_engine
from partree.utils.formatting import console, print_error, print_success

app = typer.Typer(
    help="Show and change partree settings.",
    no_args_is_help=True,
)


def _update(config: PartreeConfig, **changes: object) -> PartreeConfig:
    """Apply changes with validation and save the result.

    Raises:
        typer.Exit: If the new values are invalid or can't be saved.
    """
    try:
        updated = PartreeConfig.model_validate({**config.model_dump(), **changes})
    except ValidationError as e:
        message = "; ".join(err["msg"] for err in e.errors())
        print_error(f"Invalid setting: {message}")
        raise typer.Exit(code=1) from e

    try:
        ensure_config_dir()
        save_config(updated)
    except (ConfigError, RuntimeError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    return updated


@app.command()
def show() -> None:
    """Show the current settings."""
    config = load_settings()
    engine = get_engine(config)

    table = Table(
        title="Settings",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Setting", style="muted")
    table.add_column("Value", style="text")

    table.add_row("Settings file", str(get_config_path()))
    table.add_row("Redundancy", f"{config.redundancy_percent:g}%")
    availability = "[success]found[/]" if engine.is_available() else "[error]not found[/]"
    table.add_row("Engine", f"{config.engine_command} ({availability})")
    console.print(table)


@app.command("set-redundancy")
def set_redundancy(
    percent: Annotated[
        float,
        typer.Argument(
            help=(
                f"Recovery data size as a percentage of the protected data "
                f"({MIN_REDUNDANCY_PERCENT:g}-{MAX_REDUNDANCY_PERCENT:g})."
            ),
        ),
    ],
) -> None:
    """Set the redundancy used for new recovery files.

    Values are rounded to three significant figures.
    """
    updated = _update(load_settings(), redundancy_percent=percent)
    print_success(f"Redundancy set to {updated.redundancy_percent:g}%.")


@app.command("set-engine")
def set_engine(
    path: Annotated[
        Path | None,
        typer.Argument(help="Path to the par2j executable. Omit to look it up on PATH."),
    ] = None,
) -> None:
    """Set the par2j executable to use."""
    updated = _update(load_settings(), engine_path=path)
    print_success(f"Engine set to {updated.engine_command}.")
