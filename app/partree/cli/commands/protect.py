"""Protection commands.

Selects and deselects base directories, creates their recovery files and
deletes recovery files that are no longer used.
"""

import threading
from pathlib import Path
from typing import Annotated

import typer

from partree.cli.display import print_operation_result
from partree.cli.session import (
    PathArgument,
    RootOption,
    Session,
    exit_for,
    run_cancellable,
)
from partree.tree.directory import SelectionError
from partree.tree.models import OperationResult
from partree.utils.formatting import print_error, print_info

app = typer.Typer(
    help="Protect directories with recovery files.",
    no_args_is_help=True,
)


@app.command()
def select(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """Protect a directory: select it and create its recovery files.

    Protected directories below it are absorbed into the new scope. If
    creating the recovery files fails or is cancelled, nothing changes.
    """
    session = Session.start(ctx, root)

    def operation(cancel: threading.Event) -> OperationResult:
        orchestrator = session.open(cancel)
        node = session.resolve(orchestrator, path)
        try:
            return orchestrator.protect(node, cancel)
        except SelectionError as e:
            session.finish()
            print_error(str(e))
            raise typer.Exit(code=1) from e

    result = run_cancellable(operation)
    session.finish()
    print_operation_result(result, "Protected")
    exit_for(result)


@app.command()
def deselect(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """Stop protecting a directory and delete its recovery files."""
    session = Session.start(ctx, root, require_engine=False)

    def operation(cancel: threading.Event) -> OperationResult:
        orchestrator = session.open(cancel)
        node = session.resolve(orchestrator, path)
        if not node.selected:
            print_info(f"{node.path} is not a protected directory.")
        return orchestrator.unprotect(node)

    result = run_cancellable(operation)
    session.finish()
    print_operation_result(result, "Deleted recovery files of")
    exit_for(result)


@app.command()
def create(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
    recreate: Annotated[
        bool,
        typer.Option("--recreate", help="Also replace recovery files that already exist."),
    ] = False,
) -> None:
    """Create missing recovery files for protected directories.

    With --recreate, existing recovery files are rebuilt from the current
    contents. A cancelled run keeps the recovery files it completed.
    """
    session = Session.start(ctx, root)

    def operation(cancel: threading.Event) -> OperationResult:
        orchestrator = session.open(cancel)
        node = session.resolve(orchestrator, path)
        return orchestrator.create(node, recreate_existing=recreate, cancel=cancel)

    result = run_cancellable(operation)
    session.finish()
    print_operation_result(result, "Created recovery files for")
    exit_for(result)


@app.command()
def clean(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """Delete recovery files of directories that are no longer protected."""
    session = Session.start(ctx, root, require_engine=False)

    def operation(cancel: threading.Event) -> OperationResult:
        orchestrator = session.open(cancel)
        return orchestrator.clean(session.resolve(orchestrator, path))

    result = run_cancellable(operation)
    session.finish()
    print_operation_result(result, "Deleted unused recovery files of")
    exit_for(result)
