"""Verification and repair commands."""

import threading
from pathlib import Path

import typer

from partree.cli.display import print_files, print_operation_result
from partree.cli.session import (
    PathArgument,
    RootOption,
    Session,
    exit_for,
    run_cancellable,
)
from partree.tree.directory import DirectoryNode, DirectoryTree
from partree.tree.models import OperationOutcome, OperationResult
from partree.tree.orchestrator import TreeOrchestrator
from partree.utils.formatting import console

app = typer.Typer(
    help="Verify and repair protected directories.",
    no_args_is_help=True,
)


def _checked_bases(tree: DirectoryTree, node: DirectoryNode) -> list[DirectoryNode]:
    """Base directories at, below or covering node whose files were checked."""
    scope = tree.base_dir(node) or node
    return [n for n in [scope, *tree.nodes_below(scope)] if n.selected and n.files_loaded]


def _report_damage(tree: DirectoryTree, node: DirectoryNode) -> bool:
    """List missing and corrupt files and hint at repair.

    Returns:
        True if any checked file is missing or damaged.
    """
    bases = _checked_bases(tree, node)
    damaged = [f for base in bases for f in tree.all_files(base) if f.is_incomplete]
    if not damaged:
        return False
    print_files(damaged, title="Damaged Files", relative_to=tree.root.path)
    console.print("[error]Some files are missing or damaged.[/] Run 'partree check repair'.")
    return True


@app.command()
def verify(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """Check protected files against their recovery files.

    Verifying a directory inside a protected directory verifies the whole
    protected directory. Exits with 1 if any file is missing or damaged.
    """
    session = Session.start(ctx, root)

    def operation(
        cancel: threading.Event,
    ) -> tuple[TreeOrchestrator, DirectoryNode, OperationResult]:
        orchestrator = session.open(cancel)
        node = session.resolve(orchestrator, path)
        return orchestrator, node, orchestrator.verify(node, cancel)

    orchestrator, node, result = run_cancellable(operation)
    session.finish()

    damaged = False
    if result.outcome != OperationOutcome.CANCELLED:
        damaged = _report_damage(orchestrator.tree, node)
    print_operation_result(result, "Verified")
    exit_for(result)
    if damaged:
        raise typer.Exit(code=1)


@app.command()
def repair(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """Repair missing and damaged files from their recovery files."""
    session = Session.start(ctx, root)

    def operation(cancel: threading.Event) -> OperationResult:
        orchestrator = session.open(cancel)
        node = session.resolve(orchestrator, path)
        return orchestrator.repair(node, cancel)

    result = run_cancellable(operation)
    session.finish()
    print_operation_result(result, "Repaired")
    exit_for(result)
