"""Tree inspection commands.

Shows the directory tree with selection and verification states, file
status summaries, and files not yet covered by recovery files.
"""

from pathlib import Path
from typing import Annotated

import typer

from partree.cli.display import build_tree, print_files
from partree.cli.session import PathArgument, RootOption, Session, run_cancellable
from partree.tree.directory import DirectoryNode
from partree.tree.orchestrator import TreeOrchestrator
from partree.utils.formatting import console, print_success, print_warning

app = typer.Typer(
    help="Inspect the protected directory tree.",
    no_args_is_help=True,
)


def _open_at(
    ctx: typer.Context, root: Path, path: Path | None
) -> tuple[Session, TreeOrchestrator, DirectoryNode]:
    """Open the tree without requiring the engine and find PATH."""
    session = Session.start(ctx, root, require_engine=False, show_progress=False)
    if not session.engine.is_available():
        print_warning(
            f"Recovery engine not found: {session.config.engine_command}. "
            "File statuses inside protected directories are unavailable."
        )
    orchestrator = run_cancellable(session.open)
    return session, orchestrator, session.resolve(orchestrator, path)


@app.command()
def show(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
    depth: Annotated[
        int,
        typer.Option("--depth", "-d", min=0, help="Levels of subdirectories to show."),
    ] = 1,
    files: Annotated[
        bool,
        typer.Option("--files", "-f", help="Also list files with their status."),
    ] = False,
) -> None:
    """Show directories with their protection and verification state.

    [x] marks a protected directory, [-] a directory with protected
    subdirectories.
    """
    _, orchestrator, node = _open_at(ctx, root, path)
    console.print(build_tree(orchestrator.tree, node, depth=depth, show_files=files))


@app.command()
def status(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """Summarize the file statuses of a directory."""
    _, orchestrator, node = _open_at(ctx, root, path)
    tree = orchestrator.tree

    console.print(f"[header]{node.path}[/]")
    console.print(f"[muted]Selection:[/] {tree.selection_state(node).value}")
    console.print(f"[muted]Verification:[/] {tree.verification_state(node).value}")
    base = tree.base_dir(node)
    if base is not None and base is not node:
        console.print(f"[muted]Protected by:[/] {base.path}")
    console.print()
    console.print(tree.status_summary(node))


@app.command("new-files")
def new_files(
    ctx: typer.Context,
    path: PathArgument = None,
    root: RootOption = Path("."),
) -> None:
    """List files inside protected directories that no recovery file covers."""
    _, orchestrator, node = _open_at(ctx, root, path)
    found = orchestrator.tree.new_files(node)

    if not found:
        print_success("No files found outside existing recovery files.")
        return

    console.print(f"Found {len(found)} files not included in existing recovery files.")
    print_files(found, title="New Files", relative_to=orchestrator.tree.root.path)
