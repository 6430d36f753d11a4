"""Shared setup for CLI commands that work on a tree.

Loads settings, builds the engine and progress sink, opens the tree and
runs operations in a worker thread so that Ctrl-C cancels them instead
of killing the process mid-write.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, TypeVar

import typer

from partree.cli.display import TerminalProgress
from partree.core.config import ConfigError, PartreeConfig, load_config_or_default
from partree.engine.base import RecoveryEngine
from partree.tree.directory import DirectoryNode
from partree.tree.models import OperationOutcome, OperationResult
from partree.tree.orchestrator import NodeNotFoundError, TreeOrchestrator, get_engine
from partree.utils.formatting import print_error, print_warning

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Exit code for an operation stopped with Ctrl-C
EXIT_CANCELLED = 130

# How often the main thread wakes up to notice Ctrl-C
_POLL_SECONDS = 0.2

RootOption = Annotated[
    Path,
    typer.Option(
        "--root",
        "-r",
        help="Working directory whose .ParTree folder holds the recovery files.",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
]

PathArgument = Annotated[
    Path | None,
    typer.Argument(help="Directory inside the root (default: the root itself)."),
]


def load_settings() -> PartreeConfig:
    """Load settings, exiting with an error message if they are broken."""
    try:
        return load_config_or_default()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def run_cancellable(operation: Callable[[threading.Event], T]) -> T:
    """Run an operation in a worker thread, turning Ctrl-C into cancellation.

    The operation receives the cancellation event and is expected to
    return promptly once it is set.

    Args:
        operation: Callable taking the cancellation event.

    Returns:
        Whatever the operation returned.
    """
    cancel = threading.Event()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="partree-op") as executor:
        future = executor.submit(operation, cancel)
        while True:
            try:
                return future.result(timeout=_POLL_SECONDS)
            except TimeoutError:
                continue
            except KeyboardInterrupt:
                if not cancel.is_set():
                    print_warning("Cancelling...")
                    cancel.set()


def exit_for(result: OperationResult) -> None:
    """Exit with a non-zero code unless the operation succeeded.

    Raises:
        typer.Exit: 130 when cancelled, 1 when failed.
    """
    if result.outcome == OperationOutcome.CANCELLED:
        raise typer.Exit(code=EXIT_CANCELLED)
    if result.outcome == OperationOutcome.FAILED:
        raise typer.Exit(code=1)


@dataclass
class Session:
    """Everything a command needs to operate on one tree.

    Attributes:
        root: Working directory.
        config: Loaded settings.
        engine: Recovery engine built from the settings.
        progress: Progress sink, None in quiet mode.
    """

    root: Path
    config: PartreeConfig
    engine: RecoveryEngine
    progress: TerminalProgress | None

    @classmethod
    def start(
        cls,
        ctx: typer.Context,
        root: Path,
        require_engine: bool = True,
        show_progress: bool = True,
    ) -> Session:
        """Create a session from the global CLI options.

        Args:
            ctx: Typer context holding the global options.
            root: Working directory.
            require_engine: Exit with an error if the engine is missing.
            show_progress: Stream engine output (ignored in quiet mode).

        Raises:
            typer.Exit: If settings are broken or the engine is required
                but not found.
        """
        options = ctx.obj or {}
        config = load_settings()
        engine = get_engine(config)

        if require_engine and not engine.is_available():
            print_error(
                f"Recovery engine not found: {config.engine_command}. "
                "Install par2j or run 'partree config set-engine PATH'."
            )
            raise typer.Exit(code=1)

        progress = TerminalProgress() if show_progress and not options.get("quiet") else None
        return cls(root=root.resolve(), config=config, engine=engine, progress=progress)

    def open(self, cancel: threading.Event | None = None) -> TreeOrchestrator:
        """Open the tree at the session root and scan it."""
        return TreeOrchestrator.open(
            self.root,
            self.engine,
            self.config.redundancy_percent,
            progress=self.progress,
            cancel=cancel,
        )

    def resolve(self, orchestrator: TreeOrchestrator, path: Path | None) -> DirectoryNode:
        """Find the node for a command's PATH argument.

        Raises:
            typer.Exit: If the path is not a directory of the tree.
        """
        target = self.root if path is None else Path(os.path.abspath(path))
        try:
            return orchestrator.node(target)
        except NodeNotFoundError as e:
            self.finish()
            print_error(str(e))
            raise typer.Exit(code=1) from e

    def finish(self) -> None:
        """Terminate any partially written progress line."""
        if self.progress is not None:
            self.progress.finish()
