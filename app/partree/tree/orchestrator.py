"""Bulk operations over a directory tree.

Provides the engine factory and the TreeOrchestrator, which drives
create/verify/repair/clean over a DirectoryTree, reports progress text to
a single sink and turns each run into an OperationResult. These are
shared between the CLI command groups.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from partree.engine.par2j import Par2jEngine
from partree.tree.directory import DirectoryNode, DirectoryTree
from partree.tree.models import OperationOutcome, OperationResult
from partree.tree.storage import RECOVERY_DIR_NAME

if TYPE_CHECKING:
    from partree.core.config import PartreeConfig
    from partree.engine.base import RecoveryEngine
    from partree.engine.models import ProgressCallback

logger = logging.getLogger(__name__)


class NodeNotFoundError(LookupError):
    """Raised when a path doesn't correspond to a directory in the tree."""


def get_engine(config: PartreeConfig) -> RecoveryEngine:
    """Create the recovery engine described by the settings.

    Args:
        config: Loaded settings.

    Returns:
        Engine instance; availability is not checked here.
    """
    return Par2jEngine(config.engine_command, skip_dirs=(RECOVERY_DIR_NAME,))


class TreeOrchestrator:
    """Runs bulk operations on one tree, one at a time.

    Args:
        tree: Tree to operate on.
        redundancy_percent: Redundancy for newly created archives.
        progress: Sink for engine output and status lines.
    """

    def __init__(
        self,
        tree: DirectoryTree,
        redundancy_percent: float,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.tree = tree
        self.redundancy_percent = redundancy_percent
        self._progress = progress

    @classmethod
    def open(
        cls,
        root: Path,
        engine: RecoveryEngine,
        redundancy_percent: float,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> TreeOrchestrator:
        """Root a tree at a working directory and run the initial scan.

        Args:
            root: Working directory.
            engine: Engine for every operation on the tree.
            redundancy_percent: Redundancy for newly created archives.
            progress: Sink for engine output and status lines.
            cancel: Optional event that stops the initial scan early.

        Returns:
            Orchestrator over the scanned tree.
        """
        orchestrator = cls(DirectoryTree(root, engine), redundancy_percent, progress)
        orchestrator._emit("Checking for recoverable files")
        bases = orchestrator.tree.check_for_verifiable_files(cancel)
        logger.info("Opened %s with %d protected directories", root, len(bases))
        return orchestrator

    def node(self, path: Path) -> DirectoryNode:
        """Find the node for a directory in the tree.

        Raises:
            NodeNotFoundError: If path is not a directory of the tree.
        """
        node = self.tree.node_for_path(path)
        if node is None:
            msg = f"Not a directory in {self.tree.root.path}: {path}"
            raise NodeNotFoundError(msg)
        return node

    def protect(
        self, node: DirectoryNode, cancel: threading.Event | None = None
    ) -> OperationResult:
        """Select a directory and create its archive.

        Base directories below it are absorbed and their archives removed.
        If creation is cancelled or fails, the selection is undone: the
        directory is deselected, its archive deleted, and the base
        directories it absorbed are selected again.
        """
        absorbed = [n for n in self.tree.nodes_below(node) if n.selected]

        self.tree.set_selected(node, True)
        result = self.create(node, cancel=cancel)

        if result.outcome == OperationOutcome.SUCCESS:
            self.tree.delete_unused_recovery_files(node)
            return result

        logger.info("Undoing selection of %s", node.path)
        self.tree.set_selected(node, False)
        for previous in absorbed:
            self.tree.set_selected(previous, True)
        self.tree.delete_unused_recovery_files(node)
        return result

    def unprotect(self, node: DirectoryNode) -> OperationResult:
        """Deselect a directory and delete the archives nothing uses anymore."""
        self.tree.set_selected(node, False)
        return self.clean(node)

    def create(
        self,
        node: DirectoryNode,
        recreate_existing: bool = False,
        cancel: threading.Event | None = None,
    ) -> OperationResult:
        """Create archives for the selected directories at or below node."""
        result = self.tree.create_recovery_files(
            node,
            self.redundancy_percent,
            recreate_existing=recreate_existing,
            progress=self._progress,
            cancel=cancel,
        )
        self._report("Created recovery files for", result)
        return result

    def verify(
        self, node: DirectoryNode, cancel: threading.Event | None = None
    ) -> OperationResult:
        """Verify the protected directories at, below or covering node."""
        result = self.tree.verify_files(node, progress=self._progress, cancel=cancel)
        self._report("Verified", result)
        return result

    def repair(
        self, node: DirectoryNode, cancel: threading.Event | None = None
    ) -> OperationResult:
        """Repair the protected directories at, below or covering node."""
        result = self.tree.repair_files(node, progress=self._progress, cancel=cancel)
        self._report("Repaired", result)
        return result

    def clean(self, node: DirectoryNode) -> OperationResult:
        """Delete archives of unselected directories at or below node."""
        result = self.tree.delete_unused_recovery_files(node)
        self._report("Deleted unused recovery files of", result)
        return result

    def _emit(self, message: str) -> None:
        if self._progress is not None:
            self._progress(message, True)

    def _report(self, action: str, result: OperationResult) -> None:
        if result.outcome == OperationOutcome.CANCELLED:
            self._emit("Cancelled")
            return
        noun = "directory" if result.processed == 1 else "directories"
        self._emit(f"{action} {result.processed} {noun}")
        for path in result.failed:
            self._emit(f"Failed: {path}")
