"""Lazily populated model of a protected directory tree.

Nodes live in a flat arena owned by DirectoryTree. Each node stores its
own index and its parent's index; children are lists of indices computed
on first access. A node's file entries are likewise computed on first
access, so opening a large tree only touches the directories that are
actually looked at.

A *base directory* is a selected node: it owns an archive covering every
file below it. Every other node inside that subtree defers to it, and
shares the FileEntry objects of the base's recoverable set, so status
updates made through the base are visible from every node.
"""

import logging
import os
import threading
from collections import Counter
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from partree.engine.base import EngineError, RecoveryEngine
from partree.engine.models import ProgressCallback
from partree.tree.models import (
    FileEntry,
    FileStatus,
    OperationResult,
    SelectionState,
    VerificationState,
)
from partree.tree.storage import RECOVERY_DIR_NAME, RecoveryStorage, scan_workers

logger = logging.getLogger(__name__)


class SelectionError(Exception):
    """Raised when a directory cannot become a base directory."""


def resolve_archive_name(base: Path, name: str) -> Path:
    """Turn a filename printed by the engine into an absolute path."""
    return Path(os.path.normpath(base / name.replace("\\", "/")))


def _is_cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def _announce(progress: ProgressCallback | None, message: str) -> None:
    logger.info(message)
    if progress is not None:
        progress(message, True)


def _summarize(files: list[FileEntry]) -> str:
    counts = Counter(f.status for f in files)
    return "\n".join(f"{status.label}: {counts[status]}" for status in FileStatus if counts[status])


class DirectoryNode:
    """One directory in the tree.

    Only the tree mutates a node; use the DirectoryTree methods to query
    derived state (files, children, selection and verification).

    Attributes:
        index: Position in the tree's arena.
        path: Absolute directory path.
        parent_index: Arena index of the parent, None for the root.
        accessible: False once enumerating the directory has failed.
        expanded: Presentation hint, kept across every operation.
    """

    def __init__(
        self,
        index: int,
        path: Path,
        parent_index: int | None,
        selected: bool,
    ) -> None:
        self.index = index
        self.path = path
        self.parent_index = parent_index
        self.accessible = True
        self.expanded = False
        self._selected = selected
        self._children: list[int] | None = None
        self._files: list[FileEntry] | None = None
        # Base directories only: every file the archive covers, keyed by path
        self._recoverable: dict[Path, FileEntry] | None = None
        self._archive_below: bool | None = None

    @property
    def name(self) -> str:
        """Directory name (the full path for a filesystem root)."""
        return self.path.name or str(self.path)

    @property
    def selected(self) -> bool:
        """True if this node is a base directory."""
        return self._selected

    @property
    def is_root(self) -> bool:
        """True for the working root."""
        return self.parent_index is None

    @property
    def files_loaded(self) -> bool:
        """True once the node's files have been enumerated."""
        return self._files is not None

    @property
    def children_loaded(self) -> bool:
        """True once the node's children have been enumerated."""
        return self._children is not None

    def _reset(self) -> None:
        self._children = None
        self._files = None
        self._recoverable = None
        self._archive_below = None

    def __repr__(self) -> str:
        return f"DirectoryNode({self.index}, {str(self.path)!r}, selected={self._selected})"


class DirectoryTree:
    """Arena of directory nodes rooted at a working directory.

    Args:
        root: Working directory. Its ``.ParTree`` subdirectory holds the
            recovery archives.
        engine: Engine used to list, create, verify and repair archives.
    """

    def __init__(self, root: Path, engine: RecoveryEngine) -> None:
        self.storage = RecoveryStorage(Path(os.path.abspath(root)))
        self._engine = engine
        self._nodes: list[DirectoryNode] = []
        self._by_path: dict[Path, int] = {}
        self.root = self._add_node(self.storage.root, None)
        self.root.expanded = True

    @property
    def engine(self) -> RecoveryEngine:
        """Engine the tree runs operations with."""
        return self._engine

    def __len__(self) -> int:
        return len(self._nodes)

    # =========================================================================
    # Structure
    # =========================================================================

    def node_at(self, index: int) -> DirectoryNode:
        """Get a node by arena index."""
        return self._nodes[index]

    def parent(self, node: DirectoryNode) -> DirectoryNode | None:
        """Get a node's parent, None for the root."""
        if node.parent_index is None:
            return None
        return self._nodes[node.parent_index]

    def ancestors(self, node: DirectoryNode) -> Iterator[DirectoryNode]:
        """Yield a node's ancestors, nearest first."""
        parent = self.parent(node)
        while parent is not None:
            yield parent
            parent = self.parent(parent)

    def children(self, node: DirectoryNode) -> list[DirectoryNode]:
        """Get a node's child directories, enumerating them on first access.

        Children are the union of subdirectories on disk, directories
        implied by recoverable files below this node, and directories
        whose storage mirror holds archives. Enumeration failures mark the
        node inaccessible and leave it without children.
        """
        if node._children is None:
            node._children = [child.index for child in self._enumerate_children(node)]
        return [self._nodes[i] for i in node._children]

    def node_for_path(self, path: Path) -> DirectoryNode | None:
        """Find the node for a directory, materializing the nodes on the way.

        Args:
            path: Directory at or below the root.

        Returns:
            The node, or None if path is outside the tree or isn't a child
            at some level.
        """
        target = Path(os.path.abspath(path))
        if target == self.root.path:
            return self.root
        try:
            relative = target.relative_to(self.root.path)
        except ValueError:
            return None

        node = self.root
        for part in relative.parts:
            wanted = node.path / part
            match = next((c for c in self.children(node) if c.path == wanted), None)
            if match is None:
                return None
            node = match
        return node

    def _add_node(self, path: Path, parent: DirectoryNode | None) -> DirectoryNode:
        existing = self._by_path.get(path)
        if existing is not None:
            return self._nodes[existing]

        covered = parent is not None and (parent.selected or self.has_selected_ancestor(parent))
        node = DirectoryNode(
            index=len(self._nodes),
            path=path,
            parent_index=None if parent is None else parent.index,
            selected=not covered and self.storage.has_archive(path),
        )
        self._nodes.append(node)
        self._by_path[path] = node.index
        return node

    def _enumerate_children(self, node: DirectoryNode) -> list[DirectoryNode]:
        paths: set[Path] = set()
        try:
            with os.scandir(node.path) as entries:
                for entry in entries:
                    if entry.is_dir() and entry.name != RECOVERY_DIR_NAME:
                        paths.add(node.path / entry.name)
        except FileNotFoundError:
            # Only known from an archive or the storage mirror
            pass
        except OSError as e:
            logger.warning("Cannot read directory %s: %s", node.path, e)
            node.accessible = False
            return []

        for entry in self._recoverable_below(node):
            if entry.is_verifiable and entry.dir_path != node.path:
                paths.add(node.path / entry.path.relative_to(node.path).parts[0])

        paths.update(self.storage.subdirs_with_archives(node.path))

        return [self._add_node(path, node) for path in sorted(paths)]

    def _materialized_below(self, node: DirectoryNode) -> Iterator[DirectoryNode]:
        """Yield enumerated descendants, without enumerating anything new."""
        stack = list(reversed(node._children or []))
        while stack:
            current = self._nodes[stack.pop()]
            yield current
            stack.extend(reversed(current._children or []))

    def nodes_below(self, node: DirectoryNode) -> list[DirectoryNode]:
        """Every node in the arena strictly below node, reachable or not."""
        return [n for n in self._nodes if node.path in n.path.parents]

    # =========================================================================
    # Derived state
    # =========================================================================

    def has_selected_ancestor(self, node: DirectoryNode) -> bool:
        """Check if a node lies inside another base directory's scope."""
        return any(a.selected for a in self.ancestors(node))

    def base_dir(self, node: DirectoryNode) -> DirectoryNode | None:
        """Nearest of the node and its ancestors that is selected."""
        if node.selected:
            return node
        return next((a for a in self.ancestors(node) if a.selected), None)

    def has_recovery_files(self, node: DirectoryNode) -> bool:
        """Check if an archive on disk covers this node."""
        base = self.base_dir(node)
        return base is not None and bool(self.storage.archives(base.path))

    def contains_recoverable(self, node: DirectoryNode) -> bool:
        """Check if this node or anything below it is covered by an archive."""
        return self.has_recovery_files(node) or self._has_archive_below(node)

    def is_enabled(self, node: DirectoryNode) -> bool:
        """Check if the node can be selected or deselected by the user."""
        return node.accessible and not self.has_selected_ancestor(node)

    def selection_state(self, node: DirectoryNode) -> SelectionState:
        """Tri-state selection: indeterminate when something below is protected."""
        if node.selected:
            return SelectionState.SELECTED
        if self._has_archive_below(node) or any(d.selected for d in self._materialized_below(node)):
            return SelectionState.INDETERMINATE
        return SelectionState.UNSELECTED

    def verification_state(self, node: DirectoryNode) -> VerificationState:
        """Tri-state verification of the node's subtree.

        Unknown until every file below has a definite status; verified if
        every verifiable file in this node is complete and every child is
        verified; corrupt otherwise.
        """
        if not self.has_recovery_files(node) or node._files is None:
            return VerificationState.UNKNOWN
        if any(not f.is_verified for f in self.all_files(node)):
            return VerificationState.UNKNOWN

        own_complete = all(f.is_complete for f in node._files if f.is_verifiable)
        if own_complete and all(
            self.verification_state(child) == VerificationState.VERIFIED
            for child in self.children(node)
        ):
            return VerificationState.VERIFIED
        return VerificationState.CORRUPT

    def _has_archive_below(self, node: DirectoryNode) -> bool:
        if node._archive_below is None:
            node._archive_below = self.storage.has_archive_below(node.path)
        return node._archive_below

    def _invalidate_ancestors(self, node: DirectoryNode) -> None:
        """Forget cached storage scans of the node and everything above it."""
        node._archive_below = None
        for ancestor in self.ancestors(node):
            ancestor._archive_below = None

    def _reset_subtree(self, node: DirectoryNode) -> None:
        """Forget everything enumerated at or below node; nodes and flags stay."""
        node._reset()
        for descendant in self.nodes_below(node):
            descendant._reset()

    # =========================================================================
    # Files
    # =========================================================================

    def files(self, node: DirectoryNode) -> list[FileEntry]:
        """Get the files of one directory, enumerating them on first access.

        Covered directories list both files on disk and files the archive
        expects: MISSING if expected but absent, UNVERIFIED if expected and
        present, NEW if present but not expected. Uncovered directories
        list files on disk as UNKNOWN.
        """
        if node._files is None:
            node._files = self._enumerate_files(node)
        return list(node._files)

    def all_files(self, node: DirectoryNode) -> list[FileEntry]:
        """Files of the node followed by the files of all its descendants."""
        result = self.files(node)
        for child in self.children(node):
            result.extend(self.all_files(child))
        return result

    def new_files(self, node: DirectoryNode) -> list[FileEntry]:
        """Files inside archive scopes below node that no archive covers."""
        if self.has_recovery_files(node):
            return [f for f in self.all_files(node) if f.status == FileStatus.NEW]
        result: list[FileEntry] = []
        for child in self.children(node):
            if self.contains_recoverable(child):
                result.extend(self.new_files(child))
        return result

    def status_summary(self, node: DirectoryNode) -> str:
        """Human-readable file status counts for a directory."""
        own = self.files(node)
        if not node.accessible:
            return "Unable to read contents of this directory"
        if not self.has_recovery_files(node):
            return "No recovery files for this directory"

        below = self.all_files(node)[len(own) :]
        if not own and not below:
            return "Empty"

        sections = []
        if own:
            sections.append(f"In this directory\n{_summarize(own)}")
        if below:
            sections.append(f"In subdirectories\n{_summarize(below)}")
        return "\n\n".join(sections)

    def _enumerate_files(self, node: DirectoryNode) -> list[FileEntry]:
        try:
            with os.scandir(node.path) as entries:
                existing = sorted(node.path / e.name for e in entries if e.is_file())
        except FileNotFoundError:
            existing = []
        except OSError as e:
            logger.warning("Cannot read directory %s: %s", node.path, e)
            node.accessible = False
            return []

        if not self.has_recovery_files(node):
            return [FileEntry(path, FileStatus.UNKNOWN) for path in existing]

        present = set(existing)
        expected = [f for f in self._recoverable_below(node) if f.dir_path == node.path]
        for entry in expected:
            entry.status = FileStatus.UNVERIFIED if entry.path in present else FileStatus.MISSING

        known = {entry.path for entry in expected}
        new = [FileEntry(path, FileStatus.NEW) for path in existing if path not in known]
        return sorted(expected + new, key=lambda f: f.path)

    def _recoverable_below(self, node: DirectoryNode) -> list[FileEntry]:
        """Recoverable files of node's base directory that lie below node."""
        if not self.has_recovery_files(node):
            return []
        base = self.base_dir(node)
        assert base is not None
        recoverable = self._load_recoverable(base)
        if base is node:
            return list(recoverable.values())
        return [f for f in recoverable.values() if node.path in f.path.parents]

    def _load_recoverable(self, base: DirectoryNode) -> dict[Path, FileEntry]:
        if base._recoverable is None:
            archive = self.storage.archive_path(base.path)
            try:
                names = self._engine.list_files(archive)
            except EngineError as e:
                logger.warning("Cannot list %s: %s", archive, e)
                names = []
            self._set_recoverable(base, names)
        assert base._recoverable is not None
        return base._recoverable

    def _set_recoverable(self, base: DirectoryNode, names: list[str]) -> None:
        base._recoverable = {}
        for name in names:
            path = resolve_archive_name(base.path, name)
            base._recoverable[path] = FileEntry(path, FileStatus.UNVERIFIED)

    # =========================================================================
    # Operations
    # =========================================================================

    def set_selected(self, node: DirectoryNode, value: bool) -> None:
        """Make a node a base directory, or stop it being one.

        Selecting a node deselects every descendant. Either way, the scope
        of the node changes, so everything enumerated below it is forgotten
        and recomputed on next access. Deselecting a node that isn't
        selected changes nothing.

        Raises:
            SelectionError: If the node is inaccessible or already inside
                another base directory's scope.
        """
        if value and not self.is_enabled(node):
            base = self.base_dir(node)
            if base is not None and base is not node:
                msg = f"{node.path} is already protected by {base.path}"
            else:
                msg = f"{node.path} is not accessible"
            raise SelectionError(msg)

        if not value and not node.selected:
            return

        node._selected = value
        if value:
            for descendant in self.nodes_below(node):
                descendant._selected = False
        self._reset_subtree(node)
        self._invalidate_ancestors(node)
        logger.debug("%s %s", "Selected" if value else "Deselected", node.path)

    def create_recovery_files(
        self,
        node: DirectoryNode,
        redundancy_percent: float,
        recreate_existing: bool = False,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> OperationResult:
        """Create archives for every selected node at or below node.

        Selected nodes that already have an archive are skipped unless
        recreate_existing is set. Cancellation keeps the archives that were
        completed before it.
        """
        result = OperationResult()
        self.storage.ensure_root()
        self._create(node, redundancy_percent, recreate_existing, progress, cancel, result)
        return result

    def _create(
        self,
        node: DirectoryNode,
        redundancy_percent: float,
        recreate_existing: bool,
        progress: ProgressCallback | None,
        cancel: threading.Event | None,
        result: OperationResult,
    ) -> None:
        if _is_cancelled(cancel):
            result.cancelled = True
            return

        if node.selected:
            if recreate_existing or not self.has_recovery_files(node):
                self._create_archive(node, redundancy_percent, progress, cancel, result)
            return

        for child in self._children_to_visit(node):
            self._create(child, redundancy_percent, recreate_existing, progress, cancel, result)
            if result.cancelled:
                return

    def _create_archive(
        self,
        node: DirectoryNode,
        redundancy_percent: float,
        progress: ProgressCallback | None,
        cancel: threading.Event | None,
        result: OperationResult,
    ) -> None:
        self.storage.delete_archives(node.path)
        self._reset_subtree(node)
        self._invalidate_ancestors(node)

        _announce(progress, f"Creating recovery files for {node.path}")
        archive = self.storage.archive_path(node.path)
        try:
            exit_code = self._engine.create(
                node.path, archive, redundancy_percent, progress, cancel
            )
        except EngineError as e:
            logger.error("Creating recovery files for %s failed: %s", node.path, e)
            result.record(node.path, False)
            return

        if _is_cancelled(cancel):
            # The killed engine may have left a partial archive behind
            self.storage.delete_archives(node.path)
            self._invalidate_ancestors(node)
            result.cancelled = True
            return
        self._invalidate_ancestors(node)
        if exit_code != 0:
            logger.error(
                "Creating recovery files for %s failed with exit code %d", node.path, exit_code
            )
            result.record(node.path, False)
            return

        node._recoverable = {}
        for entry in self.all_files(node):
            entry.status = FileStatus.COMPLETE
            node._recoverable[entry.path] = entry
        result.record(node.path, True)

    def delete_unused_recovery_files(self, node: DirectoryNode) -> OperationResult:
        """Delete archives of unselected nodes at or below node.

        Children are handled first so that their emptied storage
        directories can be pruned before this node's. Running it twice
        has the same effect as running it once.
        """
        result = OperationResult()
        self._delete_unused(node, result)
        return result

    def _delete_unused(self, node: DirectoryNode, result: OperationResult) -> None:
        if not self.storage.recovery_dir(node.path).is_dir():
            return

        for child in self.children(node):
            self._delete_unused(child, result)

        changed = False
        if not node.selected and self.storage.delete_archives(node.path):
            result.record(node.path, True)
            changed = True
        if self.storage.prune(node.path):
            changed = True
        if changed:
            self._invalidate_ancestors(node)

    def verify_files(
        self,
        node: DirectoryNode,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> OperationResult:
        """Verify every base directory at or below node.

        A covered node can't be verified on its own, so the whole scope of
        its base directory is verified instead.
        """
        result = OperationResult()
        self._verify(self._operation_target(node), progress, cancel, result)
        return result

    def _verify(
        self,
        node: DirectoryNode,
        progress: ProgressCallback | None,
        cancel: threading.Event | None,
        result: OperationResult,
    ) -> None:
        if _is_cancelled(cancel):
            result.cancelled = True
            return

        if node.selected:
            if not self.has_recovery_files(node):
                logger.warning("No recovery files for %s, skipping verify", node.path)
                return

            files = self.all_files(node)
            tokens: dict[Path, str] = {}
            if node.path.is_dir():
                _announce(progress, f"Verifying {node.path}")
                archive = self.storage.archive_path(node.path)
                try:
                    reported = self._engine.verify(node.path, archive, progress, cancel)
                except EngineError as e:
                    logger.error("Verifying %s failed: %s", node.path, e)
                    result.record(node.path, False)
                    return
                if _is_cancelled(cancel):
                    result.cancelled = True
                    return
                tokens = {resolve_archive_name(node.path, r.filename): r.status for r in reported}
            else:
                _announce(progress, f"{node.path} does not exist, all files are missing")
                tokens = {f.path: "Missing" for f in files}

            for entry in files:
                entry.status = FileStatus.from_engine_token(tokens.get(entry.path))
            result.record(node.path, True)
            return

        for child in self._children_to_visit(node):
            self._verify(child, progress, cancel, result)
            if result.cancelled:
                return

    def repair_files(
        self,
        node: DirectoryNode,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> OperationResult:
        """Repair every base directory at or below node.

        Redirected to the base directory like verify_files.
        """
        result = OperationResult()
        self._repair(self._operation_target(node), progress, cancel, result)
        return result

    def _repair(
        self,
        node: DirectoryNode,
        progress: ProgressCallback | None,
        cancel: threading.Event | None,
        result: OperationResult,
    ) -> None:
        if _is_cancelled(cancel):
            result.cancelled = True
            return

        if node.selected:
            if not self.has_recovery_files(node):
                logger.warning("No recovery files for %s, skipping repair", node.path)
                return

            self.all_files(node)
            _announce(progress, f"Repairing {node.path}")
            archive = self.storage.archive_path(node.path)
            try:
                exit_code = self._engine.repair(node.path, archive, progress, cancel)
            except EngineError as e:
                logger.error("Repairing %s failed: %s", node.path, e)
                result.record(node.path, False)
                return
            if _is_cancelled(cancel):
                result.cancelled = True
                return

            ok = self._engine.is_repair_success(exit_code)
            if ok:
                for entry in self._load_recoverable(node).values():
                    entry.status = FileStatus.COMPLETE
            else:
                logger.error("Repairing %s failed with exit code %d", node.path, exit_code)
            result.record(node.path, ok)
            return

        for child in self._children_to_visit(node):
            self._repair(child, progress, cancel, result)
            if result.cancelled:
                return

    def check_for_verifiable_files(
        self, cancel: threading.Event | None = None
    ) -> list[DirectoryNode]:
        """Initial scan: find and load every base directory with an archive.

        Storage subtrees are searched and archive file lists are read by a
        bounded worker pool; the tree itself is only touched from the
        calling thread.

        Returns:
            Base directories found, in path order.
        """
        bases: list[DirectoryNode] = []
        for path in self.storage.find_archive_dirs(cancel):
            if _is_cancelled(cancel):
                return bases
            # Nested inside a base found earlier, so not a base itself
            if any(base.path in path.parents for base in bases):
                continue
            node = self.node_for_path(path)
            if node is not None and node.selected:
                bases.append(node)

        pending = [base for base in bases if base._recoverable is None]
        if pending and not _is_cancelled(cancel):
            with ThreadPoolExecutor(
                max_workers=min(scan_workers(), len(pending)),
                thread_name_prefix="partree-list",
            ) as executor:
                futures = [
                    executor.submit(self._engine.list_files, self.storage.archive_path(base.path))
                    for base in pending
                ]
                for base, future in zip(pending, futures, strict=True):
                    try:
                        names = future.result()
                    except EngineError as e:
                        logger.warning("Cannot list recovery files of %s: %s", base.path, e)
                        names = []
                    self._set_recoverable(base, names)

        for base in bases:
            self.files(base)
        logger.debug("Found %d protected directories", len(bases))
        return bases

    def _operation_target(self, node: DirectoryNode) -> DirectoryNode:
        if not node.selected:
            base = self.base_dir(node)
            if base is not None:
                return base
        return node

    def _children_to_visit(self, node: DirectoryNode) -> list[DirectoryNode]:
        """Children that are, or contain, base directories."""
        return [
            child
            for child in self.children(node)
            if self.selection_state(child) != SelectionState.UNSELECTED
        ]
