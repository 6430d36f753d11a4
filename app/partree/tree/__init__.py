"""Directory tree model for partree.

This module exports the tree, its nodes and the models derived from them.
"""

from partree.tree.directory import DirectoryNode, DirectoryTree, SelectionError
from partree.tree.models import (
    FileEntry,
    FileStatus,
    OperationOutcome,
    OperationResult,
    SelectionState,
    VerificationState,
)
from partree.tree.storage import ARCHIVE_EXTENSION, RECOVERY_DIR_NAME, RecoveryStorage

__all__ = [
    "ARCHIVE_EXTENSION",
    "RECOVERY_DIR_NAME",
    "DirectoryNode",
    "DirectoryTree",
    "FileEntry",
    "FileStatus",
    "OperationOutcome",
    "OperationResult",
    "RecoveryStorage",
    "SelectionError",
    "SelectionState",
    "VerificationState",
]
