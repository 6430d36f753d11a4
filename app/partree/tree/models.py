"""Models for the directory tree.

This module defines file entries, their statuses, the tri-state values
derived for directories, and the result of bulk tree operations.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class FileStatus(Enum):
    """State of one file with respect to its recovery archive.

    Declaration order is the display order of status summaries.

    Attributes:
        UNKNOWN: No recovery archive covers this file's directory.
        UNVERIFIED: Covered by an archive, not checked yet.
        NEW: Present, but not listed in the covering archive.
        MISSING: Listed in the archive, but not found.
        COMPLETE: Consistent with the archive.
        CORRUPT: Present, but inconsistent with the archive.
    """

    UNKNOWN = "unknown"
    UNVERIFIED = "unverified"
    NEW = "new"
    MISSING = "missing"
    COMPLETE = "complete"
    CORRUPT = "corrupt"

    @property
    def label(self) -> str:
        """Human-readable status name."""
        return self.name.capitalize()

    @classmethod
    def from_engine_token(cls, token: str | None) -> "FileStatus":
        """Map an engine verify token to a status.

        The engine reports several kinds of damage; they all collapse to
        CORRUPT. A file the engine did not report on at all is NEW.

        Args:
            token: Status token from the verify table, or None if the file
                was not in the table.

        Returns:
            Corresponding FileStatus.
        """
        if token is None:
            return cls.NEW
        if token == "Complete":
            return cls.COMPLETE
        if token == "Missing":
            return cls.MISSING
        return cls.CORRUPT


class SelectionState(Enum):
    """Tri-state checkbox value of a directory.

    Attributes:
        SELECTED: The directory is a base directory.
        UNSELECTED: Neither the directory nor anything below it is protected.
        INDETERMINATE: Not selected, but something below it is.
    """

    SELECTED = "selected"
    UNSELECTED = "unselected"
    INDETERMINATE = "indeterminate"


class VerificationState(Enum):
    """Tri-state verification value of a directory.

    Attributes:
        VERIFIED: Every checked file below is complete.
        CORRUPT: Something below is missing or damaged.
        UNKNOWN: Not covered, or not fully checked yet.
    """

    VERIFIED = "verified"
    CORRUPT = "corrupt"
    UNKNOWN = "unknown"


@dataclass(slots=True, eq=False)
class FileEntry:
    """One file, either physically present or only listed in an archive.

    Entries are shared between the directory that owns them and the
    recoverable set of their base directory, so a status change is seen
    by both. Equality is identity.

    Attributes:
        path: Absolute path of the file.
        status: Current status.
    """

    path: Path
    status: FileStatus

    @property
    def name(self) -> str:
        """File name without directory."""
        return self.path.name

    @property
    def dir_path(self) -> Path:
        """Directory the file resides in, or would reside in if missing."""
        return self.path.parent

    @property
    def is_verifiable(self) -> bool:
        """Check if the file is covered by an archive."""
        return self.status not in (FileStatus.UNKNOWN, FileStatus.NEW)

    @property
    def is_verified(self) -> bool:
        """Check if the file has a definite status."""
        return self.status not in (FileStatus.UNKNOWN, FileStatus.UNVERIFIED)

    @property
    def is_complete(self) -> bool:
        """Check if the file matched its archive."""
        return self.status == FileStatus.COMPLETE

    @property
    def is_incomplete(self) -> bool:
        """Check if the file is missing or damaged."""
        return self.status in (FileStatus.MISSING, FileStatus.CORRUPT)


class OperationOutcome(Enum):
    """Overall outcome of a bulk tree operation.

    Attributes:
        SUCCESS: Every engine call succeeded.
        FAILED: At least one engine call failed.
        CANCELLED: The operation was cancelled before it finished.
    """

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class OperationResult:
    """Progress counts of a bulk tree operation.

    Attributes:
        processed: Base directories handled (successfully or not).
        failed: Base directories whose engine call failed.
        cancelled: True if the cancellation signal stopped the operation.
    """

    processed: int = 0
    failed: list[Path] = field(default_factory=list)
    cancelled: bool = False

    @property
    def outcome(self) -> OperationOutcome:
        """Cancellation wins over failure, failure wins over success."""
        if self.cancelled:
            return OperationOutcome.CANCELLED
        if self.failed:
            return OperationOutcome.FAILED
        return OperationOutcome.SUCCESS

    @property
    def succeeded(self) -> int:
        """Base directories handled without failure."""
        return self.processed - len(self.failed)

    def record(self, path: Path, ok: bool) -> None:
        """Count one handled base directory."""
        self.processed += 1
        if not ok:
            self.failed.append(path)
