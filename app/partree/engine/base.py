"""Abstract base class for recovery engines.

This module defines the RecoveryEngine interface that the directory tree
uses to create, list, verify and repair recovery archives.
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path

from partree.engine.models import ProgressCallback, VerifyResult

# Exit code for a successful create/list/verify/repair
EXIT_SUCCESS = 0


class EngineError(Exception):
    """Base exception for recovery engine failures."""


class EngineNotFoundError(EngineError):
    """Raised when the engine executable cannot be found."""


class RecoveryEngine(ABC):
    """Abstract base class for recovery-file engines.

    Engines are opaque: they return exit codes, the filenames an archive
    covers, and per-file status tokens. Every long-running call accepts a
    cancellation event; when it is set, the running work is abandoned.

    Example:
        >>> engine = Par2jEngine()
        >>> if engine.is_available():
        ...     for result in engine.verify(Path("photos"), Path("photos.par2")):
        ...         print(f"{result.filename}: {result.status}")
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the engine can be run on this system.

        Returns:
            True if the engine executable can be found, False otherwise.
        """

    @abstractmethod
    def create(
        self,
        input_dir: Path,
        archive: Path,
        redundancy_percent: float,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Create a recovery archive covering every file below input_dir.

        Args:
            input_dir: Directory to protect.
            archive: Archive file to write.
            redundancy_percent: Recovery data size relative to the input.
            progress: Optional console output sink.
            cancel: Optional cancellation event.

        Returns:
            Engine exit code; 0 on success.

        Raises:
            EngineError: If the engine cannot be run.
        """

    @abstractmethod
    def list_files(self, archive: Path) -> list[str]:
        """List the files an archive covers, whether or not they exist.

        Args:
            archive: Archive file to read.

        Returns:
            Filenames relative to the archive's base directory.

        Raises:
            EngineError: If the engine cannot be run.
        """

    @abstractmethod
    def verify(
        self,
        input_dir: Path,
        archive: Path,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> list[VerifyResult]:
        """Check the files below input_dir against an archive.

        Args:
            input_dir: Base directory of the archive.
            archive: Archive file to verify against.
            progress: Optional console output sink.
            cancel: Optional cancellation event.

        Returns:
            One VerifyResult per file the engine reported on.

        Raises:
            EngineError: If the engine cannot be run, or fails before
                reporting on any file.
        """

    @abstractmethod
    def repair(
        self,
        input_dir: Path,
        archive: Path,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Repair damaged or missing files below input_dir.

        Args:
            input_dir: Base directory of the archive.
            archive: Archive file to repair from.
            progress: Optional console output sink.
            cancel: Optional cancellation event.

        Returns:
            Engine exit code; see is_repair_success.

        Raises:
            EngineError: If the engine cannot be run.
        """

    def is_repair_success(self, exit_code: int) -> bool:
        """Check whether a repair exit code means the files are intact."""
        return exit_code == EXIT_SUCCESS
