"""Recovery-storage layout on disk.

Archives live in a hidden directory under the working root that mirrors
the shape of the protected tree:

    <root>/.ParTree/.ParTree.par2          archive for <root>
    <root>/.ParTree/photos/photos.par2     archive for <root>/photos

Only files directly inside a mirror directory belong to that directory;
anything deeper belongs to its subdirectories.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

logger = logging.getLogger(__name__)

RECOVERY_DIR_NAME = ".ParTree"
ARCHIVE_EXTENSION = "par2"

# Ceiling for the initial scan's worker pool
MAX_SCAN_WORKERS = 16


def scan_workers() -> int:
    """Number of workers for the initial scan."""
    return min(os.cpu_count() or 1, MAX_SCAN_WORKERS)


def _is_archive(name: str) -> bool:
    return name.endswith(f".{ARCHIVE_EXTENSION}")


def _contains_archive(directory: Path) -> bool:
    """Check if directory or anything below it holds an archive."""
    for _, _, filenames in os.walk(directory):
        if any(_is_archive(name) for name in filenames):
            return True
    return False


def _walk_archive_dirs(top: Path, cancel: threading.Event | None) -> list[Path]:
    """Collect every directory at or below top that directly holds an archive."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(top):
        if cancel is not None and cancel.is_set():
            break
        dirnames.sort()
        if any(_is_archive(name) for name in filenames):
            found.append(Path(dirpath))
    return found


class RecoveryStorage:
    """Maps tree directories to their recovery-storage directories.

    Args:
        root: Working root of the tree.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root_dir = root / RECOVERY_DIR_NAME

    def recovery_dir(self, path: Path) -> Path:
        """Storage directory mirroring path."""
        return self.root_dir / path.relative_to(self.root)

    def source_dir(self, recovery_dir: Path) -> Path:
        """Tree directory that a storage directory mirrors."""
        return self.root / recovery_dir.relative_to(self.root_dir)

    def archive_path(self, path: Path) -> Path:
        """Archive file for base directory path, named after its storage directory."""
        recovery_dir = self.recovery_dir(path)
        return recovery_dir / f"{recovery_dir.name}.{ARCHIVE_EXTENSION}"

    def archives(self, path: Path) -> list[Path]:
        """Archive files belonging to path itself (not to its subdirectories).

        Returns:
            Sorted archive files, or an empty list if there are none or the
            storage directory can't be read.
        """
        recovery_dir = self.recovery_dir(path)
        try:
            return sorted(
                entry
                for entry in recovery_dir.iterdir()
                if entry.is_file() and _is_archive(entry.name)
            )
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Cannot read recovery directory %s: %s", recovery_dir, e)
            return []

    def has_archive(self, path: Path) -> bool:
        """Check if path's own archive file exists."""
        return self.archive_path(path).is_file()

    def subdirs_with_archives(self, path: Path) -> list[Path]:
        """Subdirectories of path whose storage subtree holds an archive.

        The subdirectories themselves may no longer exist.
        """
        recovery_dir = self.recovery_dir(path)
        try:
            entries = sorted(entry for entry in recovery_dir.iterdir() if entry.is_dir())
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Cannot read recovery directory %s: %s", recovery_dir, e)
            return []
        return [path / entry.name for entry in entries if _contains_archive(entry)]

    def has_archive_below(self, path: Path) -> bool:
        """Check if any subdirectory of path has archives, without touching the tree."""
        return bool(self.subdirs_with_archives(path))

    def ensure_root(self) -> Path:
        """Create the storage root if it doesn't exist yet.

        The engine creates any deeper directories itself.
        """
        self.root_dir.mkdir(parents=True, exist_ok=True)
        return self.root_dir

    def delete_archives(self, path: Path) -> int:
        """Delete path's own archive files.

        Returns:
            Number of files deleted.
        """
        deleted = 0
        for archive in self.archives(path):
            archive.unlink(missing_ok=True)
            logger.debug("Deleted %s", archive)
            deleted += 1
        return deleted

    def prune(self, path: Path) -> bool:
        """Remove path's storage directory if it is empty.

        Returns:
            True if the directory was removed.
        """
        recovery_dir = self.recovery_dir(path)
        try:
            if not recovery_dir.is_dir() or any(recovery_dir.iterdir()):
                return False
            recovery_dir.rmdir()
        except OSError as e:
            logger.warning("Cannot remove recovery directory %s: %s", recovery_dir, e)
            return False
        logger.debug("Pruned %s", recovery_dir)
        return True

    def find_archive_dirs(self, cancel: threading.Event | None = None) -> list[Path]:
        """Find every tree directory that has its own archive.

        Each top-level storage subtree is walked by a separate worker.

        Args:
            cancel: Optional event that stops the walk early.

        Returns:
            Sorted tree directories (which may no longer exist).
        """
        if not self.root_dir.is_dir():
            return []

        found: list[Path] = []
        if self.archives(self.root):
            found.append(self.root)

        try:
            tops = sorted(entry for entry in self.root_dir.iterdir() if entry.is_dir())
        except OSError as e:
            logger.warning("Cannot read recovery directory %s: %s", self.root_dir, e)
            return found

        if not tops:
            return found

        with ThreadPoolExecutor(
            max_workers=min(scan_workers(), len(tops)),
            thread_name_prefix="partree-scan",
        ) as executor:
            futures = [executor.submit(_walk_archive_dirs, top, cancel) for top in tops]
            for future in futures:
                found.extend(self.source_dir(d) for d in future.result())

        return sorted(found)
