"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules, most notably
an in-process recovery engine that stores file contents as JSON instead
of running par2j.
"""

import json
import os
import threading
from pathlib import Path

import pytest
from partree.engine.base import RecoveryEngine
from partree.engine.models import ProgressCallback, VerifyResult

# Exit code of a process killed by SIGKILL, as reported by Popen
KILLED = -9


class FakeEngine(RecoveryEngine):
    """Recovery engine that keeps a JSON copy of every protected file.

    Attributes:
        available: Value returned by is_available.
        create_exit_code: Exit code returned by create; the archive is only
            written when it is 0.
        repair_exit_code: Exit code returned by repair.
        cancel_on_create: Set the cancel event in the middle of create and
            leave a partial archive behind, like a killed process.
        calls: (verb, path) for every call, in order.
    """

    def __init__(self) -> None:
        self.available = True
        self.create_exit_code = 0
        self.repair_exit_code = 0
        self.cancel_on_create = False
        self.calls: list[tuple[str, Path]] = []

    def is_available(self) -> bool:
        return self.available

    def create(
        self,
        input_dir: Path,
        archive: Path,
        redundancy_percent: float,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        self.calls.append(("create", input_dir))
        if cancel is not None and cancel.is_set():
            return KILLED

        if progress is not None:
            progress("Computing file hash:  50.0%", True)
            progress("Computing file hash: 100.0%", False)

        archive.parent.mkdir(parents=True, exist_ok=True)
        if self.cancel_on_create and cancel is not None:
            archive.write_text("{")
            cancel.set()
            return KILLED
        if self.create_exit_code != 0:
            return self.create_exit_code

        contents = {
            path.relative_to(input_dir).as_posix(): path.read_text()
            for path in _files_below(input_dir)
        }
        archive.write_text(json.dumps(contents))
        return 0

    def list_files(self, archive: Path) -> list[str]:
        self.calls.append(("list", archive))
        return list(_read_archive(archive))

    def verify(
        self,
        input_dir: Path,
        archive: Path,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> list[VerifyResult]:
        self.calls.append(("verify", input_dir))
        results = []
        for name, content in _read_archive(archive).items():
            path = input_dir / name
            if not path.is_file():
                status = "Missing"
            elif path.read_text() != content:
                status = "Damaged"
            else:
                status = "Complete"
            results.append(VerifyResult(filename=name, status=status))
        return results

    def repair(
        self,
        input_dir: Path,
        archive: Path,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        self.calls.append(("repair", input_dir))
        if self.repair_exit_code != 0:
            return self.repair_exit_code
        for name, content in _read_archive(archive).items():
            path = input_dir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return 0

    def verbs(self) -> list[str]:
        """Verbs called so far, in order."""
        return [verb for verb, _ in self.calls]


def _files_below(directory: Path) -> list[Path]:
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(d for d in dirnames if d != ".ParTree")
        found.extend(Path(dirpath) / name for name in sorted(filenames))
    return found


def _read_archive(archive: Path) -> dict[str, str]:
    try:
        return json.loads(archive.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


@pytest.fixture
def engine() -> FakeEngine:
    """In-process recovery engine."""
    return FakeEngine()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Working root with a small directory tree.

    Layout::

        root/
            top.txt
            docs/a.txt, docs/b.txt
            docs/sub/c.txt
            photos/p.jpg
    """
    root = tmp_path / "root"
    (root / "docs" / "sub").mkdir(parents=True)
    (root / "photos").mkdir()
    (root / "top.txt").write_text("top")
    (root / "docs" / "a.txt").write_text("alpha")
    (root / "docs" / "b.txt").write_text("bravo")
    (root / "docs" / "sub" / "c.txt").write_text("charlie")
    (root / "photos" / "p.jpg").write_text("picture")
    return root


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at a temporary directory."""
    home = tmp_path / "config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    return home
