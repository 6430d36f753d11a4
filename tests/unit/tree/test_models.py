"""Unit tests for directory tree models."""

from pathlib import Path

import pytest
from partree.tree.models import FileEntry, FileStatus, OperationOutcome, OperationResult


class TestFileStatus:
    """Tests for FileStatus enum."""

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("Complete", FileStatus.COMPLETE),
            ("Missing", FileStatus.MISSING),
            ("Damaged", FileStatus.CORRUPT),
            ("Appended", FileStatus.CORRUPT),
            (None, FileStatus.NEW),
        ],
    )
    def test_from_engine_token(self, token: str | None, expected: FileStatus) -> None:
        """Every damage token collapses to CORRUPT; unreported files are NEW."""
        assert FileStatus.from_engine_token(token) == expected

    def test_label(self) -> None:
        assert FileStatus.UNVERIFIED.label == "Unverified"

    def test_declaration_order(self) -> None:
        """Summaries list statuses in this order."""
        assert [s.value for s in FileStatus] == [
            "unknown",
            "unverified",
            "new",
            "missing",
            "complete",
            "corrupt",
        ]


class TestFileEntry:
    """Tests for FileEntry dataclass."""

    def test_path_parts(self) -> None:
        entry = FileEntry(Path("/data/docs/a.txt"), FileStatus.UNKNOWN)

        assert entry.name == "a.txt"
        assert entry.dir_path == Path("/data/docs")

    @pytest.mark.parametrize(
        ("status", "verifiable", "verified"),
        [
            (FileStatus.UNKNOWN, False, False),
            (FileStatus.NEW, False, True),
            (FileStatus.UNVERIFIED, True, False),
            (FileStatus.MISSING, True, True),
            (FileStatus.COMPLETE, True, True),
            (FileStatus.CORRUPT, True, True),
        ],
    )
    def test_flags(self, status: FileStatus, verifiable: bool, verified: bool) -> None:
        entry = FileEntry(Path("/a"), status)

        assert entry.is_verifiable is verifiable
        assert entry.is_verified is verified

    def test_equality_is_identity(self) -> None:
        """Two entries for the same path are distinct objects."""
        first = FileEntry(Path("/a"), FileStatus.NEW)
        second = FileEntry(Path("/a"), FileStatus.NEW)

        assert first != second
        assert first == first


class TestOperationResult:
    """Tests for OperationResult dataclass."""

    def test_empty_is_success(self) -> None:
        result = OperationResult()

        assert result.outcome == OperationOutcome.SUCCESS
        assert result.succeeded == 0

    def test_record_failure(self) -> None:
        result = OperationResult()

        result.record(Path("/a"), True)
        result.record(Path("/b"), False)

        assert result.processed == 2
        assert result.succeeded == 1
        assert result.failed == [Path("/b")]
        assert result.outcome == OperationOutcome.FAILED

    def test_cancellation_wins(self) -> None:
        result = OperationResult(failed=[Path("/b")], cancelled=True)

        assert result.outcome == OperationOutcome.CANCELLED
