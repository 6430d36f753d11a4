"""Unit tests for TreeOrchestrator."""

import threading
from pathlib import Path

import pytest
from partree.core.config import PartreeConfig
from partree.engine.par2j import Par2jEngine
from partree.tree.models import OperationOutcome, VerificationState
from partree.tree.orchestrator import NodeNotFoundError, TreeOrchestrator, get_engine


@pytest.fixture
def messages() -> list[tuple[str, bool]]:
    return []


def _open(root: Path, engine, messages: list[tuple[str, bool]]) -> TreeOrchestrator:
    return TreeOrchestrator.open(
        root, engine, 10.0, progress=lambda text, new: messages.append((text, new))
    )


class TestGetEngine:
    """Tests for get_engine function."""

    def test_uses_configured_path(self) -> None:
        engine = get_engine(PartreeConfig(engine_path=Path("/opt/par2j64")))

        assert isinstance(engine, Par2jEngine)
        assert engine.command == "/opt/par2j64"


class TestOpen:
    """Tests for opening a tree."""

    def test_scans_and_reports(self, workspace: Path, engine, messages) -> None:
        orchestrator = _open(workspace, engine, messages)

        assert orchestrator.tree.root.path == workspace
        assert messages == [("Checking for recoverable files", True)]

    def test_node_lookup(self, workspace: Path, engine, messages) -> None:
        orchestrator = _open(workspace, engine, messages)

        assert orchestrator.node(workspace / "docs").name == "docs"
        with pytest.raises(NodeNotFoundError, match="Not a directory"):
            orchestrator.node(workspace / "top.txt")


class TestProtect:
    """Tests for protect and unprotect."""

    def test_protect(self, workspace: Path, engine, messages) -> None:
        orchestrator = _open(workspace, engine, messages)
        docs = orchestrator.node(workspace / "docs")

        result = orchestrator.protect(docs)

        assert result.outcome == OperationOutcome.SUCCESS
        assert docs.selected
        assert orchestrator.tree.verification_state(docs) == VerificationState.VERIFIED
        assert ("Created recovery files for 1 directory", True) in messages

    def test_protect_absorbs_bases_below(self, workspace: Path, engine, messages) -> None:
        """Archives of absorbed base directories are deleted after success."""
        orchestrator = _open(workspace, engine, messages)
        sub = orchestrator.node(workspace / "docs" / "sub")
        orchestrator.protect(sub)
        docs = orchestrator.node(workspace / "docs")

        result = orchestrator.protect(docs)

        assert result.outcome == OperationOutcome.SUCCESS
        assert not sub.selected
        assert not orchestrator.tree.storage.has_archive(sub.path)
        assert orchestrator.tree.storage.has_archive(docs.path)

    def test_failed_protect_is_undone(self, workspace: Path, engine, messages) -> None:
        """A failed create restores the previous selection and archives."""
        orchestrator = _open(workspace, engine, messages)
        sub = orchestrator.node(workspace / "docs" / "sub")
        orchestrator.protect(sub)
        docs = orchestrator.node(workspace / "docs")
        engine.create_exit_code = 1

        result = orchestrator.protect(docs)

        assert result.outcome == OperationOutcome.FAILED
        assert not docs.selected
        assert sub.selected
        assert orchestrator.tree.storage.has_archive(sub.path)
        assert not orchestrator.tree.storage.archives(docs.path)
        assert (f"Failed: {docs.path}", True) in messages

    def test_cancelled_protect_is_undone(self, workspace: Path, engine, messages) -> None:
        engine.cancel_on_create = True
        orchestrator = _open(workspace, engine, messages)
        docs = orchestrator.node(workspace / "docs")

        result = orchestrator.protect(docs, threading.Event())

        assert result.outcome == OperationOutcome.CANCELLED
        assert not docs.selected
        assert not (workspace / ".ParTree" / "docs").exists()
        assert messages[-1] == ("Cancelled", True)

    def test_unprotect(self, workspace: Path, engine, messages) -> None:
        orchestrator = _open(workspace, engine, messages)
        docs = orchestrator.node(workspace / "docs")
        orchestrator.protect(docs)

        result = orchestrator.unprotect(docs)

        assert result.processed == 1
        assert not docs.selected
        assert not orchestrator.tree.storage.has_archive(docs.path)


class TestVerifyRepair:
    """Tests for verify and repair."""

    def test_verify_and_repair(self, workspace: Path, engine, messages) -> None:
        orchestrator = _open(workspace, engine, messages)
        docs = orchestrator.node(workspace / "docs")
        orchestrator.protect(docs)
        (workspace / "docs" / "a.txt").write_text("rot")

        verified = orchestrator.verify(orchestrator.tree.root)
        state = orchestrator.tree.verification_state(docs)
        repaired = orchestrator.repair(docs)

        assert verified.outcome == OperationOutcome.SUCCESS
        assert state == VerificationState.CORRUPT
        assert repaired.outcome == OperationOutcome.SUCCESS
        assert (workspace / "docs" / "a.txt").read_text() == "alpha"
        assert ("Verified 1 directory", True) in messages
        assert ("Repaired 1 directory", True) in messages

    def test_reopen_sees_previous_protection(self, workspace: Path, engine, messages) -> None:
        first = _open(workspace, engine, messages)
        first.protect(first.node(workspace / "photos"))

        second = _open(workspace, engine, messages)

        assert second.node(workspace / "photos").selected
        assert second.verify(second.tree.root).processed == 1
