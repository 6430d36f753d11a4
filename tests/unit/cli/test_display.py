"""Unit tests for tree rendering and progress display."""

import io
from pathlib import Path

from partree.cli.display import (
    OutputLog,
    TerminalProgress,
    build_tree,
    common_prefix_length,
    print_operation_result,
)
from partree.core.theme import get_theme
from partree.tree.directory import DirectoryTree
from partree.tree.models import OperationResult
from rich.console import Console


def _render(renderable: object) -> str:
    out = Console(file=io.StringIO(), width=200, color_system=None, theme=get_theme())
    out.print(renderable)
    return out.file.getvalue()  # type: ignore[attr-defined]


class TestOutputLog:
    """Tests for OutputLog class."""

    def test_overwrite_replaces_last_line(self) -> None:
        log = OutputLog()

        log("Loading", True)
        log("50%", True)
        log("100%", False)

        assert log.lines == ["Loading", "100%"]
        assert log.text == "Loading\n100%"

    def test_overwrite_on_empty_log_appends(self) -> None:
        log = OutputLog()

        log("first", False)

        assert log.lines == ["first"]

    def test_clear(self) -> None:
        log = OutputLog()
        log("a")

        log.clear()

        assert log.lines == []


class TestCommonPrefixLength:
    """Tests for common_prefix_length function."""

    def test_shared_prefix(self) -> None:
        assert common_prefix_length(" 10.5%", " 10.7%") == 4

    def test_nothing_shared(self) -> None:
        assert common_prefix_length("50%", "100%") == 0


class TestTerminalProgress:
    """Tests for TerminalProgress class."""

    def test_non_interactive_coalesces_overwrites(self) -> None:
        """Only the final version of each line is written."""
        stream = io.StringIO()
        progress = TerminalProgress(stream=stream, interactive=False)

        progress("Verifying", True)
        progress(" 10%", True)
        progress(" 60%", False)
        progress("100%", False)
        progress.finish()

        assert stream.getvalue() == "Verifying\n100%\n"
        assert progress.log.lines == ["Verifying", "100%"]

    def test_interactive_rewrites_changed_suffix(self) -> None:
        """Overwrites back up over the differing part only."""
        stream = io.StringIO()
        progress = TerminalProgress(stream=stream, interactive=True)

        progress(" 10.5%", True)
        progress(" 10.7%", False)
        progress.finish()

        assert stream.getvalue() == " 10.5%\b\b7%\n"

    def test_interactive_shorter_overwrite_is_padded(self) -> None:
        """Leftover characters of a longer line are blanked."""
        stream = io.StringIO()
        progress = TerminalProgress(stream=stream, interactive=True)

        progress("abcd", True)
        progress("ab", False)

        assert stream.getvalue() == "abcd\b\b" + "  \b\b"

    def test_finish_without_output(self) -> None:
        stream = io.StringIO()

        TerminalProgress(stream=stream, interactive=False).finish()

        assert stream.getvalue() == ""


class TestBuildTree:
    """Tests for build_tree function."""

    def test_shows_selection_glyphs(self, workspace: Path, engine) -> None:
        """Selected and partially selected directories are marked."""
        tree = DirectoryTree(workspace, engine)
        docs = tree.node_for_path(workspace / "docs")
        assert docs is not None
        tree.set_selected(docs, True)

        text = _render(build_tree(tree, tree.root, depth=1))

        assert "[-] root" in text
        assert "[x] docs" in text
        assert "[ ] photos" in text
        assert "sub" not in text

    def test_depth_and_files(self, workspace: Path, engine) -> None:
        """Deeper levels and files are shown on request."""
        tree = DirectoryTree(workspace, engine)

        text = _render(build_tree(tree, tree.root, depth=2, show_files=True))

        assert "sub" in text
        assert "a.txt unknown" in text
        assert "top.txt unknown" in text


class TestPrintOperationResult:
    """Tests for print_operation_result function."""

    def test_success(self, capsys) -> None:
        print_operation_result(OperationResult(processed=2), "Verified")

        assert "Verified 2 directory(ies)." in capsys.readouterr().out

    def test_cancelled(self, capsys) -> None:
        print_operation_result(OperationResult(processed=1, cancelled=True), "Verified")

        assert "Cancelled after 1 directory(ies)." in capsys.readouterr().err
