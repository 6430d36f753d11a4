"""Shared Rich display functions for trees, files and progress output.

Provides the directory tree renderer, the file tables and the progress
sinks that show engine output with carriage-return overwrites.
"""

import os
from pathlib import Path
from typing import TextIO

from rich.text import Text
from rich.tree import Tree

from partree.tree.directory import DirectoryNode, DirectoryTree
from partree.tree.models import (
    FileEntry,
    OperationOutcome,
    OperationResult,
    SelectionState,
    VerificationState,
)
from partree.utils.formatting import (
    console,
    create_file_table,
    format_file_row,
    print_error,
    print_success,
    print_warning,
)

SELECTION_GLYPHS: dict[SelectionState, str] = {
    SelectionState.SELECTED: "[x]",
    SelectionState.INDETERMINATE: "[-]",
    SelectionState.UNSELECTED: "[ ]",
}

VERIFICATION_MARKS: dict[VerificationState, tuple[str, str]] = {
    VerificationState.VERIFIED: ("✓", "success"),  # Check mark
    VerificationState.CORRUPT: ("✗", "error"),  # Ballot X
    VerificationState.UNKNOWN: ("", ""),
}


def common_prefix_length(a: str, b: str) -> int:
    """Number of leading characters two strings share."""
    return len(os.path.commonprefix([a, b]))


class OutputLog:
    """In-memory log of progress text with overwrite coalescing.

    An overwrite line replaces the final line instead of adding one.

    Example:
        >>> log = OutputLog()
        >>> log("50%", True)
        >>> log("100%", False)
        >>> log.lines
        ['100%']
    """

    def __init__(self) -> None:
        self._lines: list[str] = []

    def __call__(self, text: str, is_new_line: bool = True) -> None:
        self.add(text, is_new_line)

    def add(self, text: str, is_new_line: bool = True) -> None:
        """Append a line, or replace the final one if it is an overwrite."""
        if not is_new_line and self._lines:
            self._lines[-1] = text
        else:
            self._lines.append(text)

    def clear(self) -> None:
        """Remove every line."""
        self._lines.clear()

    @property
    def lines(self) -> list[str]:
        """Current lines, oldest first."""
        return list(self._lines)

    @property
    def text(self) -> str:
        """Current lines joined with newlines."""
        return "\n".join(self._lines)


class TerminalProgress:
    """Progress sink that writes engine output to a stream.

    On a terminal, an overwrite moves the cursor back over the part of
    the current line that differs from the new text and writes only the
    new suffix. Elsewhere, overwrites are coalesced and only the final
    version of each line is written.

    Args:
        stream: Output stream, defaults to the shared console's file.
        interactive: Whether stream is a terminal; defaults to the shared
            console's detection.
    """

    def __init__(self, stream: TextIO | None = None, interactive: bool | None = None) -> None:
        self._stream = stream if stream is not None else console.file
        self._interactive = console.is_terminal if interactive is None else interactive
        self._current: str | None = None
        self.log = OutputLog()

    def __call__(self, text: str, is_new_line: bool = True) -> None:
        self.log.add(text, is_new_line)
        if self._interactive:
            self._write_interactive(text, is_new_line)
        else:
            self._write_coalesced(text, is_new_line)

    def finish(self) -> None:
        """Terminate the current line."""
        if self._current is not None:
            if self._interactive:
                self._stream.write("\n")
            else:
                self._stream.write(f"{self._current}\n")
            self._stream.flush()
            self._current = None

    def _write_interactive(self, text: str, is_new_line: bool) -> None:
        previous = self._current
        if is_new_line or previous is None:
            if previous is not None:
                self._stream.write("\n")
            self._stream.write(text)
        else:
            keep = common_prefix_length(previous, text)
            erase = len(previous) - keep
            pad = max(0, len(previous) - len(text))
            self._stream.write("\b" * erase + text[keep:] + " " * pad + "\b" * pad)
        self._current = text
        self._stream.flush()

    def _write_coalesced(self, text: str, is_new_line: bool) -> None:
        if is_new_line and self._current is not None:
            self._stream.write(f"{self._current}\n")
            self._stream.flush()
        self._current = text


def _node_label(tree: DirectoryTree, node: DirectoryNode) -> Text:
    selection = tree.selection_state(node)
    if not tree.is_enabled(node):
        style = "dir.disabled"
    elif selection == SelectionState.SELECTED:
        style = "dir.selected"
    elif selection == SelectionState.INDETERMINATE:
        style = "dir.partial"
    else:
        style = "text"

    label = Text.assemble((SELECTION_GLYPHS[selection], style), " ", (node.name, style))
    mark, mark_style = VERIFICATION_MARKS[tree.verification_state(node)]
    if mark:
        label.append(f" {mark}", style=mark_style)
    if not node.accessible:
        label.append(" (unreadable)", style="muted")
    return label


def _file_label(entry: FileEntry) -> Text:
    return Text.assemble(
        (entry.name, "text"),
        " ",
        (entry.status.label.lower(), f"status.{entry.status.value}"),
    )


def build_tree(
    tree: DirectoryTree,
    node: DirectoryNode,
    depth: int = 1,
    show_files: bool = False,
) -> Tree:
    """Build a Rich tree of a directory and its subdirectories.

    Nodes marked expanded are always shown with their children, others
    only down to depth levels below node.

    Args:
        tree: Directory tree holding node.
        node: Directory at the top of the rendering.
        depth: Number of levels below node to show.
        show_files: Also list the files of every shown directory.

    Returns:
        Rich Tree ready for printing.
    """
    rendered = Tree(_node_label(tree, node), guide_style="border")
    _add_branches(tree, node, rendered, depth, show_files)
    return rendered


def _add_branches(
    tree: DirectoryTree,
    node: DirectoryNode,
    branch: Tree,
    depth: int,
    show_files: bool,
) -> None:
    if depth <= 0 and not node.expanded:
        return
    for child in tree.children(node):
        child_branch = branch.add(_node_label(tree, child))
        _add_branches(tree, child, child_branch, depth - 1, show_files)
    if show_files:
        for entry in tree.files(node):
            branch.add(_file_label(entry))


def print_files(files: list[FileEntry], title: str, relative_to: Path | None = None) -> None:
    """Print file entries as a table."""
    table = create_file_table(title)
    for entry in files:
        table.add_row(*format_file_row(entry, relative_to))
    console.print(table)


def print_operation_result(result: OperationResult, action: str) -> None:
    """Print the outcome of a bulk operation.

    Args:
        result: Result to report.
        action: Past-tense description, e.g. "Verified".
    """
    if result.outcome == OperationOutcome.CANCELLED:
        print_warning(f"Cancelled after {result.processed} directory(ies).")
        return
    if result.outcome == OperationOutcome.FAILED:
        for path in result.failed:
            print_error(f"Failed: {path}")
        console.print(
            f"\n[success]{result.succeeded} succeeded[/success], "
            f"[error]{len(result.failed)} failed[/error]"
        )
        return
    print_success(f"{action} {result.processed} directory(ies).")
