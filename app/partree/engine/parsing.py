"""Staged parsing of par2j console reports.

par2j prints each report as a fixed sequence of sections (banner, then a
table header, then table rows, then a summary). A parser is an ordered
tuple of stages, one per section. Each line goes to the current stage
only; a stage either consumes the line (optionally producing a record)
or asks to advance, in which case the next line goes to the next stage.
The last stage always ignores everything, so unexpected output is never
an error.
"""

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from partree.engine.models import FramedLine, ProgressCallback, VerifyResult

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class StageResult(Generic[T]):
    """What a stage decided about one line.

    Attributes:
        advance: Move on to the next stage for all following lines.
        record: Extracted record, if the line produced one.
        printable: The line would stay visible on a console, so it should
            reach the progress callback even if it is an overwrite.
    """

    advance: bool = False
    record: T | None = None
    printable: bool = True


Stage = Callable[[str], StageResult[T]]


def ignore_line(line: str) -> StageResult[Any]:
    """Terminal stage: consume anything, produce nothing."""
    return StageResult()


class StagedParser(Generic[T]):
    """Feeds framed lines through an ordered tuple of stages.

    Args:
        stages: Stages in report order. A terminal no-op stage is appended.
        progress: Optional sink for console text. It receives every new
            line, and every overwrite line its stage marks printable.
    """

    def __init__(
        self,
        stages: Sequence[Stage[T]],
        progress: ProgressCallback | None = None,
    ) -> None:
        self._stages: tuple[Stage[T], ...] = (*stages, ignore_line)
        self._index = 0
        self._progress = progress
        self.results: list[T] = []

    @property
    def stage_index(self) -> int:
        """Index of the stage that will receive the next line."""
        return self._index

    @property
    def exhausted(self) -> bool:
        """True once only the terminal no-op stage remains."""
        return self._index == len(self._stages) - 1

    def feed(self, line: str, is_new_line: bool = True) -> T | None:
        """Parse one line.

        Args:
            line: Line text without terminator.
            is_new_line: False if the line overwrites the previous one.

        Returns:
            The record produced by this line, if any.
        """
        outcome = self._stages[self._index](line)
        record: T | None = None

        if outcome.advance:
            if not self.exhausted:
                self._index += 1
        elif outcome.record is not None:
            record = outcome.record
            self.results.append(record)

        if self._progress is not None and (outcome.printable or is_new_line):
            self._progress(line, is_new_line)

        return record

    def feed_all(self, lines: Iterable[FramedLine]) -> list[T]:
        """Parse a whole transcript and return the accumulated records."""
        for line in lines:
            self.feed(line.text, line.is_new_line)
        return self.results


# =============================================================================
# list: "Size Slice [MD5 Hash] : Filename" table
# =============================================================================

_LIST_HEADER = re.compile(r"\s+Size\s+Slice\s+(?:MD5 Hash\s+)?:\s+Filename")
_LIST_ROW = re.compile(r'\s+[\d?]+\s+[\d?]+\s+(?:[\da-fA-F?]+\s+)?:\s+"(.*[^/])"')


def until_list_header(line: str) -> StageResult[str]:
    """Skip the banner up to and including the file table header."""
    return StageResult(advance=_LIST_HEADER.search(line) is not None)


def list_row(line: str) -> StageResult[str]:
    """Extract the filename from one file table row.

    Directory entries (trailing slash) do not match and end the table.
    """
    match = _LIST_ROW.search(line)
    if match is None:
        return StageResult(advance=True)
    return StageResult(record=match.group(1))


LIST_STAGES: tuple[Stage[str], ...] = (until_list_header, list_row)


# =============================================================================
# verify: "Size Status : Filename" table
# =============================================================================

_VERIFY_HEADER = re.compile(r"\s+Size\s+Status\s+:\s+Filename")
# Archive loading rows and their progress counters start with a number
_LOADING_LINE = re.compile(r"^\s*(\d+\.?\d*)(%)?(?:[^:]*)(:)?")
_PROGRESS_ONLY = re.compile(r"^\s*\d+\.?\d*(%)?\s*$")
_VERIFY_ROW = re.compile(r'.+\s+(\S+)\s+:\s+"(.+)"')


def until_verify_header(line: str) -> StageResult[VerifyResult]:
    """Skip archive loading output up to and including the verify table header.

    Bare loading counters are redrawn in place and are not console text.
    """
    if _VERIFY_HEADER.search(line) is not None:
        return StageResult(advance=True)

    match = _LOADING_LINE.match(line)
    if match is None:
        return StageResult()
    return StageResult(printable=bool(match.group(2) or match.group(3)))


def verify_row(line: str) -> StageResult[VerifyResult]:
    """Extract filename and status token from one verify table row.

    Lines that are only a number (optionally a percentage) are progress
    counters drawn between rows; they are skipped.
    """
    progress = _PROGRESS_ONLY.match(line)
    if progress is not None:
        return StageResult(printable=progress.group(1) is not None)

    match = _VERIFY_ROW.search(line)
    if match is None:
        return StageResult(advance=True)
    return StageResult(record=VerifyResult(filename=match.group(2), status=match.group(1)))


VERIFY_STAGES: tuple[Stage[VerifyResult], ...] = (until_verify_header, verify_row)


def parse_file_list(lines: Iterable[FramedLine]) -> list[str]:
    """Parse a complete ``list`` transcript into filenames."""
    return StagedParser(LIST_STAGES).feed_all(lines)


def parse_verify_results(lines: Iterable[FramedLine]) -> list[VerifyResult]:
    """Parse a complete ``verify`` transcript into per-file results."""
    return StagedParser(VERIFY_STAGES).feed_all(lines)
