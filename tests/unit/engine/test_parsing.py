"""Unit tests for staged parsing of par2j reports."""

from partree.engine.models import FramedLine, VerifyResult
from partree.engine.parsing import (
    LIST_STAGES,
    VERIFY_STAGES,
    StagedParser,
    StageResult,
    parse_file_list,
    parse_verify_results,
)
from partree.tree.models import FileStatus

LIST_TRANSCRIPT = """\
Parchive 2.0 client version 1.3.3.0 by Yutaka Sawada

Input File count        : 3
Input File total size   : 350
 Input File list        :
      Size  Slice  MD5 Hash                          :  Filename
       100      1  0cc175b9c0f1b6a831c399e269772661  : "docs/readme.txt"
       200      2  92eb5ffee6ae2fec3ad71c777531578f  : "docs/sub/data.bin"
        50      1  4a8a08f09d37b73795649038408b5f33  : "notes.txt"

Recovery Slice count    : 2
"""

VERIFY_TRANSCRIPT = """\
Parchive 2.0 client version 1.3.3.0 by Yutaka Sawada

Loading PAR File       :
 Packet Slice Status   :  Filename
    12     2 Good      : "docs.par2"
Recovery Slice found    : 2

Verifying Input File   :
     Size Status   :  Filename
       100 Complete : "readme.txt"
  50.0%
        50 Damaged  : "sub/data.bin"
         0 Missing  : "notes.txt"

Input File Slice found  : 1
"""


def _lines(text: str) -> list[FramedLine]:
    return [FramedLine(line) for line in text.splitlines()]


class TestStagedParser:
    """Tests for the generic stage driver."""

    def test_advancing_line_is_not_reparsed(self) -> None:
        """The line that ends a stage doesn't reach the next stage."""
        seen: list[str] = []

        def first(line: str) -> StageResult[str]:
            return StageResult(advance=line == "header")

        def second(line: str) -> StageResult[str]:
            seen.append(line)
            return StageResult(record=line)

        parser = StagedParser([first, second])
        parser.feed_all(_lines("banner\nheader\nrow1\nrow2"))

        assert seen == ["row1", "row2"]
        assert parser.results == ["row1", "row2"]

    def test_terminal_stage_ignores_everything(self) -> None:
        """Once exhausted, further lines are ignored without error."""
        parser = StagedParser([lambda line: StageResult(advance=True)])

        parser.feed("anything")

        assert parser.exhausted
        parser.feed("more")
        parser.feed("")
        assert parser.results == []
        assert parser.stage_index == 1

    def test_progress_receives_new_lines(self) -> None:
        """New lines are forwarded even if their stage marks them internal."""
        received: list[tuple[str, bool]] = []
        parser = StagedParser(
            [lambda line: StageResult(printable=False)],
            progress=lambda text, new: received.append((text, new)),
        )

        parser.feed("kept", True)
        parser.feed("dropped", False)

        assert received == [("kept", True)]


class TestListGrammar:
    """Tests for the list report grammar."""

    def test_minimal_transcript(self) -> None:
        """A header followed by one row yields that filename."""
        lines = [
            FramedLine("  Size  Slice  MD5 Hash  :  Filename"),
            FramedLine('  100   1   aabbcc  : "docs/readme.txt"'),
        ]

        assert parse_file_list(lines) == ["docs/readme.txt"]

    def test_full_transcript(self) -> None:
        """Every row of the file table is extracted, nothing else."""
        assert parse_file_list(_lines(LIST_TRANSCRIPT)) == [
            "docs/readme.txt",
            "docs/sub/data.bin",
            "notes.txt",
        ]

    def test_rows_without_hash_column(self) -> None:
        """The MD5 column is optional."""
        lines = _lines('   Size  Slice  :  Filename\n   10   1  : "a.txt"\n   ?   ?  : "b.txt"')

        assert parse_file_list(lines) == ["a.txt", "b.txt"]

    def test_directory_entry_ends_table(self) -> None:
        """Entries with a trailing slash are not files."""
        lines = _lines('  Size  Slice  :  Filename\n  0  0  : "empty/"\n  10  1  : "late.txt"')

        assert parse_file_list(lines) == []

    def test_rows_before_header_are_ignored(self) -> None:
        """Row-shaped text before the header isn't a file."""
        lines = _lines('  10  1  : "early.txt"\n  Size  Slice  :  Filename\n  10  1  : "a.txt"')

        assert parse_file_list(lines) == ["a.txt"]

    def test_no_header(self) -> None:
        """Output without a file table yields nothing."""
        assert parse_file_list(_lines("Error: cannot open file\n")) == []


class TestVerifyGrammar:
    """Tests for the verify report grammar."""

    def test_minimal_transcript(self) -> None:
        """Rows yield filename/status pairs that map to file statuses."""
        lines = [
            FramedLine("     Size Status   :  Filename"),
            FramedLine('  100  Complete  : "a.txt"'),
            FramedLine('  50  Damaged  : "b.txt"'),
        ]

        results = parse_verify_results(lines)

        assert results == [
            VerifyResult("a.txt", "Complete"),
            VerifyResult("b.txt", "Damaged"),
        ]
        assert [FileStatus.from_engine_token(r.status) for r in results] == [
            FileStatus.COMPLETE,
            FileStatus.CORRUPT,
        ]

    def test_full_transcript(self) -> None:
        """Archive loading rows are skipped, progress counters ignored."""
        assert parse_verify_results(_lines(VERIFY_TRANSCRIPT)) == [
            VerifyResult("readme.txt", "Complete"),
            VerifyResult("sub/data.bin", "Damaged"),
            VerifyResult("notes.txt", "Missing"),
        ]

    def test_filenames_with_spaces(self) -> None:
        """The filename is everything between the quotes."""
        lines = _lines('  Size Status  :  Filename\n  10 Complete : "my file.txt"')

        assert parse_verify_results(lines) == [VerifyResult("my file.txt", "Complete")]

    def test_progress_overwrites_filtered(self) -> None:
        """Bare counters redrawn in place are not console text; percentages are."""
        received: list[tuple[str, bool]] = []
        parser = StagedParser(
            VERIFY_STAGES, progress=lambda text, new: received.append((text, new))
        )

        parser.feed("Loading PAR File")
        parser.feed("  12", False)
        parser.feed(" 40.0%", False)
        parser.feed("  Size Status  :  Filename")
        parser.feed("  7", False)
        parser.feed(" 50.0%", False)
        parser.feed('  10 Complete : "a.txt"')

        assert received == [
            ("Loading PAR File", True),
            (" 40.0%", False),
            ("  Size Status  :  Filename", True),
            (" 50.0%", False),
            ('  10 Complete : "a.txt"', True),
        ]
        assert parser.results == [VerifyResult("a.txt", "Complete")]

    def test_list_stages_are_independent(self) -> None:
        """Each parser instance has its own position and results."""
        first = StagedParser(LIST_STAGES)
        second = StagedParser(LIST_STAGES)

        first.feed("  Size  Slice  :  Filename")

        assert first.stage_index == 1
        assert second.stage_index == 0
