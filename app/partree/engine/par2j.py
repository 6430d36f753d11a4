"""par2j recovery engine implementation.

Runs the par2j command line tool (MultiPar's PAR2 client) with UTF-8
output (``/uo``) and parses its console reports.
"""

import logging
import os
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from partree.core.config import DEFAULT_ENGINE_NAME
from partree.engine.base import EXIT_SUCCESS, EngineError, EngineNotFoundError, RecoveryEngine
from partree.engine.framing import DEFAULT_CHUNK_SIZE
from partree.engine.models import ProgressCallback, VerifyResult
from partree.engine.parsing import LIST_STAGES, VERIFY_STAGES, StagedParser
from partree.utils.shell import command_exists, stream_command

logger = logging.getLogger(__name__)

# par2j: "repair not needed, all files are complete"
EXIT_REPAIR_NOT_NEEDED = 16


def format_redundancy(percent: float) -> str:
    """Format a redundancy percentage as a compact decimal.

    At most two decimals, without trailing zeros (10.0 -> "10",
    12.5 -> "12.5", 0.125 -> "0.13").
    """
    return f"{percent:.2f}".rstrip("0").rstrip(".")


def find_hidden_files(input_dir: Path, skip_dirs: Iterable[str] = ()) -> list[Path]:
    """Find dot-files below input_dir, recursively.

    par2j's ``*`` wildcard skips hidden entries, so they have to be
    passed individually.

    Args:
        input_dir: Directory to search.
        skip_dirs: Directory names not to descend into.

    Returns:
        Sorted hidden files, including files inside hidden directories.
    """
    skipped = set(skip_dirs)
    hidden: list[Path] = []

    for dirpath, dirnames, filenames in os.walk(input_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in skipped)
        current = Path(dirpath)
        in_hidden_dir = any(part.startswith(".") for part in current.relative_to(input_dir).parts)
        for name in filenames:
            if in_hidden_dir or name.startswith("."):
                hidden.append(current / name)

    return sorted(hidden)


class Par2jEngine(RecoveryEngine):
    """Recovery engine backed by the par2j executable.

    Args:
        command: Executable name or path.
        skip_dirs: Directory names excluded when collecting hidden files
            (the recovery-storage directory).
        chunk_size: Maximum bytes per read from the engine's stdout.
    """

    def __init__(
        self,
        command: str = DEFAULT_ENGINE_NAME,
        *,
        skip_dirs: Iterable[str] = (),
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._command = command
        self._skip_dirs = tuple(skip_dirs)
        self._chunk_size = chunk_size

    @property
    def command(self) -> str:
        """Return the executable this engine runs."""
        return self._command

    def is_available(self) -> bool:
        """Check if the par2j executable can be found."""
        return command_exists(self._command)

    def create(
        self,
        input_dir: Path,
        archive: Path,
        redundancy_percent: float,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Create an archive covering input_dir with the given redundancy."""
        hidden = find_hidden_files(input_dir, self._skip_dirs)
        return self._run(
            [
                "create",
                "/uo",
                f"/rr{format_redundancy(redundancy_percent)}",
                str(archive),
                str(input_dir / "*"),
                *(str(path) for path in hidden),
            ],
            progress,
            cancel,
        )

    def list_files(self, archive: Path) -> list[str]:
        """List the filenames stored in an archive."""
        parser: StagedParser[str] = StagedParser(LIST_STAGES)
        exit_code = self._run(["list", "/uo", str(archive)], parser.feed, None)
        if exit_code != EXIT_SUCCESS:
            logger.warning("par2j list of %s exited with code %d", archive, exit_code)
        return list(parser.results)

    def verify(
        self,
        input_dir: Path,
        archive: Path,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> list[VerifyResult]:
        """Verify input_dir against an archive, returning per-file tokens.

        Raises:
            EngineError: If par2j exits with an error before printing the
                verify table.
        """
        parser: StagedParser[VerifyResult] = StagedParser(VERIFY_STAGES, progress=progress)
        exit_code = self._run(
            ["verify", "/uo", f"/d{input_dir}", str(archive)],
            parser.feed,
            cancel,
        )
        cancelled = cancel is not None and cancel.is_set()
        if exit_code != EXIT_SUCCESS and parser.stage_index == 0 and not cancelled:
            msg = f"par2j verify of {input_dir} failed with exit code {exit_code}"
            raise EngineError(msg)
        # Non-zero when damage was found; the table carries the details
        logger.debug("par2j verify of %s exited with code %d", input_dir, exit_code)
        return list(parser.results)

    def repair(
        self,
        input_dir: Path,
        archive: Path,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Repair input_dir from an archive."""
        return self._run(
            ["repair", "/uo", f"/d{input_dir}", str(archive)],
            progress,
            cancel,
        )

    def is_repair_success(self, exit_code: int) -> bool:
        """Treat "nothing to repair" as success as well."""
        return exit_code in (EXIT_SUCCESS, EXIT_REPAIR_NOT_NEEDED)

    def _run(
        self,
        args: list[str],
        on_line: Callable[[str, bool], object] | None,
        cancel: threading.Event | None,
    ) -> int:
        """Run par2j with the given verb and arguments.

        Raises:
            EngineNotFoundError: If the executable cannot be started.
        """
        command = [self._command, *args]
        try:
            return stream_command(
                command,
                on_line=on_line,
                cancel=cancel,
                chunk_size=self._chunk_size,
            )
        except FileNotFoundError as e:
            msg = f"par2j executable not found: {self._command}"
            raise EngineNotFoundError(msg) from e
        except OSError as e:
            msg = f"Failed to run par2j: {e}"
            raise EngineNotFoundError(msg) from e
