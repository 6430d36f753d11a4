"""Data passed between the recovery engine and its callers."""

from collections.abc import Callable
from dataclasses import dataclass

# Receives (text, is_new_line); is_new_line=False replaces the previous line.
ProgressCallback = Callable[[str, bool], object]


@dataclass(frozen=True, slots=True)
class FramedLine:
    """One line reconstructed from a subprocess character stream.

    Attributes:
        text: Line content without its terminator.
        is_new_line: False if this line overwrites the previously emitted
            one (it followed a bare carriage return).
    """

    text: str
    is_new_line: bool = True


@dataclass(frozen=True, slots=True)
class VerifyResult:
    """Per-file outcome reported by the engine's verify table.

    Attributes:
        filename: Path relative to the verified directory, as printed.
        status: Raw status token (e.g. "Complete", "Missing", "Damaged").
    """

    filename: str
    status: str
