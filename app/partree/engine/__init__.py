"""Recovery engine adapter for partree.

This module exports the engine interface and the output parsing pipeline.
The par2j implementation lives in partree.engine.par2j.
"""

from partree.engine.base import EngineError, EngineNotFoundError, RecoveryEngine
from partree.engine.framing import LineFramer, frame_stream
from partree.engine.models import FramedLine, ProgressCallback, VerifyResult
from partree.engine.parsing import (
    LIST_STAGES,
    VERIFY_STAGES,
    StagedParser,
    StageResult,
    parse_file_list,
    parse_verify_results,
)

__all__ = [
    "LIST_STAGES",
    "VERIFY_STAGES",
    "EngineError",
    "EngineNotFoundError",
    "FramedLine",
    "LineFramer",
    "ProgressCallback",
    "RecoveryEngine",
    "StageResult",
    "StagedParser",
    "VerifyResult",
    "frame_stream",
    "parse_file_list",
    "parse_verify_results",
]
