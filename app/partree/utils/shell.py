"""Shell execution utilities.

Provides subprocess execution with streamed, framed stdout and
cancellation by killing the child process group.
"""

import contextlib
import logging
import os
import shutil
import signal
import subprocess
import threading
from collections.abc import Callable

from partree.engine.framing import DEFAULT_CHUNK_SIZE, frame_stream

logger = logging.getLogger(__name__)

# How often the cancel watcher checks whether the process has exited
_CANCEL_POLL_SECONDS = 0.1


def command_exists(name: str) -> bool:
    """Check if a command exists in the system PATH.

    Args:
        name: Command name (or path) to check.

    Returns:
        True if command exists, False otherwise.
    """
    return shutil.which(name) is not None


def _kill(process: subprocess.Popen[bytes]) -> None:
    """Kill the process and everything it started.

    Wrapper scripts and wine run the real engine as a grandchild that
    holds the output pipe open.
    """
    with contextlib.suppress(ProcessLookupError):
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()


def _kill_when_cancelled(process: subprocess.Popen[bytes], cancel: threading.Event) -> None:
    """Kill the process as soon as cancel is set, or return once it exits."""
    while process.poll() is None:
        if cancel.wait(_CANCEL_POLL_SECONDS):
            logger.info("Cancelled, killing process group %d", process.pid)
            _kill(process)
            return


def stream_command(
    args: list[str],
    *,
    on_line: Callable[[str, bool], object] | None = None,
    cancel: threading.Event | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cwd: str | None = None,
) -> int:
    """Execute a command, delivering its output line by line as it arrives.

    Stdout and stderr are merged and split with the carriage-return aware
    line framer, so progress redraws arrive as ``is_new_line=False``.
    The command runs in its own process group. There is no graceful
    shutdown on cancel: the whole group is killed.

    Args:
        args: Command and arguments to execute.
        on_line: Receives ``(text, is_new_line)`` per line. If None, output
            is discarded.
        cancel: Event that kills the process when set.
        chunk_size: Maximum bytes per read from the pipe.
        cwd: Working directory for the command.

    Returns:
        Exit code of the command (negative if killed by a signal).

    Raises:
        FileNotFoundError: If command executable is not found.
        OSError: If command cannot be executed.
    """
    logger.debug("Running: %s", " ".join(args))
    process = subprocess.Popen(
        args,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE if on_line is not None else subprocess.DEVNULL,
        stderr=subprocess.STDOUT,
        cwd=cwd,
        start_new_session=os.name == "posix",
    )

    watcher: threading.Thread | None = None
    if cancel is not None:
        watcher = threading.Thread(
            target=_kill_when_cancelled,
            args=(process, cancel),
            name="partree-cancel-watch",
            daemon=True,
        )
        watcher.start()

    try:
        if on_line is not None and process.stdout is not None:
            for line in frame_stream(process.stdout, chunk_size):
                if cancel is not None and cancel.is_set():
                    break
                on_line(line.text, line.is_new_line)
        if cancel is not None and cancel.is_set():
            _kill(process)
        returncode = process.wait()
    finally:
        if process.poll() is None:
            _kill(process)
            process.wait()
        if process.stdout is not None:
            process.stdout.close()

    if watcher is not None:
        watcher.join()

    logger.debug("%s exited with code %d", args[0], returncode)
    return returncode
