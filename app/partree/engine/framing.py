"""Line reconstruction from a raw subprocess character stream.

Console tools that draw progress indicators return to the start of the
current line with a bare carriage return and print over it. Reading
stdout line by line loses that distinction, so the stream is consumed
in chunks and split here instead:

- ``\\n``, ``\\r`` and ``\\r\\n`` each end a line (``\\r\\n`` counts once).
- The terminator *before* a line classifies it: after a bare ``\\r`` the
  line is an overwrite, after anything else it is a new line.
"""

import codecs
import re
from collections.abc import Iterator
from typing import BinaryIO

from partree.engine.models import FramedLine

_TERMINATOR = re.compile(r"[\r\n]")

DEFAULT_CHUNK_SIZE = 256


class LineFramer:
    """Incremental splitter for a character stream with CR overwrites.

    Feed it chunks of any size; each call returns the lines completed so
    far. A line is emitted as soon as its terminator has been seen.

    Example:
        >>> framer = LineFramer()
        >>> framer.feed("50%\\r100%\\r\\n")
        [FramedLine(text='50%', is_new_line=True), FramedLine(text='100%', is_new_line=False)]
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._next_is_new = True
        # A trailing "\r" may be the first half of "\r\n"
        self._pending_cr = False

    def feed(self, chunk: str) -> list[FramedLine]:
        """Add characters and return every line they complete.

        Args:
            chunk: Next characters from the stream.

        Returns:
            Completed lines, in stream order.
        """
        self._buffer += chunk
        return self._drain()

    def close(self) -> list[FramedLine]:
        """Flush unterminated trailing characters at end of stream.

        Returns:
            The final partial line, if any characters were left over.
        """
        lines = self._drain()
        if self._buffer:
            lines.append(FramedLine(self._buffer, self._next_is_new))
        self._buffer = ""
        self._next_is_new = True
        self._pending_cr = False
        return lines

    def _drain(self) -> list[FramedLine]:
        lines: list[FramedLine] = []

        while True:
            if self._pending_cr:
                if not self._buffer:
                    break
                if self._buffer[0] == "\n":
                    self._buffer = self._buffer[1:]
                    self._next_is_new = True
                else:
                    self._next_is_new = False
                self._pending_cr = False

            match = _TERMINATOR.search(self._buffer)
            if match is None:
                break

            end = match.start()
            lines.append(FramedLine(self._buffer[:end], self._next_is_new))

            if self._buffer[end] == "\n":
                self._next_is_new = True
            else:
                self._pending_cr = True
            self._buffer = self._buffer[end + 1 :]

        return lines


def frame_stream(
    stream: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    encoding: str = "utf-8",
) -> Iterator[FramedLine]:
    """Yield framed lines from a binary stream until it closes.

    Uses ``read1`` where available so that a pipe yields whatever is
    ready instead of blocking until a full chunk has arrived.

    Args:
        stream: Binary stream, typically ``Popen.stdout``.
        chunk_size: Maximum bytes per read.
        encoding: Text encoding of the stream.

    Yields:
        FramedLine for each reconstructed line.
    """
    read = getattr(stream, "read1", stream.read)
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    framer = LineFramer()

    while True:
        data = read(chunk_size)
        if not data:
            break
        yield from framer.feed(decoder.decode(data))

    yield from framer.feed(decoder.decode(b"", final=True))
    yield from framer.close()
