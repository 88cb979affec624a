"""Child process plumbing for cursor-agent turns.

- LineBuffer / iter_lines: split raw stdout chunks into text lines
- ExitJoin: wait for both "process exited" and "reader closed"
- terminate_process: SIGTERM with a SIGKILL fallback
"""

from __future__ import annotations

import asyncio
import codecs
from collections.abc import AsyncIterator

from cursoracp.logging import get_logger

log = get_logger("process")

CHUNK_SIZE = 64 * 1024


class LineBuffer:
    """Incremental UTF-8 line splitter over raw output chunks.

    Multi-byte characters split across chunks are reassembled; invalid bytes
    are replaced rather than raising.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Add a chunk and return every line it completed."""
        self._pending += self._decoder.decode(chunk)
        if "\n" not in self._pending:
            return []
        *lines, self._pending = self._pending.split("\n")
        return [line.removesuffix("\r") for line in lines]

    def close(self) -> list[str]:
        """Flush the decoder and return a trailing unterminated line, if any."""
        rest = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        rest = rest.removesuffix("\r")
        return [rest] if rest else []


async def iter_lines(
    stream: asyncio.StreamReader, chunk_size: int = CHUNK_SIZE
) -> AsyncIterator[str]:
    """Yield text lines from ``stream`` until EOF.

    Lines are not limited by the StreamReader's buffer size, which matters
    for large tool results emitted on a single line.
    """
    buffer = LineBuffer()
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        for line in buffer.feed(chunk):
            yield line
    for line in buffer.close():
        yield line


class ExitJoin:
    """Join of the two signals that end a turn.

    The process can be reaped slightly before its stdout reader has
    delivered the last buffered lines, so finalizing waits for the reader
    too, bounded by a grace period.
    """

    def __init__(self) -> None:
        self.exited = False
        self.exit_code: int | None = None
        self.reader_closed = False
        self._reader_done = asyncio.Event()

    def mark_exited(self, exit_code: int | None) -> None:
        self.exited = True
        self.exit_code = exit_code

    def mark_reader_closed(self) -> None:
        self.reader_closed = True
        self._reader_done.set()

    @property
    def complete(self) -> bool:
        return self.exited and self.reader_closed

    async def wait_reader(self, grace: float) -> bool:
        """Wait up to ``grace`` seconds for the reader; True if it closed."""
        if self.reader_closed:
            return True
        try:
            await asyncio.wait_for(self._reader_done.wait(), timeout=grace)
        except asyncio.TimeoutError:
            return False
        return True


async def terminate_process(
    process: asyncio.subprocess.Process, kill_timeout: float = 1.0
) -> None:
    """Ask ``process`` to stop, killing it if it outlives ``kill_timeout``.

    Signalling a process that already exited is not an error.
    """
    if process.returncode is not None:
        return

    try:
        process.terminate()
    except ProcessLookupError:
        return

    try:
        await asyncio.wait_for(process.wait(), timeout=kill_timeout)
    except asyncio.TimeoutError:
        log.warning("Process %s ignored SIGTERM, killing", process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            pass
