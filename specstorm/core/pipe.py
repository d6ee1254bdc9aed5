"""Pipe endpoints for child output with non-blocking, tri-state reads."""

import codecs
import os
from typing import Optional, Tuple

from .enums import ReadStatus, StreamKind
from .errors import ProcessStartupError


def read_chunk(fd: int, size: int) -> Tuple[ReadStatus, bytes]:
    """Read at most ``size`` bytes from a non-blocking fd.

    Would-block and end-of-stream are reported as statuses. Any other
    ``OSError`` propagates to the caller.
    """
    try:
        data = os.read(fd, size)
    except (BlockingIOError, InterruptedError):
        return ReadStatus.WOULD_BLOCK, b""
    if not data:
        return ReadStatus.CLOSED, b""
    return ReadStatus.DATA, data


class StreamPipe:
    """One child stream: the pipe pair, its byte buffer and text decoder.

    The writer end belongs to the child and is closed in the parent right
    after fork; the reader end is only ever read by the parent.
    """

    def __init__(self, kind: StreamKind) -> None:
        self.kind = kind
        try:
            self.reader, self.writer = os.pipe()
        except OSError as e:
            raise ProcessStartupError(
                f"Failed to create {kind.value} pipe: {e}"
            ) from e
        self.buffer = bytearray()
        self.closed = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def fileno(self) -> Optional[int]:
        """Reader fd while the stream is still open, else ``None``."""
        return None if self.closed else self.reader

    def close_writer(self) -> None:
        if self.writer is not None:
            os.close(self.writer)
            self.writer = None

    def set_nonblocking(self) -> None:
        os.set_blocking(self.reader, False)

    def drain(self, chunk_size: int) -> ReadStatus:
        """Append everything currently readable to the buffer.

        Returns the status that ended the drain: ``WOULD_BLOCK`` or
        ``CLOSED``. Reaching end-of-stream closes the reader.
        """
        if self.closed:
            return ReadStatus.CLOSED
        while True:
            status, data = read_chunk(self.reader, chunk_size)
            if status is ReadStatus.DATA:
                self.buffer.extend(data)
                continue
            if status is ReadStatus.CLOSED:
                self.close()
            return status

    def decode(self, chunk: bytes, final: bool = False) -> str:
        """Decode a chunk, carrying split multi-byte sequences over."""
        return self._decoder.decode(chunk, final)

    def close(self) -> None:
        """Close the reader end; further drains report ``CLOSED``."""
        if not self.closed:
            self.closed = True
            try:
                os.close(self.reader)
            except OSError:
                pass
        self.close_writer()
