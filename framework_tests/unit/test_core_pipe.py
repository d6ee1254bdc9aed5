"""Unit tests for core/pipe.py using real OS pipes."""

import os

import pytest

from specstorm.core.enums import ReadStatus, StreamKind
from specstorm.core.pipe import StreamPipe, read_chunk


class TestReadChunk:
    """Test tri-state non-blocking reads."""

    def setup_method(self):
        """Set up a non-blocking pipe."""
        self.reader, self.writer = os.pipe()
        os.set_blocking(self.reader, False)

    def teardown_method(self):
        """Close whatever is still open."""
        for fd in (self.reader, self.writer):
            try:
                os.close(fd)
            except OSError:
                pass

    def test_empty_pipe_would_block(self):
        """Test reading an empty open pipe reports WOULD_BLOCK."""
        assert read_chunk(self.reader, 16) == (ReadStatus.WOULD_BLOCK, b"")

    def test_data_is_returned(self):
        """Test available bytes are returned with DATA."""
        os.write(self.writer, b"hello")

        assert read_chunk(self.reader, 16) == (ReadStatus.DATA, b"hello")

    def test_closed_writer_reports_closed(self):
        """Test end-of-stream is reported as CLOSED."""
        os.close(self.writer)

        assert read_chunk(self.reader, 16) == (ReadStatus.CLOSED, b"")

    def test_other_errors_propagate(self):
        """Test unexpected errors such as a bad fd are raised."""
        os.close(self.reader)

        with pytest.raises(OSError):
            read_chunk(self.reader, 16)


class TestStreamPipe:
    """Test StreamPipe buffering."""

    def setup_method(self):
        """Create a pipe."""
        self.pipe = StreamPipe(StreamKind.STDOUT)
        self.pipe.set_nonblocking()

    def teardown_method(self):
        """Release fds."""
        self.pipe.close()

    def test_drain_reads_in_small_chunks(self):
        """Test drain loops until the pipe is empty."""
        os.write(self.pipe.writer, b"0123456789")

        status = self.pipe.drain(3)

        assert status is ReadStatus.WOULD_BLOCK
        assert bytes(self.pipe.buffer) == b"0123456789"
        assert not self.pipe.closed

    def test_drain_to_eof_closes_reader(self):
        """Test end-of-stream closes the pipe after reading remaining data."""
        os.write(self.pipe.writer, b"last words")
        self.pipe.close_writer()

        status = self.pipe.drain(1024)

        assert status is ReadStatus.CLOSED
        assert bytes(self.pipe.buffer) == b"last words"
        assert self.pipe.closed
        assert self.pipe.fileno is None
        assert self.pipe.drain(1024) is ReadStatus.CLOSED

    def test_decode_carries_split_multibyte_sequence(self):
        """Test a character split across chunks decodes once complete."""
        data = "é".encode("utf-8")

        assert self.pipe.decode(data[:1]) == ""
        assert self.pipe.decode(data[1:]) == "é"

    def test_close_is_idempotent(self):
        """Test closing twice does not raise."""
        self.pipe.close()
        self.pipe.close()

        assert self.pipe.closed
        assert self.pipe.writer is None
