"""Forked child processes with delimiter-framed output relaying.

A ``ManagedProcess`` forks a child that runs a zero-argument callable with
its stdout and stderr redirected into pipes. The parent drains those pipes
without blocking and writes the output to configurable sinks, holding back
incomplete logical units (text not yet followed by the flush delimiter) so
that concurrent children never interleave mid-unit.
"""

import io
import os
import signal
import sys
import threading
import traceback
from typing import Callable, Dict, List, Optional, TextIO

from .enums import ReadStatus, StreamKind
from .errors import (
    PipeReadError,
    ProcessError,
    ProcessStartupError,
    RelayError,
    SinkWriteError,
)
from .framing import split_frames
from .log import get_logger, log_process_event
from .pipe import StreamPipe
from .types import ExitStatus, FLUSH_DELIMITER, FLUSH_DELIMITER_ENV
from ..utils.output import NullSink

logger = get_logger(__name__)

Work = Callable[[], Optional[int]]


def _unbuffered_text_stream(fd: int) -> TextIO:
    """Text stream over ``fd`` that hands every write straight to the OS."""
    return io.TextIOWrapper(
        io.FileIO(fd, "w", closefd=False),
        encoding="utf-8",
        errors="backslashreplace",
        write_through=True,
    )


def _exit_code_from(code: object) -> int:
    """Translate a ``SystemExit.code`` into a process exit status."""
    if code is None:
        return 0
    if isinstance(code, int):
        return code & 0xFF
    sys.stderr.write(f"{code}\n")
    return 1


class ManagedProcess:
    """One supervised child and the relaying of its output."""

    def __init__(
        self,
        infrastructure: bool = False,
        name: Optional[str] = None,
        delimiter: str = FLUSH_DELIMITER,
        read_chunk_size: int = 1024,
    ) -> None:
        self.pid: Optional[int] = None
        self.infrastructure = infrastructure
        self.name = name
        self.delimiter = delimiter
        self.read_chunk_size = read_chunk_size
        self.stdout: TextIO = sys.stdout
        self.stderr: TextIO = sys.stderr
        self.kill_issued = False
        self.last_signal: Optional[int] = None

        self._delimiter_bytes = delimiter.encode("utf-8")
        self._exit_status: Optional[ExitStatus] = None
        # Shared by the flush thread, the monitor loop and kill(). Reentrant
        # because kill() may run from a SIGINT handler on a thread that
        # already holds it.
        self._status_lock = threading.RLock()
        self._pipes: Dict[StreamKind, StreamPipe] = {}
        try:
            for kind in StreamKind:
                self._pipes[kind] = StreamPipe(kind)
        except ProcessStartupError:
            self.close()
            raise

    @classmethod
    def fork(cls, work: Work, **kwargs) -> "ManagedProcess":
        """Create a wrapper and start ``work`` in a new child."""
        return cls(**kwargs).start(work)

    def __repr__(self) -> str:
        return (
            f"ManagedProcess(name={self.name!r}, pid={self.pid}, "
            f"infrastructure={self.infrastructure})"
        )

    @property
    def label(self) -> str:
        return self.name or f"pid {self.pid}"

    def start(self, work: Work) -> "ManagedProcess":
        """Fork a child running ``work`` and return this handle.

        Raises:
            ProcessError: if this wrapper was already started
            ProcessStartupError: if the fork fails
        """
        if self.pid is not None:
            raise ProcessError(f"Process {self.label} already started")

        # Anything still buffered would otherwise be written twice.
        for stream in (sys.stdout, sys.stderr):
            try:
                stream.flush()
            except (OSError, ValueError):
                pass

        try:
            pid = os.fork()
        except OSError as e:
            self.close()
            raise ProcessStartupError(f"Failed to fork {self.label}: {e}") from e

        if pid == 0:
            exit_code = 1
            try:
                exit_code = self._run_child(work)
            finally:
                os._exit(exit_code)

        self.pid = pid
        for pipe in self._pipes.values():
            pipe.close_writer()
            pipe.set_nonblocking()
        log_process_event(
            logger,
            "started",
            pid=pid,
            process_name=self.name,
            infrastructure=self.infrastructure,
        )
        return self

    def _run_child(self, work: Work) -> int:
        """Child side of ``start``: rewire stdio, run the payload."""
        # The parent's handler must not run in the child.
        signal.signal(signal.SIGINT, signal.default_int_handler)
        os.environ[FLUSH_DELIMITER_ENV] = self.delimiter

        stdout_pipe = self._pipes[StreamKind.STDOUT]
        stderr_pipe = self._pipes[StreamKind.STDERR]
        os.close(stdout_pipe.reader)
        os.close(stderr_pipe.reader)
        os.dup2(stdout_pipe.writer, 1)
        os.dup2(stderr_pipe.writer, 2)
        for writer in (stdout_pipe.writer, stderr_pipe.writer):
            if writer not in (1, 2):
                os.close(writer)

        sys.stdout = _unbuffered_text_stream(1)
        sys.stderr = _unbuffered_text_stream(2)

        try:
            result = work()
        except SystemExit as e:
            return _exit_code_from(e.code)
        except KeyboardInterrupt:
            return 130
        except BaseException:  # pylint: disable=broad-exception-caught
            traceback.print_exc()
            return 1
        finally:
            for stream in (sys.stdout, sys.stderr):
                try:
                    stream.flush()
                except (OSError, ValueError):
                    pass
        return result & 0xFF if isinstance(result, int) else 0

    def flush(self, stream: StreamKind) -> None:
        """Drain one stream and write out whatever is ready.

        Infrastructure output, output of a child that is no longer running
        and output of a stream that reached end-of-file is written in full.
        Output of a running ordinary child is written up to the last flush
        delimiter; the trailing partial unit stays buffered.

        Raises:
            PipeReadError: on an I/O error other than would-block or EOF. The
                stream's buffer is written out and the stream is closed first.
            SinkWriteError: if the sink rejects the output. The stream keeps
                being drained into a discarding sink.
        """
        pipe = self._pipes[stream]
        # Sampled before draining: bytes written just before exit are then
        # already in the pipe when we decide the buffer is final.
        final = self.infrastructure or not self.running()
        try:
            if pipe.drain(self.read_chunk_size) is ReadStatus.CLOSED:
                final = True
        except OSError as e:
            try:
                self._echo(pipe, final=True)
            finally:
                pipe.close()
            logger.error(
                "Reading %s of %s failed: %s", stream.value, self.label, e
            )
            raise PipeReadError(
                f"Failed to read {stream.value} of {self.label}: {e}",
                pid=self.pid,
                stream=stream.value,
            ) from e
        self._echo(pipe, final)

    def flush_pipes(self) -> None:
        """Flush stdout, then stderr; re-raise the first relay error."""
        errors: List[RelayError] = []
        for stream in StreamKind:
            try:
                self.flush(stream)
            except RelayError as e:
                errors.append(e)
        if errors:
            raise errors[0]

    def _echo(self, pipe: StreamPipe, final: bool) -> None:
        if not pipe.buffer:
            return
        chunks, remainder = split_frames(pipe.buffer, self._delimiter_bytes, final)
        pipe.buffer[:] = remainder
        sink = self.stdout if pipe.kind is StreamKind.STDOUT else self.stderr
        text = "".join(pipe.decode(chunk) for chunk in chunks)
        if final and pipe.closed:
            text += pipe.decode(b"", final=True)
        if not text:
            return
        try:
            sink.write(text)
            sink.flush()
        except (OSError, ValueError) as e:
            if pipe.kind is StreamKind.STDOUT:
                self.stdout = NullSink()
            else:
                self.stderr = NullSink()
            logger.error(
                "Writing %s of %s failed, discarding it from now on: %s",
                pipe.kind.value,
                self.label,
                e,
            )
            raise SinkWriteError(
                f"Failed to write {pipe.kind.value} of {self.label}: {e}",
                pid=self.pid,
                stream=pipe.kind.value,
            ) from e

    def buffered(self, stream: StreamKind) -> bytes:
        """Bytes drained from ``stream`` but not yet written to its sink."""
        return bytes(self._pipes[stream].buffer)

    def open_fds(self) -> List[int]:
        """Reader fds that may still deliver output."""
        return [pipe.reader for pipe in self._pipes.values() if not pipe.closed]

    def kill(self) -> None:
        """Signal the child: SIGINT the first time, SIGTERM from then on."""
        if self.pid is None:
            raise ProcessError(f"Process {self.label} has not been started")
        # Held across the check and the signal so the child cannot be reaped
        # in between.
        with self._status_lock:
            sig = signal.SIGTERM if self.kill_issued else signal.SIGINT
            self.kill_issued = True
            if self._exit_status is not None:
                # The pid may already belong to someone else.
                logger.debug("Not signalling %s: already reaped", self.label)
                return
            self.last_signal = sig
            try:
                os.kill(self.pid, sig)
            except ProcessLookupError:
                logger.debug(
                    "Process %s already gone, %s not delivered", self.label, sig.name
                )
                return
        log_process_event(logger, "signalled", pid=self.pid, signal=sig.name)

    def running(self) -> bool:
        return self.exited_pid() is None

    def exited_pid(self) -> Optional[int]:
        """Pid of the child once it has terminated, else ``None``.

        The first terminated result is cached; ``waitpid`` is never issued
        again for a reaped child.
        """
        if self.pid is None:
            raise ProcessError(f"Process {self.label} has not been started")
        with self._status_lock:
            if self._exit_status is None:
                self._poll_exit_status()
            return None if self._exit_status is None else self._exit_status.pid

    def _poll_exit_status(self) -> None:
        try:
            pid, status = os.waitpid(self.pid, os.WNOHANG)
        except ChildProcessError:
            logger.warning("Process %s was reaped elsewhere", self.label)
            self._exit_status = ExitStatus(pid=self.pid)
            return
        if pid == 0:
            return
        self._exit_status = ExitStatus.from_wait_status(pid, status)
        log_process_event(
            logger, "exited", pid=pid, status=self._exit_status.describe()
        )

    @property
    def reaped(self) -> bool:
        """Whether an exit status has been observed, without polling."""
        return self._exit_status is not None

    @property
    def exit_status(self) -> Optional[ExitStatus]:
        return self._exit_status

    def close(self) -> None:
        """Release all pipe fds."""
        for pipe in self._pipes.values():
            pipe.close()
