"""Output helpers for the parent console and for payloads running in children."""

import os
import sys
from typing import Optional, TextIO

from ..core.types import FLUSH_DELIMITER_ENV


class NullSink:
    """Sink that discards everything written to it."""

    def write(self, text: str) -> int:
        return len(text)

    def flush(self) -> None:
        pass


def write_stdout(message: str, flush: bool = True) -> None:
    """Write message to stdout with optional flushing."""
    sys.stdout.write(message)
    if flush:
        sys.stdout.flush()


def print_status(message: str, prefix: Optional[str] = None) -> None:
    """Print a status line to stdout.

    Status lines are the user-facing part of the supervision contract
    (e.g. why a session ended) and are never routed through logging.
    """
    if prefix:
        write_stdout(f"{prefix} {message}\n")
    else:
        write_stdout(f"{message}\n")


def flush_delimiter() -> Optional[str]:
    """Delimiter the supervising parent frames output with, if any."""
    return os.environ.get(FLUSH_DELIMITER_ENV)


def end_unit(stream: Optional[TextIO] = None) -> None:
    """Mark the end of a logical output unit on ``stream`` (default stdout).

    Outside a supervised child this is a no-op apart from flushing.
    """
    stream = stream or sys.stdout
    delimiter = flush_delimiter()
    if delimiter:
        stream.write(delimiter)
    stream.flush()
