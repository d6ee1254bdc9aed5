"""Error hierarchy for specstorm."""

from typing import Optional, Dict, Any


class SpecstormError(Exception):
    """Base exception for all specstorm errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# Configuration Errors
class ConfigurationError(SpecstormError):
    """Error in configuration loading or validation."""


# Process Errors
class ProcessError(SpecstormError):
    """Base class for errors concerning a supervised child process."""


class ProcessStartupError(ProcessError):
    """Creating pipes or forking the child failed."""


class RelayError(ProcessError):
    """One stream of a child can no longer be relayed.

    Only that stream is affected; the child and its other stream are
    still supervised.
    """

    def __init__(
        self,
        message: str,
        pid: Optional[int] = None,
        stream: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.pid = pid
        self.stream = stream


class PipeReadError(RelayError):
    """Unexpected I/O error while draining a child's output pipe.

    Would-block and end-of-stream are not errors; anything else is fatal to
    the affected stream, which is flushed and closed before this is raised.
    """


class SinkWriteError(RelayError):
    """Writing a child's output to its sink failed.

    The sink is replaced with a discarding one so the pipe keeps being
    drained.
    """


# Supervision Errors
class SupervisorError(SpecstormError):
    """Supervisor used outside its lifecycle (e.g. spawn after interrupt)."""


# Payload Errors
class ServerError(SpecstormError):
    """Coordination server failed to start or serve."""
