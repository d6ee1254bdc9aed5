"""Core enumerations for specstorm.

Kept apart from types.py so that low-level modules (pipe, framing) can
import them without pulling in pydantic models.
"""

from enum import Enum


class StreamKind(Enum):
    """Standard stream of a supervised child."""

    STDOUT = "stdout"
    STDERR = "stderr"


class ReadStatus(Enum):
    """Outcome of a single non-blocking pipe read."""

    DATA = "data"
    WOULD_BLOCK = "would_block"
    CLOSED = "closed"


class SupervisorState(Enum):
    """Lifecycle state of a supervision session."""

    IDLE = "idle"
    RUNNING = "running"
    INTERRUPTED = "interrupted"


class TerminationReason(Enum):
    """Why a supervision session ended."""

    COMPLETED = "completed"
    ONLY_INFRASTRUCTURE = "only_infrastructure"
    LOST_INFRASTRUCTURE = "lost_infrastructure"
    INTERRUPTED = "interrupted"
