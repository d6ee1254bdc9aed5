"""
specstorm: parallel test runner front end

Forks a pool of worker processes alongside an optional coordination server,
relays their output to the terminal without breaking up partially written
results, and shuts everything down together, gracefully first.
"""

__version__ = "0.1.0"

from .core.enums import StreamKind, TerminationReason
from .core.types import SpecstormConfig, FLUSH_DELIMITER
from .core.process import ManagedProcess
from .core.supervisor import Supervisor

__all__ = [
    "__version__",
    "StreamKind",
    "TerminationReason",
    "SpecstormConfig",
    "FLUSH_DELIMITER",
    "ManagedProcess",
    "Supervisor",
]
