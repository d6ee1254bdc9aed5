"""Supervision core: managed child processes and the session supervisor."""

from .process import ManagedProcess
from .supervisor import Supervisor, CancellationToken

__all__ = ["ManagedProcess", "Supervisor", "CancellationToken"]
