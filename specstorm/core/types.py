"""Core type definitions for specstorm."""

import os
import signal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

FLUSH_DELIMITER = "SPECSTORM--FLUSH--DELIMITER"
FLUSH_DELIMITER_ENV = "SPECSTORM_FLUSH_DELIMITER"
PROCESS_INDEX_ENV = "SPECSTORM_PROCESS"


class ExitStatus(BaseModel):
    """Reaped exit status of a child process."""

    pid: int
    exit_code: Optional[int] = None
    signal: Optional[int] = None

    @classmethod
    def from_wait_status(cls, pid: int, status: int) -> "ExitStatus":
        """Decode a raw ``os.waitpid`` status word."""
        if os.WIFSIGNALED(status):
            return cls(pid=pid, signal=os.WTERMSIG(status))
        if os.WIFEXITED(status):
            return cls(pid=pid, exit_code=os.WEXITSTATUS(status))
        return cls(pid=pid)

    def describe(self) -> str:
        """Human-readable summary for log messages."""
        if self.signal is not None:
            try:
                name = signal.Signals(self.signal).name
            except ValueError:
                name = str(self.signal)
            return f"killed by {name}"
        if self.exit_code is not None:
            return f"exit code {self.exit_code}"
        return "unknown status"


class SpecstormConfig(BaseModel):
    """Main configuration."""

    worker_processes: int = Field(default_factory=lambda: os.cpu_count() or 1)
    duration: int = 10
    port: int = 5138
    verbose: bool = False
    log_level: str = "WARNING"

    # Supervision tuning
    poll_interval: float = 0.05
    read_chunk_size: int = 1024
    flush_delimiter: str = FLUSH_DELIMITER

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is supported."""
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
            )
        return v.upper()

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        """Validate port is in the TCP range."""
        if v < 1 or v > 65535:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v):
        """Validate poll interval is positive."""
        if v <= 0:
            raise ValueError("poll_interval must be positive")
        return v

    @field_validator("read_chunk_size")
    @classmethod
    def validate_read_chunk_size(cls, v):
        """Validate read chunk size is positive."""
        if v < 1:
            raise ValueError("read_chunk_size must be at least 1")
        return v

    @field_validator("flush_delimiter")
    @classmethod
    def validate_flush_delimiter(cls, v):
        """Validate the delimiter is non-empty."""
        if not v:
            raise ValueError("flush_delimiter cannot be empty")
        return v
