"""Structured logging with JSON file output and rich terminal formatting."""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union

from .log_formatters import StructuredFormatter, SpecstormRichHandler

ROOT_LOGGER_NAME = "specstorm"


class Logger(Protocol):
    """Protocol for logger instances to enable dependency injection."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""


class LogManager:
    """Owns the handlers shared by every specstorm logger.

    Loggers are created under the ``specstorm`` namespace and do not
    propagate to the root logger, so payload code running in children that
    configures logging for itself is not affected.
    """

    def __init__(self) -> None:
        self._configured = False
        self._handlers: list = []
        self._loggers: Dict[str, logging.Logger] = {}
        self._lock = threading.RLock()

    @property
    def configured(self) -> bool:
        return self._configured

    def configure(
        self,
        level: Union[int, str] = logging.INFO,
        log_file: Optional[Path] = None,
        enable_json: bool = True,
        enable_console: bool = True,
        console_level: Optional[Union[int, str]] = None,
    ) -> None:
        """Configure logging system. Repeated calls replace the handlers."""
        with self._lock:
            if self._configured:
                self._clear_handlers()

            if enable_json and log_file:
                log_file = Path(log_file)
                log_file.parent.mkdir(parents=True, exist_ok=True)
                json_handler = logging.FileHandler(log_file)
                json_handler.setFormatter(StructuredFormatter())
                json_handler.setLevel(level)
                self._handlers.append(json_handler)

            if enable_console:
                console_handler = SpecstormRichHandler(
                    show_time=True, show_path=False, markup=False
                )
                console_handler.setLevel(console_level or level)
                self._handlers.append(console_handler)

            for logger in self._loggers.values():
                for handler in self._handlers:
                    logger.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger instance."""
        with self._lock:
            if name != ROOT_LOGGER_NAME and not name.startswith(
                ROOT_LOGGER_NAME + "."
            ):
                name = f"{ROOT_LOGGER_NAME}.{name}"
            if name in self._loggers:
                return self._loggers[name]

            logger = logging.getLogger(name)
            logger.propagate = False
            logger.setLevel(logging.DEBUG)
            for handler in self._handlers:
                logger.addHandler(handler)
            self._loggers[name] = logger
            return logger

    def shutdown(self) -> None:
        """Detach and close all handlers."""
        with self._lock:
            self._clear_handlers()
            self._configured = False

    def _clear_handlers(self) -> None:
        for logger in self._loggers.values():
            for handler in self._handlers:
                logger.removeHandler(handler)
        for handler in self._handlers:
            try:
                handler.close()
            except (OSError, RuntimeError):
                pass
        self._handlers = []


_log_manager = LogManager()


def configure_logging(**kwargs: Any) -> None:
    """Configure the global logging system."""
    _log_manager.configure(**kwargs)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return _log_manager.get_logger(name)


def shutdown_logging() -> None:
    """Shutdown the logging system."""
    _log_manager.shutdown()


def log_process_event(
    logger: Logger, event: str, pid: Optional[int] = None, **kwargs: Any
) -> None:
    """Log a process-related event."""
    extra: Dict[str, Any] = {"event_type": "process", "process_event": event}
    if pid is not None:
        extra["child_pid"] = pid
    extra.update(kwargs)
    logger.info("Process %s %s", pid, event, extra=extra)


def log_supervisor_event(logger: Logger, event: str, **kwargs: Any) -> None:
    """Log a supervisor lifecycle event."""
    extra: Dict[str, Any] = {"event_type": "supervisor", "supervisor_event": event}
    extra.update(kwargs)
    logger.info("Supervisor %s", event, extra=extra)
