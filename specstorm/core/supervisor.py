"""Supervision session over a pool of worker and infrastructure processes.

The supervisor forks children through ``ManagedProcess``, relays their
output from a background thread, and ends the session when one of its
termination conditions holds:

* an infrastructure process is gone: every sink is forced back to the
  console and the remaining children are pre-armed for a forceful kill;
* only infrastructure processes remain: the workers are done;
* nothing is running any more;
* the operator pressed Ctrl-C (or ``interrupt()`` was called).
"""

import os
import selectors
import signal
import sys
import threading
from typing import Any, List, Optional, Tuple

from .enums import SupervisorState, TerminationReason
from .errors import RelayError, SupervisorError
from .log import get_logger, log_supervisor_event
from .process import ManagedProcess, Work
from .types import SpecstormConfig
from ..utils.output import print_status

logger = get_logger(__name__)

LOST_INFRASTRUCTURE_MESSAGE = "We lost an infrastructure process. Exiting..."
ONLY_INFRASTRUCTURE_MESSAGE = "Only infrastructure processes remain. Exiting..."
COMPLETED_MESSAGE = "All processes finished. Exiting..."


class CancellationToken:
    """One-way flag requested from a signal handler, observed by ``wait``.

    Setting it only assigns an attribute, which is safe at any point the
    interpreter may run a signal handler.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class Supervisor:
    """Owns the children of one supervision session."""

    def __init__(
        self,
        config: Optional[SpecstormConfig] = None,
        install_signal_handler: bool = True,
    ) -> None:
        self._config = config or SpecstormConfig()
        self._processes: List[ManagedProcess] = []
        self._state = SupervisorState.IDLE
        self._interrupted = False
        self._owner_pid = os.getpid()
        self._cancellation = CancellationToken()
        self._teardown_lock = threading.Lock()

        self._flush_thread: Optional[threading.Thread] = None
        self._stop_flushing = threading.Event()
        self._activity = threading.Event()
        self._wake_fds: Optional[Tuple[int, int]] = None

        self._previous_sigint: Any = None
        self._sigint_installed = False
        if install_signal_handler:
            self._install_signal_handler()

    @property
    def processes(self) -> Tuple[ManagedProcess, ...]:
        """Spawned processes in spawn order."""
        return tuple(self._processes)

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    @property
    def cancellation(self) -> CancellationToken:
        return self._cancellation

    def spawn(
        self, work: Work, infrastructure: bool = False, name: Optional[str] = None
    ) -> ManagedProcess:
        """Fork a child running ``work`` and register it.

        The returned handle's ``stdout``/``stderr`` sinks may be replaced
        before ``wait`` is called.

        Raises:
            SupervisorError: if the session was already interrupted
            ProcessStartupError: if the child could not be created
        """
        if self._interrupted:
            raise SupervisorError("Cannot spawn after the session was interrupted")
        if name is None:
            role = "infrastructure" if infrastructure else "worker"
            name = f"{role}-{len(self._processes)}"
        process = ManagedProcess(
            infrastructure=infrastructure,
            name=name,
            delimiter=self._config.flush_delimiter,
            read_chunk_size=self._config.read_chunk_size,
        )
        process.start(work)
        self._processes.append(process)
        return process

    def running_processes(self) -> List[ManagedProcess]:
        return [process for process in self.processes if process.running()]

    def infrastructure_processes(self) -> List[ManagedProcess]:
        return [process for process in self.processes if process.infrastructure]

    def infrastructure_missing(self) -> bool:
        """True if any infrastructure process is no longer running."""
        return any(not process.running() for process in self.infrastructure_processes())

    def only_infrastructure_remains(self) -> bool:
        """True if something runs and everything that runs is infrastructure."""
        running = self.running_processes()
        return bool(running) and all(process.infrastructure for process in running)

    def active(self) -> bool:
        return not self._interrupted and any(
            process.running() for process in self.processes
        )

    def wait(self) -> TerminationReason:
        """Relay output and block until the session terminates.

        Returns once teardown has completed, with the reason the session
        ended.
        """
        if self._interrupted:
            with self._teardown_lock:
                return TerminationReason.INTERRUPTED

        self._state = SupervisorState.RUNNING
        log_supervisor_event(logger, "waiting", processes=len(self._processes))
        self._start_flush_task()
        reason = TerminationReason.COMPLETED
        try:
            while self.active():
                if self._cancellation.cancelled:
                    print_status(
                        f"Parent {os.getpid()} received SIGINT, forwarding to children..."
                    )
                    reason = TerminationReason.INTERRUPTED
                    self.interrupt()
                    break
                if self.infrastructure_missing():
                    print_status(LOST_INFRASTRUCTURE_MESSAGE)
                    self._expose_all_output()
                    for process in self.running_processes():
                        process.kill()
                    reason = TerminationReason.LOST_INFRASTRUCTURE
                    self.interrupt()
                    break
                if self.only_infrastructure_remains():
                    print_status(ONLY_INFRASTRUCTURE_MESSAGE)
                    reason = TerminationReason.ONLY_INFRASTRUCTURE
                    self.interrupt()
                    break
                logger.debug(
                    "%d processes remaining", len(self.running_processes())
                )
                self._activity.wait(self._config.poll_interval)
                self._activity.clear()
            else:
                if self._interrupted:
                    reason = TerminationReason.INTERRUPTED
                else:
                    print_status(COMPLETED_MESSAGE)
        finally:
            if not self._interrupted:
                self.interrupt()
            else:
                # A concurrent interrupt() may still be draining.
                with self._teardown_lock:
                    pass
        log_supervisor_event(logger, "finished", reason=reason.value)
        return reason

    def interrupt(self) -> None:
        """Tear the session down; repeated calls escalate the kill.

        The first call stops and joins the background flush task, signals
        every running child, relays output until all children have exited,
        and performs one last flush pass. Any later call sends another
        ``kill()`` to the children that are still running.
        """
        if self._interrupted:
            self._escalate()
            return
        with self._teardown_lock:
            if self._interrupted:
                return
            self._interrupted = True
            self._state = SupervisorState.INTERRUPTED
            log_supervisor_event(logger, "interrupting", processes=len(self._processes))

            try:
                self._stop_flush_task()
                for process in self.running_processes():
                    process.kill()
                while self.running_processes():
                    self._flush_all()
                    self._await_output(self._config.poll_interval)
                self._flush_all()
            finally:
                for process in self.processes:
                    process.close()
                self._restore_signal_handler()
            log_supervisor_event(logger, "interrupted")

    def _escalate(self) -> None:
        for process in self.processes:
            if not process.reaped:
                process.kill()

    def _expose_all_output(self) -> None:
        for process in self.processes:
            process.stdout = sys.stdout
            process.stderr = sys.stderr

    def _flush_all(self) -> None:
        for process in self.processes:
            try:
                process.flush_pipes()
            except RelayError as e:
                logger.error("Output of %s is no longer relayed: %s", process.label, e)

    def _open_fds(self) -> List[int]:
        return [fd for process in self.processes for fd in process.open_fds()]

    def _await_output(self, timeout: float, extra_fds: Tuple[int, ...] = ()) -> List[int]:
        """Block until a child pipe (or ``extra_fds``) is readable.

        Returns the readable fds, empty after ``timeout`` seconds.
        """
        with selectors.DefaultSelector() as selector:
            for fd in self._open_fds() + list(extra_fds):
                selector.register(fd, selectors.EVENT_READ)
            return [key.fd for key, _ in selector.select(timeout)]

    def _start_flush_task(self) -> None:
        self._stop_flushing.clear()
        self._wake_fds = os.pipe()
        self._flush_thread = threading.Thread(
            target=self._flush_loop, name="SupervisorFlush", daemon=True
        )
        self._flush_thread.start()

    def _stop_flush_task(self) -> None:
        if self._flush_thread is None:
            return
        self._stop_flushing.set()
        wake_reader, wake_writer = self._wake_fds
        os.write(wake_writer, b"\0")
        self._flush_thread.join()
        self._flush_thread = None
        os.close(wake_reader)
        os.close(wake_writer)
        self._wake_fds = None

    def _flush_loop(self) -> None:
        wake_reader = self._wake_fds[0]
        while not self._stop_flushing.is_set():
            try:
                self._flush_all()
                readable = self._await_output(
                    self._config.poll_interval, extra_fds=(wake_reader,)
                )
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Background flush pass failed, retrying")
                self._stop_flushing.wait(self._config.poll_interval)
                continue
            if readable:
                self._activity.set()

    def _install_signal_handler(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, SIGINT forwarding disabled")
            return
        self._previous_sigint = signal.signal(signal.SIGINT, self._handle_sigint)
        self._sigint_installed = True

    def _restore_signal_handler(self) -> None:
        if not self._sigint_installed:
            return
        if threading.current_thread() is not threading.main_thread():
            return
        previous = self._previous_sigint
        signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)
        self._sigint_installed = False

    def _handle_sigint(self, signum: int, frame: Any) -> None:
        # Children inherit this handler across fork.
        if os.getpid() != self._owner_pid:
            return
        if self._cancellation.cancelled or self._interrupted:
            self._escalate()
        else:
            self._cancellation.cancel()
