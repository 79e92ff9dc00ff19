"""Server lifecycle state management."""

import logging
import signal
import threading
import time
from typing import Optional

from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.errors import ShutdownTimeout

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("demo_server.lifecycle"), {}
)

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)
WAIT_POLL_SECONDS = 0.5


class ServerLifecycle:
    """Termination token, draining flag and worker thread tracking."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._termination_event = threading.Event()
        self._stop_event = threading.Event()
        self._draining_event = threading.Event()
        self._workers: set[threading.Thread] = set()
        self._received_signal: Optional[int] = None
        self._fatal_error: Optional[BaseException] = None

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to the termination token. Main thread only."""
        for signum in TERMINATION_SIGNALS:
            signal.signal(signum, self._handle_signal)

    def _handle_signal(self, signum: int, _frame) -> None:
        self.request_termination(signum)

    def request_termination(self, signum: Optional[int] = None) -> None:
        """Resolve the termination token; later calls are ignored."""
        with self._lock:
            if self._termination_event.is_set():
                return
            self._received_signal = signum
            self._termination_event.set()
        if signum is not None:
            LIFECYCLE_LOGGER.info(
                "Received shutdown signal",
                extra={"event": "signal_received", "signal": signal.Signals(signum).name},
            )

    def report_fatal(self, error: BaseException) -> None:
        """Record an unrecoverable listener failure and wake the main thread."""
        with self._lock:
            if self._fatal_error is None:
                self._fatal_error = error
        self.request_termination()

    @property
    def fatal_error(self) -> Optional[BaseException]:
        return self._fatal_error

    @property
    def received_signal(self) -> Optional[int]:
        return self._received_signal

    def wait_for_termination(self, timeout: Optional[float] = None) -> bool:
        """Block until termination is requested; False if the timeout elapsed first."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._termination_event.is_set():
            wait_for = WAIT_POLL_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                wait_for = min(wait_for, remaining)
            self._termination_event.wait(wait_for)
        return True

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is in draining mode."""
        return self._draining_event.is_set()

    def register_worker(self, thread: threading.Thread) -> None:
        """Register a worker thread for tracking."""
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.discard(thread)

    def active_worker_count(self) -> int:
        """Return the number of currently tracked worker threads."""
        with self._lock:
            return len(self._workers)

    def begin_draining(self) -> None:
        """Stop accepting connections and let in-flight requests finish."""
        self._draining_event.set()
        self._stop_event.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown", extra={"event": "draining_started"}
        )

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break

    def shutdown(
        self, listener: Optional[threading.Thread], grace_seconds: float
    ) -> None:
        """Drain the server within grace_seconds or raise ShutdownTimeout."""
        deadline = time.monotonic() + grace_seconds
        self.begin_draining()
        if listener is not None:
            listener.join(timeout=max(0.0, deadline - time.monotonic()))
        LIFECYCLE_LOGGER.info(
            "Waiting for active connections to complete",
            extra={
                "event": "shutdown_waiting",
                "grace_seconds": grace_seconds,
                "remaining_workers": self.active_worker_count(),
            },
        )
        if not self.wait_for_workers(max(0.0, deadline - time.monotonic())):
            raise ShutdownTimeout(grace_seconds, self.active_worker_count())
        LIFECYCLE_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
