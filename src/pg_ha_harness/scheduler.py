"""Drives the workload and reporting activities until shutdown.

Two threads share one ``threading.Event``:

- workload: every ``write_interval`` seconds, one write then one read; a
  failed operation blocks the thread in the reconnection loop before the
  next operation runs
- reporting: every ``report_interval`` seconds, a statistics snapshot

Shutdown never interrupts a running tick; ``run()`` waits for both threads
to finish their current iteration before releasing the connection.
"""

# Standard library imports
import logging
import threading
import time
from typing import Callable, Optional

# Local imports
from .connection import HandleCell
from .operations import OperationExecutor, OperationResult
from .reconnect import ExhaustedRetriesError, ReconnectionPolicy
from .reporter import Reporter
from .stats import Statistics

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs the harness loops for the lifetime of the process."""

    def __init__(
        self,
        executor: OperationExecutor,
        cell: HandleCell,
        policy: ReconnectionPolicy,
        stats: Statistics,
        reporter: Optional[Reporter] = None,
        write_interval: float = 2.0,
        report_interval: float = 5.0,
        shutdown_event: Optional[threading.Event] = None,
    ):
        self.executor = executor
        self.cell = cell
        self.policy = policy
        self.stats = stats
        self.reporter = reporter or Reporter()
        self.write_interval = write_interval
        self.report_interval = report_interval
        self.shutdown_event = shutdown_event or threading.Event()
        self._threads = []

    def request_shutdown(self, *_args):
        """Ask both loops to stop; usable directly as a signal handler."""
        if not self.shutdown_event.is_set():
            logger.info("Shutdown requested")
        self.shutdown_event.set()

    def workload_tick(self):
        """Write then read, reconnecting after each failed operation."""
        write_result = self.executor.write(self.cell.get())
        self._fold(write_result)

        read_result = self.executor.read(self.cell.get())
        self._fold(read_result)

    def report_tick(self):
        self.reporter.report(self.stats.snapshot())

    def _fold(self, result: OperationResult):
        self.stats.record(result)
        if result.success:
            return

        logger.error(
            f"✗ {result.kind.value.capitalize()} failed ({result.reason.value}): {result.error}"
        )
        self.reporter.operation_failed(result)
        try:
            self.policy.reconnect()
        except ExhaustedRetriesError:
            # Already logged and reported; retried on the next failure.
            pass

    def _run_periodic(self, name: str, interval: float, task: Callable[[], None]):
        next_run = time.monotonic() + interval
        while not self.shutdown_event.wait(max(next_run - time.monotonic(), 0.0)):
            try:
                task()
            except Exception as e:
                logger.exception(f"Unexpected error in {name} loop: {e}")

            next_run += interval
            now = time.monotonic()
            if next_run < now:
                # Ticks missed while blocked are dropped, not replayed.
                next_run = now + interval

    def start(self):
        """Start the workload and reporting threads."""
        self._threads = [
            threading.Thread(
                target=self._run_periodic,
                args=("workload", self.write_interval, self.workload_tick),
                name="workload",
                daemon=True,
            ),
            threading.Thread(
                target=self._run_periodic,
                args=("reporting", self.report_interval, self.report_tick),
                name="reporting",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()
        logger.info(
            f"✓ Workload every {self.write_interval}s, statistics every {self.report_interval}s"
        )

    def stop(self):
        """Signal shutdown and wait for the current ticks to finish."""
        self.shutdown_event.set()
        for thread in self._threads:
            thread.join()
        self._threads = []

    def run(self):
        """Run until the shutdown event is set, then drain and release resources."""
        self.start()
        try:
            while not self.shutdown_event.wait(timeout=1.0):
                pass
        finally:
            self.stop()
            self.reporter.final_report(self.stats.snapshot())
            self.cell.close()
            logger.info("✓ Connection released")
