"""Bounded reconnection with a fixed delay between attempts.

State machine::

    IDLE -> ATTEMPTING(1) -> ... -> ATTEMPTING(max_attempts) -> EXHAUSTED
                  \\__________________________/
                               |
                           CONNECTED
"""

# Standard library imports
import logging
import time
from enum import Enum
from typing import Callable, Optional

# Local imports
from .config import RetryBudget
from .connection import (
    ConnectionHandle,
    HandleCell,
    HarnessConnectionError,
    HarnessError,
    ProbeError,
    probe_identity,
)
from .reporter import Reporter
from .stats import Statistics

logger = logging.getLogger(__name__)


class ExhaustedRetriesError(HarnessError):
    """Raised when every reconnection attempt in the budget failed."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(f"Failed to reconnect after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class ReconnectState(Enum):
    """Reconnection policy state."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    CONNECTED = "connected"
    EXHAUSTED = "exhausted"


class ReconnectionPolicy:
    """Replaces a broken connection handle within a fixed retry budget.

    Args:
        connect: Opens and pings a new ConnectionHandle, raising
            HarnessConnectionError on failure
        cell: Guarded reference the new handle is published to
        stats: Statistics receiving the reconnect count and node baseline
        budget: Attempt count and delay
        reporter: Receives per-attempt and outcome notifications
        sleep: Delay function, replaceable in tests
    """

    def __init__(
        self,
        connect: Callable[[], ConnectionHandle],
        cell: HandleCell,
        stats: Statistics,
        budget: Optional[RetryBudget] = None,
        reporter: Optional[Reporter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.connect = connect
        self.cell = cell
        self.stats = stats
        self.budget = budget or RetryBudget()
        self.reporter = reporter or Reporter()
        self._sleep = sleep

        self.state = ReconnectState.IDLE
        self.attempt = 0

    def reconnect(self) -> ConnectionHandle:
        """Open a fresh handle, waiting ``budget.delay`` before each attempt.

        Returns:
            The newly published handle

        Raises:
            ExhaustedRetriesError: If all ``budget.max_attempts`` attempts failed
        """
        logger.warning("Attempting to reconnect...")
        self.reporter.reconnecting()

        last_error = None
        for attempt in range(1, self.budget.max_attempts + 1):
            self.state = ReconnectState.ATTEMPTING
            self.attempt = attempt
            self._sleep(self.budget.delay)

            try:
                handle = self.connect()
            except HarnessConnectionError as e:
                last_error = e
                logger.warning(f"Retry {attempt}/{self.budget.max_attempts} failed: {e}")
                self.reporter.reconnect_attempt_failed(attempt, self.budget.max_attempts, e)
                continue

            self._publish(handle)
            self.state = ReconnectState.CONNECTED
            logger.info(f"✓ Reconnected on attempt {attempt}/{self.budget.max_attempts}")
            self.reporter.reconnected(attempt, self.stats.current_node)
            return handle

        self.state = ReconnectState.EXHAUSTED
        error = ExhaustedRetriesError(self.budget.max_attempts, last_error)
        logger.error(f"✗ {error}")
        self.reporter.reconnect_exhausted(error)
        raise error

    def _publish(self, handle: ConnectionHandle):
        previous = self.cell.swap(handle)
        if previous is not None and previous is not handle:
            previous.close()
        self.stats.record_reconnect()

        # Resynchronize the baseline; this is not an observed failover.
        try:
            self.stats.set_current_node(probe_identity(handle))
        except ProbeError as e:
            logger.warning(f"Could not refresh node identity after reconnect: {e}")
