"""Write/read workload and failover detection.

Writes probe the backend identity before inserting, and a change of identity
between two successful writes is reported as a failover. Reads only count
rows; they never take part in failover detection, so read traffic cannot
produce duplicate events.
"""

# Standard library imports
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

# Third-party imports
import psycopg2

# Local imports
from .connection import ConnectionHandle, HarnessConnectionError, ProbeError, probe_identity

logger = logging.getLogger(__name__)


class OperationKind(Enum):
    """Logical operation performed by one workload step."""

    WRITE = "write"
    READ = "read"


class FailureReason(Enum):
    """Where an operation failed. Informational only."""

    PROBE = "probe"
    INSERT = "insert"
    QUERY = "query"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one write or read."""

    kind: OperationKind
    success: bool
    reason: Optional[FailureReason] = None
    error: Optional[str] = None
    node: str = ""
    row_count: Optional[int] = None

    @classmethod
    def ok(cls, kind: OperationKind, node: str = "", row_count: Optional[int] = None):
        return cls(kind=kind, success=True, node=node, row_count=row_count)

    @classmethod
    def failure(cls, kind: OperationKind, reason: FailureReason, error: Exception):
        return cls(kind=kind, success=False, reason=reason, error=str(error).strip())


@dataclass(frozen=True)
class FailoverEvent:
    """The node behind the virtual address changed between two writes."""

    old_node: str
    new_node: str
    timestamp: float = field(default_factory=time.time)


def detect_failover(old: str, new: str) -> Optional[FailoverEvent]:
    """Compare the recorded identity with the newly observed one.

    An empty ``old`` is the baseline observation and never a failover.
    """
    if new != old and old != "":
        return FailoverEvent(old_node=old, new_node=new)
    return None


class OperationExecutor:
    """Runs the logical write and read against the current handle.

    Args:
        stats: Statistics instance holding the recorded ``current_node``
        on_failover: Called with each FailoverEvent before ``current_node`` moves on
        table: Test table name
        clock: Source of the payload timestamp
    """

    def __init__(
        self,
        stats,
        on_failover: Optional[Callable[[FailoverEvent], None]] = None,
        table: str = "ha_test",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.stats = stats
        self.on_failover = on_failover
        self.table = table
        self._clock = clock

    def write(self, handle: ConnectionHandle) -> OperationResult:
        message = f"Test message at {self._clock():%H:%M:%S}"

        try:
            node = probe_identity(handle)
        except ProbeError as e:
            return OperationResult.failure(OperationKind.WRITE, FailureReason.PROBE, e)

        try:
            with handle.cursor() as cur:
                cur.execute(
                    f"INSERT INTO {self.table} (message, node_name) VALUES (%s, %s)",
                    (message, node),
                )
        except (psycopg2.Error, HarnessConnectionError) as e:
            return OperationResult.failure(OperationKind.WRITE, FailureReason.INSERT, e)

        event = detect_failover(self.stats.current_node, node)
        if event is not None:
            logger.warning(f"Failover detected: {event.old_node} -> {event.new_node}")
            if self.on_failover is not None:
                self.on_failover(event)
        self.stats.set_current_node(node)

        logger.debug(f"Write served by {node or 'unknown node'}")
        return OperationResult.ok(OperationKind.WRITE, node=node)

    def read(self, handle: ConnectionHandle) -> OperationResult:
        try:
            with handle.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) AS count FROM {self.table}")
                row = cur.fetchone()
        except (psycopg2.Error, HarnessConnectionError) as e:
            return OperationResult.failure(OperationKind.READ, FailureReason.QUERY, e)

        return OperationResult.ok(OperationKind.READ, row_count=row["count"] if row else 0)
