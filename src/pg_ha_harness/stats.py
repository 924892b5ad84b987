"""Running success/failure statistics for the failover workload.

``Statistics`` is shared between the workload thread (writer) and the
reporting thread (reader). All mutation and snapshotting goes through one
lock, so a snapshot never sees ``total != successful + failed``.
"""

# Standard library imports
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

# Local imports
from .operations import OperationKind, OperationResult

EXCELLENT_THRESHOLD = 99.9
GOOD_THRESHOLD = 99.0


class AvailabilityBand(Enum):
    """Presentation band for an availability percentage."""

    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs improvement"


def percentage(part: int, total: int) -> float:
    """Return ``part`` as a percentage of ``total``; 0.0 when nothing ran yet."""
    return part / max(total, 1) * 100


def classify_availability(availability: float) -> AvailabilityBand:
    """Map an availability percentage to its band."""
    if availability >= EXCELLENT_THRESHOLD:
        return AvailabilityBand.EXCELLENT
    if availability >= GOOD_THRESHOLD:
        return AvailabilityBand.GOOD
    return AvailabilityBand.NEEDS_IMPROVEMENT


@dataclass(frozen=True)
class StatisticsView:
    """Read-only copy of the statistics at one point in time."""

    total_writes: int
    total_reads: int
    successful_writes: int
    successful_reads: int
    failed_writes: int
    failed_reads: int
    reconnects: int
    current_node: str
    start_time: float
    taken_at: float

    @property
    def uptime_seconds(self) -> float:
        return max(self.taken_at - self.start_time, 0.0)

    @property
    def write_success_rate(self) -> float:
        return percentage(self.successful_writes, self.total_writes)

    @property
    def write_failure_rate(self) -> float:
        return percentage(self.failed_writes, self.total_writes)

    @property
    def read_success_rate(self) -> float:
        return percentage(self.successful_reads, self.total_reads)

    @property
    def read_failure_rate(self) -> float:
        return percentage(self.failed_reads, self.total_reads)

    @property
    def availability(self) -> float:
        return percentage(
            self.successful_writes + self.successful_reads,
            self.total_writes + self.total_reads,
        )

    @property
    def availability_band(self) -> AvailabilityBand:
        return classify_availability(self.availability)

    def to_dict(self) -> Dict[str, Any]:
        """Counters plus derived rates, suitable for JSON output."""
        data = asdict(self)
        data.update(
            {
                "uptime_seconds": round(self.uptime_seconds, 3),
                "write_success_rate": round(self.write_success_rate, 2),
                "read_success_rate": round(self.read_success_rate, 2),
                "availability": round(self.availability, 2),
                "availability_band": self.availability_band.value,
            }
        )
        return data


class Statistics:
    """Thread-safe counter set for writes, reads and reconnects."""

    def __init__(
        self, start_time: Optional[float] = None, clock: Callable[[], float] = time.time
    ):
        self._lock = threading.Lock()
        self._clock = clock
        self.start_time = start_time if start_time is not None else clock()

        self._total = {OperationKind.WRITE: 0, OperationKind.READ: 0}
        self._successful = {OperationKind.WRITE: 0, OperationKind.READ: 0}
        self._failed = {OperationKind.WRITE: 0, OperationKind.READ: 0}
        self._reconnects = 0
        self._current_node = ""

    def record(self, result: OperationResult):
        """Fold one operation outcome into the counters."""
        with self._lock:
            self._total[result.kind] += 1
            if result.success:
                self._successful[result.kind] += 1
            else:
                self._failed[result.kind] += 1

    def record_reconnect(self):
        with self._lock:
            self._reconnects += 1

    @property
    def current_node(self) -> str:
        with self._lock:
            return self._current_node

    def set_current_node(self, node: str):
        with self._lock:
            self._current_node = node

    def snapshot(self) -> StatisticsView:
        with self._lock:
            return StatisticsView(
                total_writes=self._total[OperationKind.WRITE],
                total_reads=self._total[OperationKind.READ],
                successful_writes=self._successful[OperationKind.WRITE],
                successful_reads=self._successful[OperationKind.READ],
                failed_writes=self._failed[OperationKind.WRITE],
                failed_reads=self._failed[OperationKind.READ],
                reconnects=self._reconnects,
                current_node=self._current_node,
                start_time=self.start_time,
                taken_at=self._clock(),
            )
