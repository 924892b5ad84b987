"""Reporting collaborators for the failover harness.

``Reporter`` defines the notifications the core emits; every hook is a no-op
so collaborators only override what they render. ``ConsoleReporter`` prints
them in one of three formats:

- human: statistics blocks for a terminal
- json: one JSON document per line
- prometheus: text exposition format for snapshots
"""

# Standard library imports
import json
import sys
import threading
from datetime import datetime, timedelta, timezone
from typing import IO, Any, Dict, Optional

# Third-party imports
from prometheus_client import CollectorRegistry, Gauge, Info, generate_latest

RULE = "━" * 60
BOX_WIDTH = 62


def format_uptime(seconds: float) -> str:
    return str(timedelta(seconds=round(seconds)))


class Reporter:
    """Receives statistics snapshots and failure/failover notifications."""

    def banner(self, target: str):
        pass

    def report(self, view):
        pass

    def final_report(self, view):
        pass

    def failover(self, event):
        pass

    def operation_failed(self, result):
        pass

    def reconnecting(self):
        pass

    def reconnect_attempt_failed(self, attempt: int, max_attempts: int, error: Exception):
        pass

    def reconnected(self, attempt: int, node: str):
        pass

    def reconnect_exhausted(self, error: Exception):
        pass


class ConsoleReporter(Reporter):
    """Prints harness output to a stream (stdout by default)."""

    def __init__(self, output_format: str = "human", stream: Optional[IO[str]] = None):
        self.output_format = output_format
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()
        self._metrics: Optional[SnapshotMetrics] = None

    def _emit(self, *lines: str):
        with self._lock:
            for line in lines:
                print(line, file=self.stream)
            self.stream.flush()

    def _emit_json(self, event: str, payload: Dict[str, Any]):
        document = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat(), **payload}
        self._emit(json.dumps(document, default=str))

    def _boxed(self, title: str) -> list:
        return [
            "╔" + "═" * BOX_WIDTH + "╗",
            "║" + title.center(BOX_WIDTH) + "║",
            "╚" + "═" * BOX_WIDTH + "╝",
        ]

    def banner(self, target: str):
        if self.output_format != "human":
            return
        self._emit(
            *self._boxed("PostgreSQL HA Test Application - Testing Automatic Failover"),
            "",
            f"🔌 Target (via load balancer): {target}",
            "",
        )

    def report(self, view):
        if self.output_format == "json":
            self._emit_json("snapshot", view.to_dict())
        elif self.output_format == "prometheus":
            self._emit(*self._prometheus_lines(view))
        else:
            self._emit(
                "",
                RULE,
                "STATISTICS".center(60),
                RULE,
                f"⏱️  Uptime:           {format_uptime(view.uptime_seconds)}",
                f"🖥️  Current Node:     {view.current_node or 'unknown'}",
                f"🔄 Reconnects:       {view.reconnects}",
                "",
                f"📝 Total Writes:     {view.total_writes}",
                f"   ✓ Successful:     {view.successful_writes} ({view.write_success_rate:.1f}%)",
                f"   ✗ Failed:         {view.failed_writes} ({view.write_failure_rate:.1f}%)",
                "",
                f"📖 Total Reads:      {view.total_reads}",
                f"   ✓ Successful:     {view.successful_reads} ({view.read_success_rate:.1f}%)",
                f"   ✗ Failed:         {view.failed_reads} ({view.read_failure_rate:.1f}%)",
                RULE,
            )

    def final_report(self, view):
        if self.output_format == "json":
            self._emit_json("final", view.to_dict())
            return
        if self.output_format == "prometheus":
            self._emit(*self._prometheus_lines(view))
            return

        band_label = {
            "excellent": "Excellent!",
            "good": "Good",
            "needs improvement": "Needs improvement",
        }[view.availability_band.value]
        self._emit(
            "",
            *self._boxed("FINAL STATISTICS"),
            "",
            f"⏱️  Total Uptime:     {format_uptime(view.uptime_seconds)}",
            f"🔄 Total Reconnects: {view.reconnects}",
            "",
            "📝 Write Operations:",
            f"   Total:            {view.total_writes}",
            f"   Successful:       {view.successful_writes} ({view.write_success_rate:.1f}%)",
            f"   Failed:           {view.failed_writes} ({view.write_failure_rate:.1f}%)",
            "",
            "📖 Read Operations:",
            f"   Total:            {view.total_reads}",
            f"   Successful:       {view.successful_reads} ({view.read_success_rate:.1f}%)",
            f"   Failed:           {view.failed_reads} ({view.read_failure_rate:.1f}%)",
            "",
            f"🎯 Availability:     {view.availability:.2f}% ({band_label})",
            "",
        )

    def failover(self, event):
        if self.output_format == "json":
            self._emit_json(
                "failover", {"old_node": event.old_node, "new_node": event.new_node}
            )
        elif self.output_format == "human":
            self._emit(
                "",
                "🔄 FAILOVER DETECTED!",
                f"   Old node: {event.old_node}",
                f"   New node: {event.new_node}",
                "",
            )

    def operation_failed(self, result):
        if self.output_format == "json":
            self._emit_json(
                "operation_failed",
                {
                    "kind": result.kind.value,
                    "reason": result.reason.value if result.reason else None,
                    "error": result.error,
                },
            )
        elif self.output_format == "human":
            self._emit(f"❌ {result.kind.value.capitalize()} failed: {result.error}")

    def reconnecting(self):
        if self.output_format == "human":
            self._emit("🔄 Attempting to reconnect...")

    def reconnect_attempt_failed(self, attempt: int, max_attempts: int, error: Exception):
        if self.output_format == "json":
            self._emit_json(
                "reconnect_attempt_failed",
                {"attempt": attempt, "max_attempts": max_attempts, "error": str(error)},
            )
        elif self.output_format == "human":
            self._emit(f"   Retry {attempt}/{max_attempts} failed: {error}")

    def reconnected(self, attempt: int, node: str):
        if self.output_format == "json":
            self._emit_json("reconnected", {"attempt": attempt, "node": node})
        elif self.output_format == "human":
            self._emit(f"✅ Reconnected successfully! (node: {node or 'unknown'})")

    def reconnect_exhausted(self, error: Exception):
        if self.output_format == "json":
            self._emit_json("reconnect_exhausted", {"error": str(error)})
        elif self.output_format == "human":
            self._emit(f"❌ {error}")

    def _prometheus_lines(self, view) -> list:
        if self._metrics is None:
            self._metrics = SnapshotMetrics()
        return self._metrics.render(view).rstrip("\n").split("\n")


class SnapshotMetrics:
    """Prometheus exposition of statistics snapshots, on a private registry."""

    def __init__(self):
        self.registry = CollectorRegistry()

        self.operations = Gauge(
            "ha_test_operations",
            "Operations performed through the load balancer",
            ["kind", "outcome"],
            registry=self.registry,
        )
        self.reconnects = Gauge(
            "ha_test_reconnects",
            "Successful reconnections since start",
            registry=self.registry,
        )
        self.availability = Gauge(
            "ha_test_availability_percent",
            "Successful operations in percent of all operations",
            registry=self.registry,
        )
        self.uptime = Gauge(
            "ha_test_uptime_seconds",
            "Harness uptime in seconds",
            registry=self.registry,
        )
        self.backend = Info(
            "ha_test_backend",
            "Node that served the last successful write",
            registry=self.registry,
        )

    def render(self, view) -> str:
        self.operations.labels(kind="write", outcome="success").set(view.successful_writes)
        self.operations.labels(kind="write", outcome="failure").set(view.failed_writes)
        self.operations.labels(kind="read", outcome="success").set(view.successful_reads)
        self.operations.labels(kind="read", outcome="failure").set(view.failed_reads)
        self.reconnects.set(view.reconnects)
        self.availability.set(round(view.availability, 2))
        self.uptime.set(round(view.uptime_seconds, 3))
        self.backend.info({"node": view.current_node or "unknown"})
        return generate_latest(self.registry).decode("utf-8")
