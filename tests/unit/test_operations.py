#!/usr/bin/env python3
"""Unit tests for the write/read workload and failover detection.

Tests OperationExecutor and detect_failover including:
- Baseline observation on the first write
- Failover events only on identity change between writes
- Probe and insert failures
- Reads never touching the recorded node
"""

# Standard library imports
import os
import sys
import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch

# Add package source to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../src"))

# Third-party imports
import psycopg2

# Local imports
from pg_ha_harness.connection import HarnessConnectionError, ProbeError
from pg_ha_harness.operations import (
    FailoverEvent,
    FailureReason,
    OperationExecutor,
    OperationKind,
    detect_failover,
)
from pg_ha_harness.stats import Statistics


class TestDetectFailover(unittest.TestCase):
    """Test the pure failover comparison."""

    def test_empty_old_is_never_failover(self):
        self.assertIsNone(detect_failover("", "node-A"))
        self.assertIsNone(detect_failover("", ""))

    def test_same_node_is_not_failover(self):
        self.assertIsNone(detect_failover("node-A", "node-A"))

    def test_changed_node_is_failover(self):
        event = detect_failover("node-A", "node-B")

        self.assertIsInstance(event, FailoverEvent)
        self.assertEqual(event.old_node, "node-A")
        self.assertEqual(event.new_node, "node-B")
        self.assertGreater(event.timestamp, 0)


class TestOperationExecutorWrite(unittest.TestCase):
    """Test the write path."""

    def setUp(self):
        """Set up test fixtures."""
        self.stats = Statistics()
        self.events = []
        self.executor = OperationExecutor(
            self.stats,
            on_failover=self.events.append,
            clock=lambda: datetime(2026, 1, 1, 12, 30, 45),
        )
        self.handle = MagicMock()
        self.cursor = MagicMock()
        self.handle.cursor.return_value.__enter__.return_value = self.cursor

        patcher = patch("pg_ha_harness.operations.probe_identity")
        self.mock_probe = patcher.start()
        self.addCleanup(patcher.stop)

    def test_write_inserts_payload_tagged_with_node(self):
        """Insert carries the timestamped message and the observed node."""
        self.mock_probe.return_value = "10.0.0.11"

        result = self.executor.write(self.handle)

        self.assertTrue(result.success)
        self.assertEqual(result.kind, OperationKind.WRITE)
        self.assertEqual(result.node, "10.0.0.11")
        query, params = self.cursor.execute.call_args[0]
        self.assertIn("INSERT INTO ha_test", query)
        self.assertEqual(params, ("Test message at 12:30:45", "10.0.0.11"))

    def test_first_write_is_baseline(self):
        """The first observed node is recorded without an event."""
        self.mock_probe.return_value = "node-A"

        self.executor.write(self.handle)

        self.assertEqual(self.stats.current_node, "node-A")
        self.assertEqual(self.events, [])

    def test_failover_scenario(self):
        """A -> A -> B emits exactly one event, A to B."""
        self.mock_probe.side_effect = ["node-A", "node-A", "node-B"]

        for _ in range(3):
            self.assertTrue(self.executor.write(self.handle).success)

        self.assertEqual(len(self.events), 1)
        self.assertEqual(self.events[0].old_node, "node-A")
        self.assertEqual(self.events[0].new_node, "node-B")
        self.assertEqual(self.stats.current_node, "node-B")

    def test_event_emitted_before_node_update(self):
        """Observers see the old node still recorded when the event fires."""
        self.stats.set_current_node("node-A")
        self.mock_probe.return_value = "node-B"
        seen = []
        self.executor.on_failover = lambda event: seen.append(self.stats.current_node)

        self.executor.write(self.handle)

        self.assertEqual(seen, ["node-A"])
        self.assertEqual(self.stats.current_node, "node-B")

    def test_probe_failure_skips_insert(self):
        """A failed probe returns a probe failure and never inserts."""
        self.mock_probe.side_effect = ProbeError("connection refused")

        result = self.executor.write(self.handle)

        self.assertFalse(result.success)
        self.assertEqual(result.reason, FailureReason.PROBE)
        self.assertIn("connection refused", result.error)
        self.cursor.execute.assert_not_called()

    def test_insert_failure(self):
        """Driver errors during insert become insert failures."""
        self.stats.set_current_node("node-A")
        self.mock_probe.return_value = "node-B"
        self.cursor.execute.side_effect = psycopg2.OperationalError(
            "server closed the connection unexpectedly"
        )

        result = self.executor.write(self.handle)

        self.assertFalse(result.success)
        self.assertEqual(result.reason, FailureReason.INSERT)
        # Identity only moves on a completed write
        self.assertEqual(self.stats.current_node, "node-A")
        self.assertEqual(self.events, [])

    def test_closed_handle(self):
        """A closed handle is reported as an insert failure, not raised."""
        self.mock_probe.return_value = "node-A"
        self.handle.cursor.side_effect = HarnessConnectionError("closed")

        result = self.executor.write(self.handle)

        self.assertFalse(result.success)
        self.assertEqual(result.reason, FailureReason.INSERT)

    def test_custom_table(self):
        """The configured table name is used."""
        self.executor.table = "failover_probe"
        self.mock_probe.return_value = "node-A"

        self.executor.write(self.handle)

        query = self.cursor.execute.call_args[0][0]
        self.assertIn("INSERT INTO failover_probe", query)


class TestOperationExecutorRead(unittest.TestCase):
    """Test the read path."""

    def setUp(self):
        """Set up test fixtures."""
        self.stats = Statistics()
        self.events = []
        self.executor = OperationExecutor(self.stats, on_failover=self.events.append)
        self.handle = MagicMock()
        self.cursor = MagicMock()
        self.handle.cursor.return_value.__enter__.return_value = self.cursor

    def test_read_counts_rows(self):
        """Successful read carries the row count."""
        self.cursor.fetchone.return_value = {"count": 42}

        result = self.executor.read(self.handle)

        self.assertTrue(result.success)
        self.assertEqual(result.kind, OperationKind.READ)
        self.assertEqual(result.row_count, 42)
        self.assertIn("SELECT COUNT(*)", self.cursor.execute.call_args[0][0])

    def test_read_failure(self):
        """Query errors become query failures."""
        self.cursor.execute.side_effect = psycopg2.OperationalError("terminating connection")

        result = self.executor.read(self.handle)

        self.assertFalse(result.success)
        self.assertEqual(result.reason, FailureReason.QUERY)

    @patch("pg_ha_harness.operations.probe_identity")
    def test_read_never_probes_or_updates_node(self, mock_probe):
        """Reads leave the recorded node and event stream alone."""
        self.stats.set_current_node("node-A")
        self.cursor.fetchone.return_value = {"count": 1}

        self.executor.read(self.handle)

        mock_probe.assert_not_called()
        self.assertEqual(self.stats.current_node, "node-A")
        self.assertEqual(self.events, [])


if __name__ == "__main__":
    unittest.main()
