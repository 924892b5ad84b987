#!/usr/bin/env python3
"""Unit tests for the bounded reconnection policy."""

# Standard library imports
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

# Add package source to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../src"))

# Local imports
from pg_ha_harness.config import RetryBudget
from pg_ha_harness.connection import HandleCell, HarnessConnectionError, ProbeError
from pg_ha_harness.reconnect import (
    ExhaustedRetriesError,
    ReconnectionPolicy,
    ReconnectState,
)
from pg_ha_harness.stats import Statistics


class TestReconnectionPolicy(unittest.TestCase):
    """Test ReconnectionPolicy state transitions and side effects."""

    def setUp(self):
        """Set up test fixtures."""
        self.old_handle = MagicMock(name="old-handle")
        self.new_handle = MagicMock(name="new-handle")
        self.cell = HandleCell(self.old_handle)
        self.stats = Statistics()
        self.stats.set_current_node("node-A")
        self.connect = MagicMock(return_value=self.new_handle)
        self.sleep = MagicMock()
        self.reporter = MagicMock()
        self.policy = ReconnectionPolicy(
            connect=self.connect,
            cell=self.cell,
            stats=self.stats,
            budget=RetryBudget(max_attempts=5, delay=2.0),
            reporter=self.reporter,
            sleep=self.sleep,
        )

        patcher = patch("pg_ha_harness.reconnect.probe_identity", return_value="node-B")
        self.mock_probe = patcher.start()
        self.addCleanup(patcher.stop)

    def test_initial_state(self):
        self.assertEqual(self.policy.state, ReconnectState.IDLE)
        self.assertEqual(self.policy.attempt, 0)

    def test_first_attempt_succeeds(self):
        """One connect, one reconnect counted, handle swapped."""
        handle = self.policy.reconnect()

        self.assertIs(handle, self.new_handle)
        self.assertEqual(self.connect.call_count, 1)
        self.assertEqual(self.stats.snapshot().reconnects, 1)
        self.assertIs(self.cell.get(), self.new_handle)
        self.old_handle.close.assert_called_once()
        self.assertEqual(self.policy.state, ReconnectState.CONNECTED)
        self.assertEqual(self.policy.attempt, 1)

    def test_waits_before_each_attempt(self):
        self.policy.reconnect()

        self.sleep.assert_called_once_with(2.0)

    def test_all_attempts_fail(self):
        """Exactly max_attempts connects, then ExhaustedRetriesError."""
        self.connect.side_effect = HarnessConnectionError("connection refused")

        with self.assertRaises(ExhaustedRetriesError) as ctx:
            self.policy.reconnect()

        self.assertEqual(self.connect.call_count, 5)
        self.assertEqual(self.sleep.call_count, 5)
        self.assertEqual(ctx.exception.attempts, 5)
        self.assertIsInstance(ctx.exception.last_error, HarnessConnectionError)
        self.assertEqual(self.policy.state, ReconnectState.EXHAUSTED)
        self.assertEqual(self.stats.snapshot().reconnects, 0)
        # The stale handle stays published until a reconnect succeeds
        self.assertIs(self.cell.get(), self.old_handle)
        self.old_handle.close.assert_not_called()
        self.assertEqual(self.reporter.reconnect_attempt_failed.call_count, 5)
        self.reporter.reconnect_exhausted.assert_called_once()

    def test_succeeds_after_failures(self):
        self.connect.side_effect = [
            HarnessConnectionError("refused"),
            HarnessConnectionError("refused"),
            self.new_handle,
        ]

        self.policy.reconnect()

        self.assertEqual(self.connect.call_count, 3)
        self.assertEqual(self.policy.attempt, 3)
        self.assertEqual(self.stats.snapshot().reconnects, 1)
        self.reporter.reconnected.assert_called_once_with(3, "node-B")

    def test_resync_does_not_emit_failover(self):
        """The re-probed node becomes the baseline silently."""
        self.policy.reconnect()

        self.assertEqual(self.stats.current_node, "node-B")
        self.reporter.failover.assert_not_called()
        self.mock_probe.assert_called_once_with(self.new_handle)

    def test_failed_resync_keeps_node(self):
        self.mock_probe.side_effect = ProbeError("timeout")

        self.policy.reconnect()

        self.assertEqual(self.stats.current_node, "node-A")
        self.assertEqual(self.stats.snapshot().reconnects, 1)

    def test_policy_can_be_invoked_again_after_exhaustion(self):
        self.connect.side_effect = HarnessConnectionError("refused")
        with self.assertRaises(ExhaustedRetriesError):
            self.policy.reconnect()

        self.connect.side_effect = None
        self.policy.reconnect()

        self.assertEqual(self.policy.state, ReconnectState.CONNECTED)
        self.assertEqual(self.connect.call_count, 6)

    def test_default_reporter_and_budget(self):
        policy = ReconnectionPolicy(
            connect=self.connect, cell=HandleCell(), stats=Statistics(), sleep=self.sleep
        )

        policy.reconnect()

        self.assertEqual(policy.budget, RetryBudget(max_attempts=5, delay=2.0))


if __name__ == "__main__":
    unittest.main()
