"""
Pytest configuration and shared fixtures for cluster tests

These tests talk to a real HA cluster behind its load balancer and are
skipped unless HA_TEST_PASSWORD is set.
"""

# Standard library imports
import os
import sys

# Third-party imports
import pytest

# Add package source to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../src"))

# Local imports
from pg_ha_harness.config import create_config_from_env
from pg_ha_harness.connection import ConnectionHandle, HarnessConnectionError


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "requires_cluster: marks tests that require a running HA cluster"
    )
    config.addinivalue_line("markers", "destructive: marks tests that may disrupt cluster")


@pytest.fixture(scope="session")
def harness_config():
    """Harness configuration from the environment; skips without credentials"""
    if not os.getenv("HA_TEST_PASSWORD"):
        pytest.skip("HA_TEST_PASSWORD not set, no cluster available")
    config = create_config_from_env().with_overrides(table="ha_test_pytest")
    return config.validate()


@pytest.fixture
def cluster_handle(harness_config):
    """Connected handle to the load balancer, closed after the test"""
    try:
        handle = ConnectionHandle.open(harness_config)
    except HarnessConnectionError as e:
        pytest.skip(f"Load balancer not reachable: {e}")
    yield handle
    handle.close()


@pytest.fixture(scope="session")
def primary_container():
    """Container name of the current primary, used by destructive tests"""
    name = os.getenv("HA_TEST_PRIMARY_CONTAINER")
    if not name:
        pytest.skip("HA_TEST_PRIMARY_CONTAINER not set")
    return name
