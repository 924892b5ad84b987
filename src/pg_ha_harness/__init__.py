"""Failover verification harness for load-balanced PostgreSQL HA clusters."""
from .config import ConfigurationError, HarnessConfig, RetryBudget, create_config_from_env
from .connection import (
    ConnectionHandle,
    HandleCell,
    HarnessConnectionError,
    HarnessError,
    ProbeError,
    SchemaError,
    create_test_table,
    probe_identity,
)
from .operations import (
    FailoverEvent,
    FailureReason,
    OperationExecutor,
    OperationKind,
    OperationResult,
    detect_failover,
)
from .reconnect import ExhaustedRetriesError, ReconnectionPolicy, ReconnectState
from .reporter import ConsoleReporter, Reporter
from .scheduler import Scheduler
from .stats import AvailabilityBand, Statistics, StatisticsView, classify_availability

__version__ = "0.1.0"

__all__ = [
    # Configuration
    'HarnessConfig',
    'RetryBudget',
    'ConfigurationError',
    'create_config_from_env',
    # Connection
    'ConnectionHandle',
    'HandleCell',
    'HarnessError',
    'HarnessConnectionError',
    'ProbeError',
    'SchemaError',
    'create_test_table',
    'probe_identity',
    # Workload
    'OperationExecutor',
    'OperationKind',
    'OperationResult',
    'FailureReason',
    'FailoverEvent',
    'detect_failover',
    # Reconnection
    'ReconnectionPolicy',
    'ReconnectState',
    'ExhaustedRetriesError',
    # Statistics
    'Statistics',
    'StatisticsView',
    'AvailabilityBand',
    'classify_availability',
    # Orchestration and reporting
    'Scheduler',
    'Reporter',
    'ConsoleReporter',
]
