#!/usr/bin/env python3
"""PostgreSQL HA failover test harness.

Writes and reads through the load balancer every few seconds, reports which
node served each write, and prints availability statistics until interrupted.

Exit Codes:
- 0: Stopped by signal after a clean drain
- 1: Initial connection or table creation failed
- 2: Invalid configuration
"""
# Standard library imports
import argparse
import functools
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

# Third-party imports
from dotenv import load_dotenv

# Local imports
from .config import OUTPUT_FORMATS, ConfigurationError, HarnessConfig, create_config_from_env
from .connection import (
    ConnectionHandle,
    HandleCell,
    HarnessConnectionError,
    SchemaError,
    create_test_table,
)
from .operations import OperationExecutor
from .reconnect import ReconnectionPolicy
from .reporter import ConsoleReporter
from .scheduler import Scheduler
from .stats import Statistics

logger = logging.getLogger("pg_ha_harness")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Exercise a PostgreSQL HA cluster through its load balancer and detect failover"
    )
    parser.add_argument("--host", help="Load balancer host (HA_TEST_HOST)")
    parser.add_argument("--port", type=int, help="Load balancer port (HA_TEST_PORT)")
    parser.add_argument("--database", help="Database name (HA_TEST_DB)")
    parser.add_argument("--user", help="Database user (HA_TEST_USER)")
    parser.add_argument("--table", help="Test table (HA_TEST_TABLE)")
    parser.add_argument(
        "--write-interval", type=float, help="Seconds between write/read ticks"
    )
    parser.add_argument(
        "--report-interval", type=float, help="Seconds between statistics reports"
    )
    parser.add_argument("--max-retries", type=int, help="Reconnect attempts per failure")
    parser.add_argument("--retry-delay", type=float, help="Seconds between reconnect attempts")
    parser.add_argument("--output", choices=OUTPUT_FORMATS, help="Report format")
    parser.add_argument(
        "--env-file", type=Path, default=Path(".env"), help="dotenv file to load if present"
    )
    return parser


def setup_logging():
    """Configure root logging from LOG_LEVEL and LOG_FILE."""
    handlers = [logging.StreamHandler(sys.stderr)]
    log_file = os.getenv("LOG_FILE")
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def load_config(args: argparse.Namespace) -> HarnessConfig:
    config = create_config_from_env().with_overrides(
        host=args.host,
        port=args.port,
        database=args.database,
        user=args.user,
        table=args.table,
        write_interval=args.write_interval,
        report_interval=args.report_interval,
        output_format=args.output,
        max_attempts=args.max_retries,
        delay=args.retry_delay,
    )
    return config.validate()


def build_scheduler(
    config: HarnessConfig, handle: ConnectionHandle, reporter: ConsoleReporter
) -> Scheduler:
    """Wire the core components around an already-connected handle."""
    stats = Statistics()
    cell = HandleCell(handle)
    executor = OperationExecutor(stats, on_failover=reporter.failover, table=config.table)
    policy = ReconnectionPolicy(
        connect=functools.partial(ConnectionHandle.open, config),
        cell=cell,
        stats=stats,
        budget=config.retry,
        reporter=reporter,
    )
    return Scheduler(
        executor=executor,
        cell=cell,
        policy=policy,
        stats=stats,
        reporter=reporter,
        write_interval=config.write_interval,
        report_interval=config.report_interval,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run the harness until SIGINT/SIGTERM."""
    args = build_parser().parse_args(argv)
    if args.env_file.exists():
        load_dotenv(args.env_file)

    setup_logging()

    try:
        config = load_config(args)
    except ConfigurationError as e:
        logger.error(f"✗ Configuration error: {e}")
        return 2

    reporter = ConsoleReporter(config.output_format)
    reporter.banner(config.describe())

    logger.info(f"Connecting to PostgreSQL via load balancer at {config.describe()}...")
    try:
        handle = ConnectionHandle.open(config)
    except HarnessConnectionError as e:
        logger.error(f"✗ Failed to connect: {e}")
        return 1
    logger.info("✓ Connected successfully")

    try:
        create_test_table(handle, config.table)
    except SchemaError as e:
        logger.error(f"✗ Failed to initialize database: {e}")
        handle.close()
        return 1

    scheduler = build_scheduler(config, handle, reporter)
    signal.signal(signal.SIGINT, scheduler.request_shutdown)
    signal.signal(signal.SIGTERM, scheduler.request_shutdown)

    scheduler.run()
    logger.info("Shut down cleanly")
    return 0


if __name__ == "__main__":
    sys.exit(main())
