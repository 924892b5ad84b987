"""Configuration for the HA failover test harness.

Settings are read from environment variables (optionally loaded from a
``.env`` file by the entry point) and can be overridden from the command line.
"""

# Standard library imports
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

OUTPUT_FORMATS = ("human", "json", "prometheus")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class ConfigurationError(Exception):
    """Raised when harness configuration is invalid."""

    pass


@dataclass(frozen=True)
class RetryBudget:
    """Bounded reconnection budget: attempt count and fixed delay between attempts."""

    max_attempts: int = 5
    delay: float = 2.0  # seconds


@dataclass
class HarnessConfig:
    """Configuration for the failover test harness."""

    # Virtual address of the load balancer
    host: str = "localhost"
    port: int = 54320

    # Database credentials
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""

    # TLS
    sslmode: str = "disable"
    sslrootcert: Optional[str] = None

    # Connection pool settings
    min_connections: int = 1
    max_connections: int = 10
    connect_timeout: int = 5  # seconds

    # Workload
    table: str = "ha_test"
    write_interval: float = 2.0  # seconds
    report_interval: float = 5.0  # seconds
    retry: RetryBudget = field(default_factory=RetryBudget)

    # Reporting
    output_format: str = "human"

    def validate(self) -> "HarnessConfig":
        """Check the configuration and return it.

        Raises:
            ConfigurationError: If a setting is missing or out of range
        """
        if not self.password:
            raise ConfigurationError(
                "HA_TEST_PASSWORD environment variable is required. "
                "Set it in your .env file or environment."
            )
        if self.write_interval <= 0 or self.report_interval <= 0:
            raise ConfigurationError("Write and report intervals must be positive")
        if self.retry.max_attempts < 1:
            raise ConfigurationError("Retry budget needs at least one attempt")
        if self.retry.delay < 0:
            raise ConfigurationError("Retry delay cannot be negative")
        if self.min_connections < 1 or self.min_connections > self.max_connections:
            raise ConfigurationError(
                f"Invalid pool size: min={self.min_connections}, max={self.max_connections}"
            )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Unknown output format '{self.output_format}', "
                f"expected one of: {', '.join(OUTPUT_FORMATS)}"
            )
        if not _IDENTIFIER.match(self.table):
            raise ConfigurationError(f"Invalid table name: {self.table!r}")
        return self

    def connection_params(self) -> Dict[str, Any]:
        """Keyword arguments for psycopg2 (without pool sizing)."""
        params = {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
            "sslmode": self.sslmode,
        }
        if self.sslmode != "disable" and self.sslrootcert and os.path.exists(self.sslrootcert):
            params["sslrootcert"] = self.sslrootcert
        return params

    def describe(self) -> str:
        """Address string safe for logs (no credentials)."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    def with_overrides(self, **overrides: Any) -> "HarnessConfig":
        """Return a copy with the non-None overrides applied."""
        retry_fields = {}
        for key in ("max_attempts", "delay"):
            value = overrides.pop(key, None)
            if value is not None:
                retry_fields[key] = value
        changes = {key: value for key, value in overrides.items() if value is not None}
        if retry_fields:
            changes["retry"] = replace(self.retry, **retry_fields)
        return replace(self, **changes)


def create_config_from_env() -> HarnessConfig:
    """Create harness configuration from environment variables.

    Environment variables:
        HA_TEST_HOST, HA_TEST_PORT: Load balancer address (default: localhost:54320)
        HA_TEST_DB, HA_TEST_USER, HA_TEST_PASSWORD: Database credentials
        HA_TEST_SSLMODE, HA_TEST_SSLROOTCERT: TLS settings
        HA_TEST_MIN_CONNECTIONS, HA_TEST_MAX_CONNECTIONS: Pool size
        HA_TEST_CONNECT_TIMEOUT: Seconds before a connect attempt fails
        HA_TEST_TABLE: Test table name
        HA_TEST_WRITE_INTERVAL, HA_TEST_REPORT_INTERVAL: Seconds between ticks
        HA_TEST_MAX_RETRIES, HA_TEST_RETRY_DELAY: Reconnection budget
        HA_TEST_OUTPUT_FORMAT: human, json or prometheus

    Returns:
        HarnessConfig instance (not yet validated)

    Raises:
        ConfigurationError: If a numeric variable cannot be parsed
    """
    try:
        return HarnessConfig(
            host=os.getenv("HA_TEST_HOST", "localhost"),
            port=int(os.getenv("HA_TEST_PORT", "54320")),
            database=os.getenv("HA_TEST_DB", "postgres"),
            user=os.getenv("HA_TEST_USER", "postgres"),
            password=os.getenv("HA_TEST_PASSWORD", ""),
            sslmode=os.getenv("HA_TEST_SSLMODE", "disable"),
            sslrootcert=os.getenv("HA_TEST_SSLROOTCERT"),
            min_connections=int(os.getenv("HA_TEST_MIN_CONNECTIONS", "1")),
            max_connections=int(os.getenv("HA_TEST_MAX_CONNECTIONS", "10")),
            connect_timeout=int(os.getenv("HA_TEST_CONNECT_TIMEOUT", "5")),
            table=os.getenv("HA_TEST_TABLE", "ha_test"),
            write_interval=float(os.getenv("HA_TEST_WRITE_INTERVAL", "2")),
            report_interval=float(os.getenv("HA_TEST_REPORT_INTERVAL", "5")),
            retry=RetryBudget(
                max_attempts=int(os.getenv("HA_TEST_MAX_RETRIES", "5")),
                delay=float(os.getenv("HA_TEST_RETRY_DELAY", "2")),
            ),
            output_format=os.getenv("HA_TEST_OUTPUT_FORMAT", "human").lower(),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e
