"""Connection handle for the load-balanced PostgreSQL endpoint.

A ``ConnectionHandle`` owns one psycopg2 ``ThreadedConnectionPool`` opened
against the balancer's virtual address. After a failover the pooled sessions
go stale, so the harness never repairs a handle in place: it opens a new one
and publishes it through a ``HandleCell``.
"""

# Standard library imports
import logging
import threading
import time
from contextlib import contextmanager
from typing import Optional

# Third-party imports
import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

# Local imports
from .config import HarnessConfig

logger = logging.getLogger(__name__)

IDENTITY_QUERY = "SELECT host(inet_server_addr()) AS node_name"


class HarnessError(Exception):
    """Base class for harness errors."""

    pass


class HarnessConnectionError(HarnessError):
    """Raised when the balancer endpoint cannot be reached or pinged."""

    pass


class ProbeError(HarnessError):
    """Raised when the backend identity query fails."""

    pass


class SchemaError(HarnessError):
    """Raised when the test table cannot be created."""

    pass


class ConnectionHandle:
    """Live database session behind the virtual address."""

    def __init__(self, connection_pool: pool.ThreadedConnectionPool, label: str = ""):
        self._pool = connection_pool
        self.label = label
        self.opened_at = time.time()

    @classmethod
    def open(cls, config: HarnessConfig) -> "ConnectionHandle":
        """Open a pool against the configured endpoint and ping it.

        Args:
            config: Harness configuration

        Returns:
            Connected handle

        Raises:
            HarnessConnectionError: If the pool cannot be created or the ping fails
        """
        conn_params = {
            "minconn": config.min_connections,
            "maxconn": config.max_connections,
            "cursor_factory": RealDictCursor,
            **config.connection_params(),
        }

        try:
            connection_pool = psycopg2.pool.ThreadedConnectionPool(**conn_params)
        except psycopg2.Error as e:
            raise HarnessConnectionError(f"Cannot connect to {config.describe()}: {e}") from e

        handle = cls(connection_pool, config.describe())
        try:
            handle.ping()
        except HarnessConnectionError:
            handle.close()
            raise
        return handle

    @property
    def closed(self) -> bool:
        return self._pool is None or self._pool.closed

    @contextmanager
    def cursor(self):
        """Borrow a pooled connection and yield a cursor, committing on success.

        Broken connections are discarded instead of being returned to the pool.

        Raises:
            HarnessConnectionError: If the handle was already closed
            psycopg2.Error: On any driver or query error
        """
        if self.closed:
            raise HarnessConnectionError(f"Connection handle for {self.label} is closed")

        connection_pool = self._pool
        conn = connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except Exception:
            if not conn.closed:
                try:
                    conn.rollback()
                except psycopg2.Error as rollback_error:
                    logger.debug(f"Rollback on broken connection failed: {rollback_error}")
            raise
        finally:
            connection_pool.putconn(conn, close=bool(conn.closed))

    def ping(self):
        """Round-trip a trivial query.

        Raises:
            HarnessConnectionError: If the server does not answer
        """
        try:
            with self.cursor() as cur:
                cur.execute("SELECT 1")
        except psycopg2.Error as e:
            raise HarnessConnectionError(f"Ping to {self.label} failed: {e}") from e

    def close(self):
        """Close every pooled connection. Safe to call twice."""
        if self._pool is not None and not self._pool.closed:
            self._pool.closeall()
            logger.debug(f"Connection pool for {self.label} closed")
        self._pool = None


class HandleCell:
    """Lock-guarded reference to the current ConnectionHandle.

    Readers always get either the previous or the newly published handle,
    never one that is still being opened.
    """

    def __init__(self, handle: Optional[ConnectionHandle] = None):
        self._lock = threading.Lock()
        self._handle = handle

    def get(self) -> Optional[ConnectionHandle]:
        with self._lock:
            return self._handle

    def swap(self, handle: Optional[ConnectionHandle]) -> Optional[ConnectionHandle]:
        """Publish ``handle`` and return the one it replaced."""
        with self._lock:
            previous = self._handle
            self._handle = handle
        return previous

    def close(self):
        """Release the current handle."""
        previous = self.swap(None)
        if previous is not None:
            previous.close()


def probe_identity(handle: ConnectionHandle) -> str:
    """Ask the server which physical node answered.

    Args:
        handle: Current connection handle

    Returns:
        Node address, or an empty string when the server reports none
        (Unix-socket connections)

    Raises:
        ProbeError: On any transport or query error
    """
    try:
        with handle.cursor() as cur:
            cur.execute(IDENTITY_QUERY)
            row = cur.fetchone()
    except (psycopg2.Error, HarnessConnectionError) as e:
        raise ProbeError(f"Identity probe failed: {e}") from e

    if not row:
        return ""
    return row["node_name"] or ""


def create_test_table(handle: ConnectionHandle, table: str = "ha_test"):
    """Create the append-only test table if it does not exist.

    Raises:
        SchemaError: If the DDL fails
    """
    try:
        with handle.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id SERIAL PRIMARY KEY,
                    message TEXT NOT NULL,
                    node_name TEXT,
                    created_at TIMESTAMP DEFAULT NOW()
                )
            """
            )
    except (psycopg2.Error, HarnessConnectionError) as e:
        raise SchemaError(f"Failed to create table {table}: {e}") from e
    logger.info(f"✓ Test table {table} ready")
