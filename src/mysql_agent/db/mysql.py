"""Read-only MySQL access shared by every diagnostic tool."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

import mysql.connector
from mysql.connector import errors as mysql_errors
from mysql.connector import pooling

from mysql_agent.agent.deadline import Deadline, current_deadline
from mysql_agent.config import DatabaseConfig
from mysql_agent.errors import DeadlineExceededError

logger = logging.getLogger(__name__)

# Client-side packet errors raised by oversized FULL PROCESSLIST rows.
_PACKET_ERRNOS = {2020, 2027, 2028}
_SYNTAX_ERRNO = 1064
# ER_QUERY_INTERRUPTED, ER_QUERY_TIMEOUT
_INTERRUPTED_ERRNOS = {1317, 3024}
_POOL_RETRY_SECONDS = 0.02
_KILL_WAIT_SECONDS = 2.0

class MySQLDatabase:
    """Lazily pooled connection source with row-dict query helpers.

    Statements issued while a request deadline is bound (see
    `agent.deadline.bind_deadline`) wait for a pooled connection only until
    the deadline, run with `MAX_EXECUTION_TIME` when they are SELECTs, and are
    cancelled with `KILL QUERY` from a second connection once it passes.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        pool: pooling.MySQLConnectionPool | None = None,
    ) -> None:
        self.config = config
        self._pool = pool
        self._lock = threading.Lock()

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        deadline = current_deadline()
        conn = self._acquire(deadline)
        try:
            cursor = conn.cursor(dictionary=True)
            try:
                if deadline is None:
                    cursor.execute(sql, tuple(params))
                else:
                    self._execute_bounded(conn, cursor, sql, params, deadline)
                return list(cursor.fetchall()) if cursor.description else []
            finally:
                cursor.close()
        finally:
            conn.close()

    def query_with_fallback(
        self,
        primary: str,
        fallback: str,
        should_fallback: Callable[[Exception], bool],
    ) -> list[dict[str, Any]]:
        """Run `primary`, retrying once with `fallback` when allowed."""
        try:
            return self.query(primary)
        except mysql.connector.Error as exc:
            if not should_fallback(exc):
                raise
            logger.info("falling back from %r to %r: %s", primary, fallback, exc)
            return self.query(fallback)

    def variables(self) -> dict[str, str]:
        rows = self.query("SHOW VARIABLES")
        result: dict[str, str] = {}
        for row in rows:
            values = list(row.values())
            if len(values) >= 2:
                result[str(values[0]).lower()] = _text(values[1])
        return result

    def pool_settings(self) -> dict[str, Any]:
        pool = self._get_pool()
        return {"pool_name": pool.pool_name, "pool_size": pool.pool_size}

    def _acquire(self, deadline: Deadline | None, wait: float | None = None) -> Any:
        """Check out a pooled connection, waiting while the pool is exhausted.

        The wait ends at the request deadline, or after `wait` seconds
        (default `connection_timeout`) when no deadline is bound.
        """
        pool = self._get_pool()
        if wait is None:
            wait = float(self.config.connection_timeout)
        give_up_at = time.monotonic() + wait
        while True:
            try:
                return pool.get_connection()
            except mysql_errors.PoolError:
                if deadline is not None:
                    deadline.check("waiting for a database connection")
                elif time.monotonic() >= give_up_at:
                    raise
            time.sleep(_POOL_RETRY_SECONDS)

    def _execute_bounded(
        self,
        conn: Any,
        cursor: Any,
        sql: str,
        params: Sequence[Any],
        deadline: Deadline,
    ) -> None:
        deadline.check(f"statement {sql!r}")
        remaining = deadline.remaining()
        if sql.lstrip().upper().startswith("SELECT"):
            cursor.execute(
                "SET SESSION MAX_EXECUTION_TIME = %s", (max(1, int(remaining * 1000)),)
            )

        watchdog = threading.Timer(remaining, self._kill_query, args=(conn.connection_id, sql))
        watchdog.daemon = True
        watchdog.start()
        try:
            cursor.execute(sql, tuple(params))
        except mysql.connector.Error as exc:
            if deadline.expired or getattr(exc, "errno", None) in _INTERRUPTED_ERRNOS:
                raise DeadlineExceededError(
                    f"statement {sql!r} cancelled at the request deadline: {exc}"
                ) from exc
            raise
        finally:
            watchdog.cancel()

    def _kill_query(self, connection_id: int, sql: str) -> None:
        logger.warning("killing statement on connection %s at deadline: %r", connection_id, sql)
        try:
            conn = self._acquire(None, wait=_KILL_WAIT_SECONDS)
        except mysql.connector.Error as exc:
            logger.error("no connection available to cancel %r: %s", sql, exc)
            return
        try:
            cursor = conn.cursor()
            try:
                cursor.execute(f"KILL QUERY {int(connection_id)}")
            finally:
                cursor.close()
        except mysql.connector.Error as exc:
            logger.error("KILL QUERY %s failed: %s", connection_id, exc)
        finally:
            conn.close()

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        with self._lock:
            if self._pool is None:
                cfg = self.config
                self._pool = pooling.MySQLConnectionPool(
                    pool_name=cfg.pool_name,
                    pool_size=cfg.pool_size,
                    host=cfg.host,
                    port=cfg.port,
                    user=cfg.user,
                    password=cfg.password,
                    database=cfg.database or None,
                    charset=cfg.charset,
                    connection_timeout=cfg.connection_timeout,
                    autocommit=True,
                )
                logger.info(
                    "mysql pool %s created for %s:%s (size=%d)",
                    cfg.pool_name,
                    cfg.host,
                    cfg.port,
                    cfg.pool_size,
                )
            return self._pool


def is_packet_error(exc: Exception) -> bool:
    errno = getattr(exc, "errno", None)
    if errno in _PACKET_ERRNOS:
        return True
    message = str(exc).lower()
    return any(
        marker in message
        for marker in ("too much", "too many", "max_allowed_packet", "data too long")
    )

def is_syntax_error(exc: Exception) -> bool:
    if getattr(exc, "errno", None) == _SYNTAX_ERRNO:
        return True
    return "syntax" in str(exc).lower()

def normalize_rows(rows: list[dict[str, Any]]) -> list[dict[str, str | None]]:
    """Lower-case column names and render values as text."""
    return [
        {str(key).lower(): (None if value is None else _text(value)) for key, value in row.items()}
        for row in rows
    ]

def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)
