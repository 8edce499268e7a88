"""Async MySQL connection pool with transaction discipline per execution mode.

Each call leases exactly one connection and returns it on every exit path.
Cleanup steps (rollback, session restore, release) are best-effort: a
failure there is logged and never masks the original outcome.
"""
import re
import logging
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Sequence

import aiomysql
import pymysql

from mysql_mcp.config import config

logger = logging.getLogger(__name__)

SET_READ_ONLY = "SET SESSION TRANSACTION READ ONLY"
SET_READ_WRITE = "SET SESSION TRANSACTION READ WRITE"

_CHANGED_ROWS = re.compile(rb"Changed:\s*(\d+)")

# Client error codes for a server that is unreachable or dropped the link
_TRANSIENT_CONNECT_CODES = frozenset({2002, 2003, 2006, 2013})


def _is_transient(e: Exception) -> bool:
    """True for connection-level failures worth retrying (not bad credentials)."""
    if isinstance(e, pymysql.err.OperationalError):
        return bool(e.args) and e.args[0] in _TRANSIENT_CONNECT_CODES
    return isinstance(e, OSError)


@dataclass
class WriteResult:
    """Outcome of a committed write statement."""

    affected_rows: int
    insert_id: Optional[int] = None
    changed_rows: Optional[int] = None


def _changed_rows(cur) -> Optional[int]:
    """Read "Changed: N" from the server's OK packet info message."""
    result = getattr(cur, "_result", None)
    message = getattr(result, "message", None)
    if isinstance(message, str):
        message = message.encode()
    if not isinstance(message, bytes):
        return None
    match = _CHANGED_ROWS.search(message)
    return int(match.group(1)) if match else None


class MySQLPool:
    """Manages the aiomysql connection pool.

    - Retries connection acquisition with exponential backoff
    - Read-only calls run in a READ ONLY session that is always rolled back
    - Write calls commit on success and roll back on any failure
    """

    def __init__(self):
        self._pool: Optional[aiomysql.Pool] = None

    async def initialize(self, **connect_kwargs):
        """Create the pool. Keyword arguments override the env config."""
        params = {
            "host": config.mysql_host,
            "port": config.mysql_port,
            "user": config.mysql_user,
            "password": config.mysql_password,
            "minsize": config.pool_min_size,
            "maxsize": config.pool_max_size,
            "pool_recycle": config.pool_recycle,
            "connect_timeout": config.connect_timeout_seconds,
            "autocommit": True,
            "cursorclass": aiomysql.DictCursor,
        }
        if config.mysql_database:
            params["db"] = config.mysql_database
        params.update(connect_kwargs)
        self._pool = await aiomysql.create_pool(**params)
        logger.info(
            f"MySQL connection pool initialized "
            f"({params['host']}:{params['port']}, db={params.get('db') or '<multi-db>'})"
        )

    async def close(self):
        if self._pool:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
            logger.info("MySQL connection pool closed")

    async def _acquire(self):
        last_error = None
        for attempt in range(config.connect_retry_attempts):
            try:
                return await self._pool.acquire()
            except (pymysql.err.OperationalError, OSError) as e:
                if not _is_transient(e):
                    raise
                last_error = e
                delay = min(
                    config.connect_retry_base_delay * (2**attempt),
                    config.connect_max_delay,
                )
                logger.warning(
                    f"Connection attempt {attempt + 1}/{config.connect_retry_attempts} "
                    f"failed ({e}). Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        raise ConnectionError(
            f"Failed to connect after {config.connect_retry_attempts} attempts. "
            f"Last error: {last_error}"
        )

    def _release(self, conn):
        try:
            self._pool.release(conn)
        except Exception as e:
            logger.error(f"Failed to release connection: {e}")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[aiomysql.Connection, None]:
        """Lease one connection, released exactly once on every exit path."""
        if not self._pool:
            raise RuntimeError("Pool not initialized. Call initialize() first.")

        conn = await self._acquire()
        try:
            yield conn
        finally:
            self._release(conn)

    @staticmethod
    async def _rollback(conn):
        try:
            await conn.rollback()
        except Exception as e:
            logger.error(f"Rollback failed: {e}")

    @staticmethod
    async def _restore_read_write(conn, cur):
        """Switch the session back to READ WRITE, or close the connection so
        the pool discards it instead of handing out a READ ONLY session."""
        try:
            await cur.execute(SET_READ_WRITE)
        except Exception as e:
            logger.error(f"Failed to restore READ WRITE session, discarding connection: {e}")
            try:
                conn.close()
            except Exception as close_error:
                logger.error(f"Failed to close connection: {close_error}")

    async def execute_query(
        self, sql: str, params: Optional[Sequence[Any]] = None, max_rows: int = None
    ) -> list[dict[str, Any]]:
        """Execute a statement directly (no transaction wrapper)."""
        effective_max = max_rows or config.max_rows
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql, params)
                if cur.description:
                    rows = await cur.fetchmany(effective_max)
                    return [dict(row) for row in rows]
                return [{"affected_rows": cur.rowcount}]

    async def execute_readonly(
        self, sql: str, params: Optional[Sequence[Any]] = None, max_rows: int = None
    ) -> list[dict[str, Any]]:
        """Execute in a READ ONLY session inside a transaction that is always
        rolled back. The session is switched back to READ WRITE before the
        connection returns to the pool."""
        effective_max = max_rows or config.max_rows
        rows: list[dict[str, Any]] = []
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                try:
                    await cur.execute(SET_READ_ONLY)
                    await conn.begin()
                    try:
                        await cur.execute(sql, params)
                        if cur.description:
                            rows = [dict(row) for row in await cur.fetchmany(effective_max)]
                    finally:
                        await self._rollback(conn)
                finally:
                    await self._restore_read_write(conn, cur)
        return rows

    async def execute_write(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> WriteResult:
        """Execute in an explicit transaction: commit on success, roll back on failure."""
        async with self.connection() as conn:
            await conn.begin()
            try:
                async with conn.cursor() as cur:
                    await cur.execute(sql, params)
                    result = WriteResult(
                        affected_rows=cur.rowcount,
                        insert_id=cur.lastrowid,
                        changed_rows=_changed_rows(cur),
                    )
                await conn.commit()
            except Exception:
                await self._rollback(conn)
                raise
        return result


pool = MySQLPool()
