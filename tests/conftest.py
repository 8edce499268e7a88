"""Shared test fixtures for MySQL MCP tests."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from mysql_mcp.db import MySQLPool
from mysql_mcp.executor import QueryExecutor
from mysql_mcp.governance.denylist import DenylistEntry
from mysql_mcp.governance.policy import GovernanceConfig, GovernancePolicy


def make_cursor(rows=None, events=None):
    """Mock aiomysql DictCursor. Every execute() is recorded in events."""
    events = events if events is not None else []
    cur = MagicMock()

    async def execute(sql, args=None):
        events.append(("execute", sql))

    cur.execute = AsyncMock(side_effect=execute)
    cur.fetchmany = AsyncMock(return_value=rows if rows is not None else [])
    cur.description = (("id",),) if rows is not None else None
    cur.rowcount = len(rows) if rows is not None else 0
    cur.lastrowid = None
    cur._result = SimpleNamespace(message=None)
    return cur


def make_connection(cursor, events=None):
    """Mock aiomysql Connection whose cursor() is an async context manager."""
    events = events if events is not None else []
    conn = MagicMock()
    conn.begin = AsyncMock(side_effect=lambda: events.append(("begin",)))
    conn.commit = AsyncMock(side_effect=lambda: events.append(("commit",)))
    conn.rollback = AsyncMock(side_effect=lambda: events.append(("rollback",)))
    conn.cursor.return_value.__aenter__.return_value = cursor
    conn.cursor.return_value.__aexit__.return_value = False
    return conn


@pytest.fixture
def db():
    """A real MySQLPool wired to a mocked aiomysql pool, connection and cursor."""
    events: list[tuple] = []
    cursor = make_cursor(rows=[{"id": 1, "name": "Test"}], events=events)
    conn = make_connection(cursor, events=events)

    raw_pool = MagicMock()

    async def acquire():
        events.append(("acquire",))
        return conn

    raw_pool.acquire = AsyncMock(side_effect=acquire)
    raw_pool.release = MagicMock(side_effect=lambda c: events.append(("release",)))

    mysql_pool = MySQLPool()
    mysql_pool._pool = raw_pool
    return SimpleNamespace(
        pool=mysql_pool,
        raw_pool=raw_pool,
        conn=conn,
        cursor=cursor,
        events=events,
    )


@pytest.fixture
def read_only_config():
    return GovernanceConfig(default_schema="test", multi_db_mode=False)


@pytest.fixture
def write_config():
    return GovernanceConfig(
        allow_insert=True,
        allow_update=True,
        allow_delete=True,
        default_schema="test",
        multi_db_mode=False,
    )


@pytest.fixture
def make_executor(db):
    """Build a QueryExecutor over the mocked pool for a given config."""

    def _make(config: GovernanceConfig = None) -> QueryExecutor:
        return QueryExecutor(db.pool, GovernancePolicy(config or GovernanceConfig()))

    return _make


@pytest.fixture
def sample_denylist():
    return (
        DenylistEntry(schema="prod", table="users"),
        DenylistEntry(schema=None, table="secrets"),
    )


@pytest.fixture
def sample_rows():
    return [
        {"id": 1, "name": "Alice", "email": "alice@example.com"},
        {"id": 2, "name": "Bob", "email": "bob@example.com"},
    ]
