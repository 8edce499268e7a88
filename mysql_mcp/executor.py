"""Query execution under the four trust levels.

    UNRESTRICTED      server-internal SQL; parse gate only, raises on failure
    READ_ONLY         reads in a rolled-back READ ONLY transaction; writes
                      only when their ALLOW_*_OPERATION flag is set
    STRICT_READ_ONLY  reads only, whatever the flags say; no INTO OUTFILE
    WRITE             insert/update/delete/DDL with its flag set; commit or
                      roll back

Every gated mode authorizes (classification, then denylist) before a
connection is leased. Policy blocks and parse failures come back as error
results, never as exceptions.
"""
import time
import logging
from enum import Enum
from typing import Any, Optional, Sequence

from mysql_mcp.db import MySQLPool
from mysql_mcp.governance.policy import (
    GovernanceConfig,
    GovernancePolicy,
    check_denylist,
    is_operation_allowed,
    operation_family,
)
from mysql_mcp.governance.sql_guard import (
    READ_TYPES,
    SQLGovernanceError,
    UnresolvedTablesError,
    classify_statement,
    extract_schema_from_query,
    has_output_redirect,
    parse_single_statement,
)
from mysql_mcp.utils.errors import handle_error
from mysql_mcp.utils.formatting import (
    error_result,
    format_read_result,
    format_write_summary,
    text_result,
)

logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
    UNRESTRICTED = "unrestricted"
    READ_ONLY = "read_only"
    STRICT_READ_ONLY = "strict_read_only"
    WRITE = "write"


class QueryExecutor:
    """Authorizes and runs one statement per call against a MySQLPool."""

    def __init__(self, pool: MySQLPool, policy: GovernancePolicy):
        self._pool = pool
        self._policy = policy

    async def execute(
        self, sql: str, mode: ExecutionMode, params: Optional[Sequence[Any]] = None
    ):
        if mode == ExecutionMode.UNRESTRICTED:
            return await self.execute_query(sql, params)
        if mode == ExecutionMode.READ_ONLY:
            return await self.execute_read_only_query(sql)
        if mode == ExecutionMode.STRICT_READ_ONLY:
            return await self.execute_strict_read_only_query(sql)
        if mode == ExecutionMode.WRITE:
            return await self.execute_write_query(sql)
        raise ValueError(f"Unknown execution mode: {mode}")

    # ── Unrestricted ─────────────────────────────────────────────────

    async def execute_query(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> list[dict[str, Any]]:
        """Run trusted SQL with bound parameters. Raises on any failure."""
        # aiomysql binds %s; the parser understands ? placeholders
        parse_single_statement(sql.replace("%s", "?") if params else sql)
        return await self._pool.execute_query(sql, params)

    # ── Read-only ────────────────────────────────────────────────────

    async def execute_read_only_query(self, sql: str) -> dict[str, Any]:
        config = self._policy.snapshot()
        try:
            statement = parse_single_statement(sql)
        except SQLGovernanceError as e:
            return self._parse_failure(sql, e)

        stmt_type = classify_statement(statement)
        family = operation_family(stmt_type)
        if family is not None:
            if not is_operation_allowed(config, family):
                return self._blocked(
                    sql, f"{family.upper()} operations are not allowed."
                )
            return await self._run_write(sql, family, config)

        if stmt_type not in READ_TYPES:
            return self._blocked(
                sql, f"Statement type '{stmt_type.value}' is not allowed."
            )
        return await self._run_read(sql, config)

    # ── Strict read-only ─────────────────────────────────────────────

    async def execute_strict_read_only_query(self, sql: str) -> dict[str, Any]:
        config = self._policy.snapshot()
        if has_output_redirect(sql):
            return self._blocked(
                sql,
                "SELECT ... INTO OUTFILE/DUMPFILE is not allowed in strict read mode.",
            )
        try:
            statement = parse_single_statement(sql)
        except SQLGovernanceError as e:
            return self._parse_failure(sql, e)

        stmt_type = classify_statement(statement)
        if stmt_type not in READ_TYPES:
            return self._blocked(
                sql,
                f"Statement type(s) not allowed in strict read mode: {stmt_type.value}",
            )
        if has_output_redirect(sql, statement):
            return self._blocked(
                sql, "SELECT ... INTO is not allowed in strict read mode."
            )
        return await self._run_read(sql, config)

    # ── Write ────────────────────────────────────────────────────────

    async def execute_write_query(self, sql: str) -> dict[str, Any]:
        config = self._policy.snapshot()
        try:
            statement = parse_single_statement(sql)
        except SQLGovernanceError as e:
            return self._parse_failure(sql, e)

        stmt_type = classify_statement(statement)
        family = operation_family(stmt_type)
        if family is None:
            return self._blocked(
                sql,
                f"Statement type '{stmt_type.value}' is not a write operation. "
                "Use the read tool for queries.",
            )
        if not is_operation_allowed(config, family):
            return self._blocked(sql, f"{family.upper()} operations are not allowed.")
        return await self._run_write(sql, family, config)

    # ── Shared steps ─────────────────────────────────────────────────

    def _authorize_tables(self, sql: str, config: GovernanceConfig) -> Optional[dict]:
        """Denylist gate. Returns an error result if the statement is blocked."""
        try:
            decision = check_denylist(config, sql)
        except UnresolvedTablesError as e:
            return self._blocked(sql, str(e))
        except SQLGovernanceError as e:
            return self._parse_failure(sql, e)
        if decision.blocked:
            return self._blocked(sql, decision.reason)
        return None

    async def _run_read(self, sql: str, config: GovernanceConfig) -> dict[str, Any]:
        denied = self._authorize_tables(sql, config)
        if denied is not None:
            return denied

        start = time.perf_counter()
        try:
            rows = await self._pool.execute_readonly(sql)
        except Exception as e:
            logger.error(f"Read-only query failed: {e}")
            return error_result(f"Error executing query: {_describe(e)}")
        elapsed_ms = (time.perf_counter() - start) * 1000
        return format_read_result(rows, elapsed_ms)

    async def _run_write(
        self, sql: str, family: str, config: GovernanceConfig
    ) -> dict[str, Any]:
        denied = self._authorize_tables(sql, config)
        if denied is not None:
            return denied

        schema = extract_schema_from_query(
            sql, config.default_schema, config.multi_db_mode
        )
        try:
            result = await self._pool.execute_write(sql)
        except Exception as e:
            logger.error(f"Write operation failed on schema {schema}: {e}")
            return error_result(f"Error executing write operation: {_describe(e)}")

        logger.info(
            f"{family.upper()} committed on schema {schema} "
            f"(affected_rows={result.affected_rows})"
        )
        return text_result(format_write_summary(family, result, schema))

    @staticmethod
    def _blocked(sql: str, reason: str) -> dict[str, Any]:
        logger.warning(f"Query blocked: {reason} SQL: {sql[:100]}")
        return error_result(reason)

    @staticmethod
    def _parse_failure(sql: str, e: SQLGovernanceError) -> dict[str, Any]:
        logger.warning(f"Could not authorize SQL ({e}): {sql[:100]}")
        return error_result(f"Parsing failed: {e}")


def _describe(e: Exception) -> str:
    return handle_error(e).removeprefix("Error: ")
