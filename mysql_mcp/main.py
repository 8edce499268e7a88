"""MySQL MCP Server — main entry point.

3 query tools (one hidden unless writes are enabled), statement-type
governance and a table denylist enforced before any SQL reaches MySQL.
"""
import logging
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from mysql_mcp.config import config
from mysql_mcp.db import pool
from mysql_mcp.executor import ExecutionMode, QueryExecutor
from mysql_mcp.governance.policy import build_governance_policy
from mysql_mcp.tools.query import register_query_tools

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Build governance policy (env vars + optional YAML)
governance = build_governance_policy(settings=config)
executor = QueryExecutor(pool, governance)


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    """Initialize and tear down the connection pool."""
    try:
        await pool.initialize()
        rows = await executor.execute("SELECT VERSION() AS version", ExecutionMode.UNRESTRICTED)
        version = rows[0].get("version") if rows else "unknown"
        logger.info(f"MySQL MCP Server started (server version {version})")
    except Exception as e:
        logger.warning(f"Pool initialization failed (queries will fail until MySQL is reachable): {e}")

    yield {"pool": pool}

    try:
        await pool.close()
    except Exception as e:
        logger.warning(f"Error while closing pool: {e}")
    logger.info("MySQL MCP Server stopped")


mcp = FastMCP(
    "mysql_mcp",
    lifespan=app_lifespan,
    host="0.0.0.0",
    port=config.app_port,
)

register_query_tools(mcp, executor, governance.snapshot())


def main():
    mcp.run(transport=config.transport)


if __name__ == "__main__":
    main()
