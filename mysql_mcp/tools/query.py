"""SQL query tools with statement and table governance.

mysql_query        read-only mode (writes only when ALLOW_*_OPERATION is set)
mysql_query_read   strict read-only mode (never writes)
mysql_query_write  write mode, registered only when a write operation is enabled
"""
from pydantic import BaseModel, Field, ConfigDict
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import TextContent

from mysql_mcp.executor import ExecutionMode, QueryExecutor
from mysql_mcp.governance.policy import GovernanceConfig


class QueryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)
    sql: str = Field(
        ...,
        description="A single SQL statement to run against the MySQL database",
        min_length=1,
        max_length=50000,
    )


def build_tool_description(config: GovernanceConfig) -> str:
    """Describe the operations the current configuration permits."""
    enabled = [
        name
        for name, allowed in (
            ("INSERT", config.allow_insert),
            ("UPDATE", config.allow_update),
            ("DELETE", config.allow_delete),
            ("DDL", config.allow_ddl),
        )
        if allowed
    ]
    description = "Run SQL queries against MySQL database"
    if enabled:
        description += f" with support for: {', '.join(enabled)} and READ operations"
    else:
        description += " (READ-ONLY)"
    return description


def to_tool_content(result: dict) -> list[TextContent]:
    """Convert a result envelope to MCP content, raising ToolError on errors."""
    texts = [block["text"] for block in result["content"]]
    if result["isError"]:
        raise ToolError("\n".join(texts))
    return [TextContent(type="text", text=text) for text in texts]


def register_query_tools(mcp: FastMCP, executor: QueryExecutor, config: GovernanceConfig):
    description = build_tool_description(config)

    @mcp.tool(
        name="mysql_query",
        description=(
            f"{description}. Reads run in a READ ONLY transaction that is always "
            "rolled back; enabled write operations are committed."
        ),
        annotations={
            "title": "Execute SQL Query",
            "readOnlyHint": not config.any_write_enabled,
            "destructiveHint": config.any_write_enabled,
            "idempotentHint": False,
            "openWorldHint": False,
        },
        structured_output=False,
    )
    async def mysql_query(params: QueryInput) -> list[TextContent]:
        result = await executor.execute(params.sql, ExecutionMode.READ_ONLY)
        return to_tool_content(result)

    @mcp.tool(
        name="mysql_query_read",
        description=(
            f"{description} (strict read-only tool). Only SELECT, SHOW, DESCRIBE "
            "and EXPLAIN are accepted regardless of configuration."
        ),
        annotations={
            "title": "Execute Read-Only SQL Query",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False,
        },
        structured_output=False,
    )
    async def mysql_query_read(params: QueryInput) -> list[TextContent]:
        result = await executor.execute(params.sql, ExecutionMode.STRICT_READ_ONLY)
        return to_tool_content(result)

    # Hide the write tool unless at least one write operation is enabled
    if not config.any_write_enabled:
        return

    @mcp.tool(
        name="mysql_query_write",
        description=description,
        annotations={
            "title": "Execute SQL Write",
            "readOnlyHint": False,
            "destructiveHint": True,
            "idempotentHint": False,
            "openWorldHint": False,
        },
        structured_output=False,
    )
    async def mysql_query_write(params: QueryInput) -> list[TextContent]:
        result = await executor.execute(params.sql, ExecutionMode.WRITE)
        return to_tool_content(result)
