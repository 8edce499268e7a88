"""Tool result envelope formatting."""
import json
from typing import Any, Optional

from mysql_mcp.db import WriteResult


def text_result(*texts: str, is_error: bool = False) -> dict[str, Any]:
    """Build a tool result: {"content": [{"type": "text", ...}], "isError": ...}."""
    return {
        "content": [{"type": "text", "text": text} for text in texts],
        "isError": is_error,
    }


def error_result(message: str) -> dict[str, Any]:
    if not message.startswith("Error"):
        message = f"Error: {message}"
    return text_result(message, is_error=True)


def format_rows(rows: list[dict]) -> str:
    return json.dumps(rows, indent=2, default=str)


def format_read_result(rows: list[dict], elapsed_ms: float) -> dict[str, Any]:
    return text_result(
        format_rows(rows),
        f"Query execution time: {elapsed_ms:.2f} ms",
    )


def format_write_summary(
    operation: str, result: WriteResult, schema: Optional[str] = None
) -> str:
    """Human-readable summary of a committed write.

    operation is the write family: insert, update, delete or ddl.
    """
    target = f" on schema '{schema}'" if schema else ""
    if operation == "insert":
        return (
            f"Insert successful{target}. Affected rows: {result.affected_rows}, "
            f"Last insert ID: {result.insert_id}"
        )
    if operation == "update":
        return (
            f"Update successful{target}. Affected rows: {result.affected_rows}, "
            f"Changed rows: {result.changed_rows or 0}"
        )
    if operation == "delete":
        return f"Delete successful{target}. Affected rows: {result.affected_rows}"
    return f"DDL operation successful{target}."
