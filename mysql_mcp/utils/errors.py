"""Centralized error handling with actionable messages."""
import pymysql

# MySQL server / client error codes
_ACCESS_DENIED = {1044, 1045, 1142, 1143, 1227}
_UNKNOWN_TABLE = 1146
_UNKNOWN_DATABASE = 1049
_SYNTAX_ERROR = 1064
_READ_ONLY_TRANSACTION = 1792
_DUPLICATE_ENTRY = 1062
_FOREIGN_KEY = {1451, 1452}
_TIMEOUT = {1205, 1317, 3024}
_SERVER_UNREACHABLE = {2002, 2003, 2005}
_CONNECTION_LOST = {2006, 2013}


def _error_code(e: pymysql.err.MySQLError) -> int:
    if e.args and isinstance(e.args[0], int):
        return e.args[0]
    return 0


def _error_text(e: pymysql.err.MySQLError) -> str:
    if len(e.args) > 1:
        return str(e.args[1])
    return str(e)


def handle_error(e: Exception) -> str:
    """Return a human-readable, actionable error message.

    Distinguishes between:
    - Server unreachable / connection lost (transient — retry)
    - Permission, missing table, syntax and constraint errors
    - Writes attempted inside a read-only transaction
    """
    if isinstance(e, ConnectionError):
        return (
            f"Error: Cannot connect to MySQL — {e}. "
            "Check that the server is running and reachable, then retry."
        )

    if isinstance(e, pymysql.err.MySQLError):
        code = _error_code(e)
        text = _error_text(e)

        if code in _SERVER_UNREACHABLE:
            return (
                "Error: Cannot connect to the MySQL server. "
                "Check MYSQL_HOST/MYSQL_PORT and that the server is running."
            )
        if code in _CONNECTION_LOST:
            return (
                "Error: Lost connection to MySQL during the query. "
                "Retry your query — the pool will reconnect automatically."
            )
        if code in _ACCESS_DENIED:
            return (
                f"Error: Permission denied — {text}. "
                "The configured MySQL user lacks the privilege for this operation."
            )
        if code == _UNKNOWN_TABLE:
            return f"Error: {text}. Check the table name and schema qualification."
        if code == _UNKNOWN_DATABASE:
            return f"Error: {text}. Check the schema name."
        if code == _SYNTAX_ERROR:
            return f"Error: SQL syntax error — {text}. Check your query and try again."
        if code == _READ_ONLY_TRANSACTION:
            return (
                "Error: The statement tried to modify data inside a read-only "
                "transaction and was rejected by the server."
            )
        if code == _DUPLICATE_ENTRY:
            return f"Error: Duplicate entry — {text}."
        if code in _FOREIGN_KEY:
            return f"Error: Foreign key constraint failed — {text}."
        if code in _TIMEOUT:
            return (
                "Error: Query timed out or was interrupted. "
                "Try limiting rows with LIMIT or simplifying the query."
            )
        return f"Error: MySQL error {code} — {text}"

    if isinstance(e, TimeoutError):
        return "Error: Connection timed out. Check that the MySQL server is reachable."

    return f"Error: {type(e).__name__} — {str(e)}"
