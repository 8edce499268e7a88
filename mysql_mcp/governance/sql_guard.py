"""SQL statement parsing and classification using sqlglot (MySQL dialect).

Every check in this package starts from exactly one parsed statement:
- Malformed SQL raises SQLParseError
- Zero or several statements raise MultiStatementError
- MySQL executable comments (/*! ... */) raise SQLParseError
- Statement kinds sqlglot does not model are classified as UNKNOWN (denied)
"""
import re
import logging
from enum import Enum
from typing import Optional

import sqlglot
from sqlglot import exp

logger = logging.getLogger(__name__)

DIALECT = "mysql"


class SQLGovernanceError(Exception):
    """Base class for SQL that cannot be authorized."""


class SQLParseError(SQLGovernanceError):
    """SQL could not be parsed into a statement."""


class MultiStatementError(SQLParseError):
    """SQL contains zero or more than one top-level statement."""

    def __init__(self, message: str = "Only single-statement SQL is allowed"):
        super().__init__(message)


class UnresolvedTablesError(SQLGovernanceError):
    """The tables a statement touches cannot be determined from its text."""


class SQLStatementType(str, Enum):
    """Statement kinds the executor knows how to govern."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    CREATE = "create"
    DROP = "drop"
    ALTER = "alter"
    TRUNCATE = "truncate"
    RENAME = "rename"
    GRANT = "grant"
    REVOKE = "revoke"
    USE = "use"
    SHOW = "show"
    DESCRIBE = "describe"
    EXPLAIN = "explain"
    SET = "set"
    CALL = "call"
    UNKNOWN = "unknown"


# Map sqlglot expression types to our statement types.
# Order matters: the first isinstance match wins.
_EXPRESSION_MAP: dict[type, SQLStatementType] = {
    exp.Select: SQLStatementType.SELECT,
    exp.Union: SQLStatementType.SELECT,
    exp.Intersect: SQLStatementType.SELECT,
    exp.Except: SQLStatementType.SELECT,
    exp.Insert: SQLStatementType.INSERT,
    exp.Update: SQLStatementType.UPDATE,
    exp.Delete: SQLStatementType.DELETE,
    exp.Create: SQLStatementType.CREATE,
    exp.Drop: SQLStatementType.DROP,
    exp.Alter: SQLStatementType.ALTER,
    exp.TruncateTable: SQLStatementType.TRUNCATE,
    exp.Grant: SQLStatementType.GRANT,
    exp.Use: SQLStatementType.USE,
    exp.Show: SQLStatementType.SHOW,
    exp.Describe: SQLStatementType.DESCRIBE,
    exp.Set: SQLStatementType.SET,
}

# Leading keywords of statements sqlglot keeps as opaque exp.Command nodes
_COMMAND_MAP: dict[str, SQLStatementType] = {
    "EXPLAIN": SQLStatementType.EXPLAIN,
    "DESC": SQLStatementType.DESCRIBE,
    "DESCRIBE": SQLStatementType.DESCRIBE,
    "SHOW": SQLStatementType.SHOW,
    "REVOKE": SQLStatementType.REVOKE,
    "GRANT": SQLStatementType.GRANT,
    "SET": SQLStatementType.SET,
    "CALL": SQLStatementType.CALL,
    "REPLACE": SQLStatementType.INSERT,
    "RENAME": SQLStatementType.RENAME,
    "TRUNCATE": SQLStatementType.TRUNCATE,
    "ALTER": SQLStatementType.ALTER,
    "CREATE": SQLStatementType.CREATE,
    "DROP": SQLStatementType.DROP,
}

READ_TYPES = frozenset(
    {
        SQLStatementType.SELECT,
        SQLStatementType.SHOW,
        SQLStatementType.DESCRIBE,
        SQLStatementType.EXPLAIN,
    }
)

DDL_TYPES = frozenset(
    {
        SQLStatementType.CREATE,
        SQLStatementType.DROP,
        SQLStatementType.ALTER,
        SQLStatementType.TRUNCATE,
        SQLStatementType.RENAME,
    }
)

_OUTPUT_REDIRECT = re.compile(r"\bINTO\s+(OUTFILE|DUMPFILE)\b", re.IGNORECASE)

# MySQL runs the body of /*! ... */ (and MariaDB /*M! ... */); the parser drops it
_EXECUTABLE_COMMENT = re.compile(r"/\*M?!", re.IGNORECASE)


def parse_single_statement(sql: str, dialect: str = DIALECT) -> exp.Expression:
    """Parse SQL into exactly one statement.

    Raises:
        SQLParseError: the SQL is empty, malformed or carries an executable
            comment.
        MultiStatementError: the SQL holds zero or several statements.
    """
    if not sql or not sql.strip():
        raise SQLParseError("SQL statement is empty")
    if _EXECUTABLE_COMMENT.search(sql):
        raise SQLParseError("Executable comments (/*! ... */) are not allowed")
    try:
        statements = sqlglot.parse(sql, dialect=dialect)
    except sqlglot.errors.SqlglotError as e:
        raise SQLParseError(str(e).strip()) from e

    # Trailing semicolons yield None entries
    statements = [s for s in statements if s is not None]
    if len(statements) != 1:
        raise MultiStatementError()
    return statements[0]


def classify_statement(statement: exp.Expression) -> SQLStatementType:
    """Map a parsed statement to its SQLStatementType."""
    for expr_type, stmt_type in _EXPRESSION_MAP.items():
        if isinstance(statement, expr_type):
            return stmt_type

    if isinstance(statement, exp.Command):
        cmd = statement.this.upper() if isinstance(statement.this, str) else ""
        return _COMMAND_MAP.get(cmd, SQLStatementType.UNKNOWN)

    logger.debug(f"Unrecognized expression type: {type(statement).__name__}")
    return SQLStatementType.UNKNOWN


def get_query_types(sql: str) -> list[str]:
    """Return the lower-cased statement type of a single-statement SQL string.

    Raises SQLParseError (or MultiStatementError) prefixed with
    "Parsing failed:" when the SQL cannot be classified.
    """
    logger.debug(f"Classifying SQL: {sql[:200]}")
    try:
        statement = parse_single_statement(sql)
    except MultiStatementError as e:
        logger.warning(f"Rejected multi-statement SQL: {sql[:100]}")
        raise MultiStatementError(f"Parsing failed: {e}") from e
    except SQLParseError as e:
        logger.warning(f"Could not parse SQL, will deny: {sql[:100]}")
        raise SQLParseError(f"Parsing failed: {e}") from e
    return [classify_statement(statement).value]


def has_output_redirect(sql: str, statement: Optional[exp.Expression] = None) -> bool:
    """True if the SQL writes its result somewhere other than the client.

    Covers SELECT ... INTO OUTFILE / DUMPFILE (checked on the raw text so it
    holds even when the parser does not model the clause) and any other
    SELECT ... INTO form sqlglot recognizes.
    """
    if _OUTPUT_REDIRECT.search(sql):
        return True
    if statement is not None:
        return any(
            isinstance(node, exp.Select) and node.args.get("into") is not None
            for node in statement.walk()
        )
    return False


def extract_schema_from_query(
    sql: str, default_schema: Optional[str], multi_db_mode: bool
) -> Optional[str]:
    """Best-effort guess of the schema a statement targets.

    Used for log lines and write summaries only. Authorization never relies
    on this; table resolution goes through governance.tables.
    """
    if default_schema and not multi_db_mode:
        return default_schema

    use_match = re.search(r"USE\s+`?([a-zA-Z0-9_]+)`?", sql, re.IGNORECASE)
    if use_match:
        return use_match.group(1)

    db_table_match = re.search(r"`?([a-zA-Z0-9_]+)`?\.`?[a-zA-Z0-9_]+`?", sql)
    if db_table_match:
        return db_table_match.group(1)

    return default_schema
