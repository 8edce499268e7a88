"""Table reference extraction over a parsed statement.

The walk is structural rather than grammar-aware: every node of the tree is
visited regardless of statement kind, so tables in subqueries, joins, DML
targets and DDL targets are all reported. Over-reporting is acceptable here
because the result feeds a denylist.

Statements sqlglot keeps as opaque exp.Command text are resolved where their
shape is known (EXPLAIN, REPLACE, RENAME TABLE). Any other command raises
UnresolvedTablesError rather than reporting no tables.
"""
import re
from dataclasses import dataclass
from typing import Optional

from sqlglot import exp
from sqlglot.errors import SqlglotError

from mysql_mcp.governance.sql_guard import (
    DIALECT,
    SQLParseError,
    UnresolvedTablesError,
    parse_single_statement,
)

# Commands whose raw text wraps another statement
_WRAPPING_COMMANDS = frozenset({"EXPLAIN", "DESC", "DESCRIBE"})

# SHOW kinds whose target is a table or view
_SHOW_TABLE_KINDS = frozenset({"COLUMNS", "INDEX", "CREATE TABLE", "CREATE VIEW"})

_RENAME_PREFIX = re.compile(r"^\s*TABLES?\s+", re.IGNORECASE)
_RENAME_PAIR = re.compile(r"^\s*(\S+)\s+TO\s+(\S+)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class ReferencedTable:
    schema: Optional[str]
    table: str

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table


def normalize_identifier(part: Optional[str]) -> Optional[str]:
    """Trim, strip backtick quoting and lower-case an identifier."""
    if part is None:
        return None
    normalized = str(part).replace("`", "").strip().lower()
    return normalized or None


def _identifier_text(node) -> Optional[str]:
    if node is None:
        return None
    if isinstance(node, exp.Expression):
        return normalize_identifier(node.name)
    return normalize_identifier(node)


def extract_referenced_tables(statement: exp.Expression) -> list[ReferencedTable]:
    """Return the deduplicated tables a parsed statement references.

    Every exp.Table node is recorded with its db part as the schema, as is
    the target of SHOW COLUMNS / INDEX / CREATE TABLE / CREATE VIEW. Column
    qualifiers (t.col, db.t.col) are recorded too, unless the qualifier names
    a table, alias or CTE already present in the statement.

    Raises:
        SQLParseError: text wrapped by a command does not parse.
        UnresolvedTablesError: the statement is a command whose tables
            cannot be read from its text.
    """
    seen: set[ReferencedTable] = set()
    out: list[ReferencedTable] = []

    def record(schema: Optional[str], table: Optional[str]) -> None:
        if not table:
            return
        ref = ReferencedTable(schema=schema, table=table)
        if ref not in seen:
            seen.add(ref)
            out.append(ref)

    if isinstance(statement, exp.Command):
        for ref in _command_tables(statement):
            record(ref.schema, ref.table)
        return out

    # Names a column qualifier may legitimately point at
    known_relations: set[str] = set()
    columns: list[exp.Column] = []

    for node in statement.walk():
        if isinstance(node, exp.Table):
            table = _identifier_text(node.args.get("this"))
            record(_identifier_text(node.args.get("db")), table)
            if table:
                known_relations.add(table)
            alias = normalize_identifier(node.alias)
            if alias:
                known_relations.add(alias)
        elif isinstance(node, exp.Show):
            kind = node.name.upper() if node.name else ""
            if kind in _SHOW_TABLE_KINDS:
                record(
                    _identifier_text(node.args.get("db")),
                    _identifier_text(node.args.get("target")),
                )
        elif isinstance(node, (exp.CTE, exp.Subquery)):
            alias = normalize_identifier(node.alias)
            if alias:
                known_relations.add(alias)
        elif isinstance(node, exp.Column):
            columns.append(node)

    for column in columns:
        table = _identifier_text(column.args.get("table"))
        if not table:
            continue
        schema = _identifier_text(column.args.get("db"))
        if schema is None and table in known_relations:
            continue
        record(schema, table)

    return out


def _command_text(statement: exp.Command) -> str:
    body = statement.args.get("expression")
    if isinstance(body, exp.Expression):
        return body.name
    return body or ""


def _command_tables(statement: exp.Command) -> list[ReferencedTable]:
    """Tables referenced by a statement sqlglot only kept as raw text."""
    keyword = statement.this.upper() if isinstance(statement.this, str) else ""
    body = _command_text(statement)

    if keyword in _WRAPPING_COMMANDS:
        if not body.strip():
            return []
        return extract_referenced_tables(parse_single_statement(body))

    if keyword == "REPLACE":
        # REPLACE shares INSERT's grammar
        return extract_referenced_tables(parse_single_statement(f"INSERT {body}"))

    if keyword == "RENAME":
        return _rename_tables(body)

    raise UnresolvedTablesError(
        f"Cannot determine the tables referenced by a {keyword or 'command'} "
        "statement while a table denylist is active"
    )


def _rename_tables(body: str) -> list[ReferencedTable]:
    """Both sides of every `old TO new` pair in RENAME TABLE."""
    prefix = _RENAME_PREFIX.match(body)
    if not prefix:
        raise UnresolvedTablesError(
            "Cannot determine the tables referenced by a RENAME statement "
            "while a table denylist is active"
        )

    refs = []
    for pair in body[prefix.end():].strip().rstrip(";").split(","):
        match = _RENAME_PAIR.match(pair)
        if not match:
            raise SQLParseError(f"Cannot parse RENAME TABLE clause: {pair.strip()!r}")
        for name in match.groups():
            try:
                table = exp.to_table(name, dialect=DIALECT)
            except SqlglotError as e:
                raise SQLParseError(str(e).strip()) from e
            refs.append(
                ReferencedTable(
                    schema=_identifier_text(table.args.get("db")),
                    table=_identifier_text(table.args.get("this")),
                )
            )
    return refs


def get_referenced_tables(sql: str) -> list[ReferencedTable]:
    """Parse SQL (single statement enforced) and extract its table references."""
    return extract_referenced_tables(parse_single_statement(sql))
