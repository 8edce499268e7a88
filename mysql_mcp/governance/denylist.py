"""Table denylist enforcement.

Decides whether a statement touches a denylisted table. Parsing failures
propagate as SQLGovernanceError so callers can fail closed; they are never
treated as "not blocked".
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

from mysql_mcp.governance.tables import get_referenced_tables, normalize_identifier

logger = logging.getLogger(__name__)

DENYLIST_SETTING = "MYSQL_TABLE_DENYLIST"


@dataclass(frozen=True)
class DenylistEntry:
    """A denied table. schema=None matches the table in every schema."""

    schema: Optional[str]
    table: str

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table


@dataclass(frozen=True)
class PolicyDecision:
    blocked: bool
    reason: Optional[str] = None


NOT_BLOCKED = PolicyDecision(blocked=False)


def parse_denylist_entry(raw: str) -> Optional[DenylistEntry]:
    """Parse "schema.table" or "table" (backticks allowed) into an entry."""
    text = (raw or "").strip()
    if not text:
        return None
    if "." in text:
        schema_part, _, table_part = text.rpartition(".")
        schema = normalize_identifier(schema_part)
        table = normalize_identifier(table_part)
    else:
        schema = None
        table = normalize_identifier(text)
    if not table:
        logger.warning(f"Ignoring malformed denylist entry: {raw!r}")
        return None
    return DenylistEntry(schema=schema, table=table)


def parse_denylist(value: Optional[Union[str, Iterable[str]]]) -> tuple[DenylistEntry, ...]:
    """Parse a comma-separated string, or a list of strings / {schema, table}
    mappings (as found in the YAML governance file), into entries."""
    if not value:
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)
    entries = []
    for item in items:
        if isinstance(item, dict):
            table = normalize_identifier(item.get("table"))
            entry = (
                DenylistEntry(schema=normalize_identifier(item.get("schema")), table=table)
                if table
                else None
            )
        else:
            entry = parse_denylist_entry(str(item))
        if entry is not None and entry not in entries:
            entries.append(entry)
    return tuple(entries)


def is_query_blocked_by_denylist(
    sql: str,
    denylist: Sequence[DenylistEntry],
    default_schema: Optional[str],
    multi_db_mode: bool,
) -> PolicyDecision:
    """Check a statement against the table denylist.

    In multi-DB mode an unqualified table name is ambiguous (prior USE
    statements are not tracked), so any unqualified reference is blocked.
    In single-DB mode unqualified names resolve to default_schema.

    Raises SQLGovernanceError if the SQL cannot be parsed as one statement.
    """
    if not denylist:
        return NOT_BLOCKED

    referenced = get_referenced_tables(sql)
    if not referenced:
        return NOT_BLOCKED

    if multi_db_mode and any(ref.schema is None for ref in referenced):
        return PolicyDecision(
            blocked=True,
            reason=(
                "Unqualified table references are not allowed in multi-DB mode "
                f"when {DENYLIST_SETTING} is set. "
                "Use fully-qualified schema.table names."
            ),
        )

    resolved_default = normalize_identifier(default_schema)
    for ref in referenced:
        schema = ref.schema or resolved_default
        for deny in denylist:
            if deny.schema:
                if schema and deny.schema == schema and deny.table == ref.table:
                    return PolicyDecision(
                        blocked=True,
                        reason=(
                            f"Access to table '{deny.schema}.{deny.table}' "
                            f"is blocked by {DENYLIST_SETTING}"
                        ),
                    )
            elif deny.table == ref.table:
                name = f"{schema}.{ref.table}" if schema else ref.table
                return PolicyDecision(
                    blocked=True,
                    reason=f"Access to table '{name}' is blocked by {DENYLIST_SETTING}",
                )

    return NOT_BLOCKED
