"""Unified governance policy.

Loads config from env vars (primary) and an optional YAML file, and
exposes it to the executor as an immutable snapshot.
"""
import os
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

import yaml

from mysql_mcp.config import MySQLConfig
from mysql_mcp.governance.denylist import (
    DenylistEntry,
    PolicyDecision,
    is_query_blocked_by_denylist,
    parse_denylist,
)
from mysql_mcp.governance.sql_guard import DDL_TYPES, SQLStatementType

logger = logging.getLogger(__name__)

# Write operation families and the env var that enables each
WRITE_OPERATIONS: dict[str, str] = {
    "insert": "ALLOW_INSERT_OPERATION",
    "update": "ALLOW_UPDATE_OPERATION",
    "delete": "ALLOW_DELETE_OPERATION",
    "ddl": "ALLOW_DDL_OPERATION",
}


@dataclass(frozen=True)
class GovernanceConfig:
    """Configuration snapshot consumed by the executor for one query."""

    allow_insert: bool = False
    allow_update: bool = False
    allow_delete: bool = False
    allow_ddl: bool = False
    table_denylist: tuple[DenylistEntry, ...] = ()
    default_schema: Optional[str] = None
    multi_db_mode: bool = True

    @property
    def any_write_enabled(self) -> bool:
        return self.allow_insert or self.allow_update or self.allow_delete or self.allow_ddl


def operation_family(stmt_type: SQLStatementType) -> Optional[str]:
    """Map a statement type to its write family (insert/update/delete/ddl)."""
    if stmt_type in (
        SQLStatementType.INSERT,
        SQLStatementType.UPDATE,
        SQLStatementType.DELETE,
    ):
        return stmt_type.value
    if stmt_type in DDL_TYPES:
        return "ddl"
    return None


@dataclass
class GovernancePolicy:
    """Runtime enforcement object holding the current configuration.

    The config is replaced wholesale (never mutated), and every query works
    from the snapshot it captured when it started.
    """

    config: GovernanceConfig = field(default_factory=GovernanceConfig)

    def snapshot(self) -> GovernanceConfig:
        return self.config

    def update(self, **changes) -> GovernanceConfig:
        """Swap in a new config with the given fields changed."""
        self.config = replace(self.config, **changes)
        return self.config


def is_operation_allowed(config: GovernanceConfig, family: str) -> bool:
    return {
        "insert": config.allow_insert,
        "update": config.allow_update,
        "delete": config.allow_delete,
        "ddl": config.allow_ddl,
    }.get(family, False)


def check_denylist(config: GovernanceConfig, sql: str) -> PolicyDecision:
    """Evaluate the denylist for a statement under a config snapshot."""
    return is_query_blocked_by_denylist(
        sql,
        denylist=config.table_denylist,
        default_schema=config.default_schema,
        multi_db_mode=config.multi_db_mode,
    )


def _load_yaml_config(path: str) -> dict:
    """Load governance config from YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Governance config file not found: {path}")
        return {}

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_bool(env_var: str) -> Optional[bool]:
    """Parse a "true"/"false" env var. Returns None if unset or empty."""
    val = os.environ.get(env_var, "").strip().lower()
    if not val:
        return None
    return val == "true"


def load_governance_config(settings: MySQLConfig = None) -> GovernanceConfig:
    """Load governance config from env vars + optional YAML.

    Env vars take precedence over YAML for all settings. The YAML path and
    the default schema come from the server settings (a fresh MySQLConfig
    read from the environment when omitted).
    """
    if settings is None:
        settings = MySQLConfig()
    yaml_path = settings.governance_config_path
    yaml_data = {}
    if yaml_path:
        yaml_data = _load_yaml_config(yaml_path)

    operations = yaml_data.get("operations", {}) or {}
    flags = {}
    for family, env_var in WRITE_OPERATIONS.items():
        env_value = _parse_env_bool(env_var)
        flags[family] = (
            env_value if env_value is not None else bool(operations.get(family, False))
        )

    raw_denylist = os.environ.get("MYSQL_TABLE_DENYLIST", "").strip()
    denylist = parse_denylist(raw_denylist or yaml_data.get("denylist"))

    default_schema = settings.mysql_database.strip() or None

    return GovernanceConfig(
        allow_insert=flags["insert"],
        allow_update=flags["update"],
        allow_delete=flags["delete"],
        allow_ddl=flags["ddl"],
        table_denylist=denylist,
        default_schema=default_schema,
        multi_db_mode=settings.multi_db_mode,
    )


def build_governance_policy(
    config: GovernanceConfig = None, settings: MySQLConfig = None
) -> GovernancePolicy:
    """Build the runtime governance policy from config (env + YAML if omitted)."""
    if config is None:
        config = load_governance_config(settings)

    enabled = [
        family for family in WRITE_OPERATIONS if is_operation_allowed(config, family)
    ]
    logger.info(
        f"Governance: write_ops={enabled or 'none'}, "
        f"denylist={len(config.table_denylist)} table(s), "
        f"default_schema={config.default_schema}, "
        f"multi_db_mode={config.multi_db_mode}"
    )
    return GovernancePolicy(config=config)
