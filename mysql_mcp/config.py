"""Configuration for the MySQL MCP Server.

Connection, pool and transport settings. Statement and table governance
lives in mysql_mcp/governance/policy.py.
"""
import os
from dataclasses import dataclass, field


@dataclass
class MySQLConfig:
    """Server configuration loaded from environment variables."""

    # MySQL connection
    mysql_host: str = field(
        default_factory=lambda: os.environ.get("MYSQL_HOST", "127.0.0.1")
    )
    mysql_port: int = field(
        default_factory=lambda: int(os.environ.get("MYSQL_PORT", "3306"))
    )
    mysql_user: str = field(
        default_factory=lambda: os.environ.get("MYSQL_USER", "root")
    )
    mysql_password: str = field(
        default_factory=lambda: os.environ.get("MYSQL_PASS", "")
    )
    # Empty means the connection is not pinned to a schema (multi-DB mode)
    mysql_database: str = field(
        default_factory=lambda: os.environ.get("MYSQL_DB", "")
    )

    # Safety
    max_rows: int = field(
        default_factory=lambda: int(os.environ.get("MYSQL_MAX_ROWS", "1000"))
    )
    connect_timeout_seconds: int = field(
        default_factory=lambda: int(os.environ.get("MYSQL_CONNECT_TIMEOUT", "10"))
    )

    # Governance (statement + table access control, see governance/policy.py)
    governance_config_path: str = field(
        default_factory=lambda: os.environ.get("MYSQL_GOVERNANCE_CONFIG", "")
    )

    # Pool settings
    pool_min_size: int = field(
        default_factory=lambda: int(os.environ.get("MYSQL_POOL_MIN", "1"))
    )
    pool_max_size: int = field(
        default_factory=lambda: int(os.environ.get("MYSQL_POOL_MAX", "10"))
    )
    # Recycle connections older than this many seconds (-1 disables)
    pool_recycle: int = field(
        default_factory=lambda: int(os.environ.get("MYSQL_POOL_RECYCLE", "300"))
    )

    # Connection acquisition retry
    connect_retry_attempts: int = field(
        default_factory=lambda: int(
            os.environ.get("MYSQL_CONNECT_RETRY_ATTEMPTS", "3")
        )
    )
    connect_retry_base_delay: float = field(
        default_factory=lambda: float(
            os.environ.get("MYSQL_CONNECT_RETRY_DELAY", "0.5")
        )
    )
    connect_max_delay: float = field(
        default_factory=lambda: float(
            os.environ.get("MYSQL_CONNECT_MAX_DELAY", "5.0")
        )
    )

    # Transport
    app_port: int = field(
        default_factory=lambda: int(os.environ.get("APP_PORT", "8000"))
    )
    transport: str = field(
        default_factory=lambda: os.environ.get("MCP_TRANSPORT", "stdio")
    )

    @property
    def multi_db_mode(self) -> bool:
        return not self.mysql_database.strip()


config = MySQLConfig()
