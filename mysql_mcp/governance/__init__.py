"""Query authorization for the MySQL MCP Server.

Provides the checks every statement passes before it reaches MySQL:
- Single-statement parsing and statement-type classification (sqlglot)
- Table reference extraction and the table denylist
- The governance configuration snapshot (allow flags, default schema)
"""
