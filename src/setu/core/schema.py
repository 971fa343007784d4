"""
Durable tables backing the action lifecycle.

Tables:
    - **action_history:** One row per issued action.  ``metadata`` is the
      JSON-serialized ActionRecord; ``post_notify_sent`` mirrors the record
      flag so recovery and retention can filter without parsing JSON.
    - **asset_ownership:** Groups/baselines created through setu, keyed by
      upstream id.  Consulted to tell a ghost group from an unknown one.
    - **action_leases:** Per-record watcher claims for multi-instance
      deployments (TTL based, see :mod:`setu.core.scheduling.lease_manager`).

Examples:
    >>> from setu.core.schema import create_core_tables
    >>> create_core_tables(conn)

Tags:
    schema, ddl, tables, setu-core, database
"""

from __future__ import annotations

from setu.core.dialect import Dialect, SQLiteDialect

# =============================================================================
# TABLE NAMES
# =============================================================================

CORE_TABLES = {
    "action_history": "action_history",
    "asset_ownership": "asset_ownership",
    "action_leases": "action_leases",
}


def core_ddl(dialect: Dialect | None = None) -> dict[str, str]:
    """Return the CREATE statements for *dialect* keyed by logical name."""
    d = dialect or SQLiteDialect()
    return {
        "action_history": f"""
            CREATE TABLE IF NOT EXISTS action_history (
                action_id {d.text_primary_key()},
                metadata TEXT,
                post_notify_sent INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL        -- ISO-8601 UTC
            )
        """,
        "action_history_idx_pending": """
            CREATE INDEX IF NOT EXISTS idx_action_history_pending
            ON action_history(post_notify_sent, created_at)
        """,
        "asset_ownership": f"""
            CREATE TABLE IF NOT EXISTS asset_ownership (
                asset_id {d.auto_increment()},
                bigfix_id TEXT NOT NULL,
                asset_name TEXT NOT NULL,
                asset_type TEXT NOT NULL,       -- 'Group' | 'Baseline'
                created_by_role TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """,
        "asset_ownership_idx_name": """
            CREATE INDEX IF NOT EXISTS idx_asset_ownership_name
            ON asset_ownership(asset_name, asset_type)
        """,
        "action_leases": f"""
            CREATE TABLE IF NOT EXISTS action_leases (
                action_id {d.text_primary_key()},
                locked_by TEXT NOT NULL,
                locked_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        """,
    }


def create_core_tables(conn, dialect: Dialect | None = None) -> None:
    """
    Create all setu tables.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in core_ddl(dialect).items():
        conn.execute(ddl)
    conn.commit()


__all__ = ["CORE_TABLES", "core_ddl", "create_core_tables"]
