"""Ad-hoc database migrations for FloorSync."""

from __future__ import annotations

from sqlalchemy import text


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_sync_log_columns(conn) -> None:
    """Older databases logged one row per attempt without dedup counters."""

    columns = {
        "last_seen_at": "TEXT",
        "retry_count": "INTEGER NOT NULL DEFAULT 1",
        "details": "TEXT NOT NULL DEFAULT '{}'",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, "sync_log", name):
            conn.execute(text(f"ALTER TABLE sync_log ADD COLUMN {name} {ddl_type}"))

    conn.execute(
        text(
            """
            UPDATE sync_log
            SET last_seen_at = COALESCE(last_seen_at, created_at)
            WHERE last_seen_at IS NULL
            """
        )
    )
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_sync_log_dedup
            ON sync_log (entity_type, entity_id, kind)
            """
        )
    )


def ensure_crud_entry_indexes(conn) -> None:
    if not _column_exists(conn, "crud_entry", "previous"):
        conn.execute(text("ALTER TABLE crud_entry ADD COLUMN previous TEXT"))
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_crud_entry_tx_order
            ON crud_entry (tx_id, id)
            """
        )
    )


def ensure_local_record_indexes(conn) -> None:
    if not _column_exists(conn, "local_record", "server_id"):
        conn.execute(text("ALTER TABLE local_record ADD COLUMN server_id INTEGER"))
    conn.execute(
        text(
            """
            CREATE INDEX IF NOT EXISTS ix_local_record_mobile
            ON local_record (entity_type, mobile_app_id)
            """
        )
    )


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_sync_log_columns(conn)
        ensure_crud_entry_indexes(conn)
        ensure_local_record_indexes(conn)


__all__ = ["run_all"]
