"""Ad-hoc database migrations for the planner."""

from __future__ import annotations

from sqlalchemy import text


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def _add_missing_columns(conn, table: str, columns: dict[str, str]) -> None:
    for name, ddl_type in columns.items():
        if not _column_exists(conn, table, name):
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))


def _has_unique_index(conn, table: str, columns: tuple[str, ...]) -> bool:
    for row in conn.execute(text(f"PRAGMA index_list('{table}')")).fetchall():
        name, unique = row[1], row[2]
        if not unique:
            continue
        cols = tuple(r[2] for r in conn.execute(text(f"PRAGMA index_info('{name}')")).fetchall())
        if cols == columns:
            return True
    return False


def ensure_task_columns(conn) -> None:
    _add_missing_columns(
        conn,
        "task",
        {
            "week_id": "VARCHAR",
            "target_count": "INTEGER",
            "actual_minutes": "INTEGER",
            "category": "VARCHAR",
        },
    )


def ensure_schedule_columns(conn) -> None:
    _add_missing_columns(
        conn,
        "schedule",
        {
            "description": "VARCHAR",
            "completed_minutes": "INTEGER",
            "task_id": "VARCHAR",
            "routine_id": "VARCHAR",
            "google_event_id": "VARCHAR",
            "synced_from_google": "BOOLEAN NOT NULL DEFAULT 0",
            "original_date": "DATE",
            "original_start_time": "VARCHAR",
            "original_end_time": "VARCHAR",
            "modified_at": "DATETIME",
            "modified_reason": "VARCHAR",
        },
    )


def ensure_routine_columns(conn) -> None:
    _add_missing_columns(
        conn,
        "routine",
        {
            "category": "VARCHAR",
            "start_date": "DATE",
            "end_date": "DATE",
        },
    )


def ensure_routine_date_unique(conn) -> None:
    """One materialized schedule per routine and date.

    Older databases may already hold duplicates from racing clients; the
    earliest row wins and later copies are dropped before the index is built.
    """
    columns = ("user_id", "routine_id", "date")
    if _has_unique_index(conn, "schedule", columns):
        return
    conn.execute(
        text(
            """
            DELETE FROM schedule
            WHERE routine_id IS NOT NULL
              AND rowid NOT IN (
                SELECT MIN(rowid) FROM schedule
                WHERE routine_id IS NOT NULL
                GROUP BY user_id, routine_id, date
              )
            """
        )
    )
    conn.execute(
        text(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_schedule_routine_date "
            "ON schedule(user_id, routine_id, date)"
        )
    )


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_task_columns(conn)
        ensure_schedule_columns(conn)
        ensure_routine_columns(conn)
        ensure_routine_date_unique(conn)


__all__ = ["run_all"]
