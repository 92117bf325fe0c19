from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import sqlite3

from task_workflow.domain.constants import DEFAULT_DELAY_CRITERIA

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS facility_tasks (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL DEFAULT '',
  business_name TEXT NOT NULL,
  task_type TEXT NOT NULL DEFAULT 'etc',
  status TEXT NOT NULL,
  priority TEXT NOT NULL DEFAULT 'medium',
  assignees_json TEXT,
  start_date TEXT,
  due_date TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT,
  completed_at TEXT,
  description TEXT,
  is_deleted INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_facility_tasks_business
  ON facility_tasks (business_name, is_deleted);
"""


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(db_path.as_posix())
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON;")
    return con


def database_path(con: sqlite3.Connection) -> Path | None:
    for row in con.execute("PRAGMA database_list;").fetchall():
        if row[1] == "main" and row[2]:
            return Path(row[2])
    return None


def _get_user_version(con: sqlite3.Connection) -> int:
    row = con.execute("PRAGMA user_version;").fetchone()
    return int(row[0]) if row else 0


def _set_user_version(con: sqlite3.Connection, version: int) -> None:
    con.execute(f"PRAGMA user_version = {version};")


def _column_exists(con: sqlite3.Connection, table: str, column: str) -> bool:
    cur = con.execute(f"PRAGMA table_info({table});")
    return any(row["name"] == column for row in cur.fetchall())


def _table_exists(con: sqlite3.Connection, table: str) -> bool:
    cur = con.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table' AND name = ?
        """,
        (table,),
    )
    return cur.fetchone() is not None


def _migrate_to_v2(con: sqlite3.Connection) -> None:
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS delay_criteria (
          task_type TEXT PRIMARY KEY,
          delayed_days INTEGER NOT NULL,
          risky_days INTEGER NOT NULL,
          updated_at TEXT NOT NULL
        );
        """
    )
    _set_user_version(con, 2)


def _migrate_to_v3(con: sqlite3.Connection) -> None:
    if not _column_exists(con, "facility_tasks", "is_active"):
        con.execute("ALTER TABLE facility_tasks ADD COLUMN is_active INTEGER NOT NULL DEFAULT 1;")
    if not _column_exists(con, "facility_tasks", "notes"):
        con.execute("ALTER TABLE facility_tasks ADD COLUMN notes TEXT;")
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS task_changelog (
          id TEXT PRIMARY KEY,
          task_id TEXT,
          event_type TEXT NOT NULL,
          event_at TEXT NOT NULL,
          changes_json TEXT NOT NULL
        );
        """
    )
    _set_user_version(con, 3)


def _seed_delay_criteria(con: sqlite3.Connection) -> None:
    if not _table_exists(con, "delay_criteria"):
        return
    row = con.execute("SELECT COUNT(1) AS n FROM delay_criteria").fetchone()
    if row and int(row["n"]) > 0:
        return
    updated_at = datetime.now(timezone.utc).isoformat()
    payload = [
        (task_type, entry["delayed"], entry["risky"], updated_at)
        for task_type, entry in DEFAULT_DELAY_CRITERIA.items()
    ]
    con.executemany(
        """
        INSERT INTO delay_criteria (task_type, delayed_days, risky_days, updated_at)
        VALUES (?, ?, ?, ?)
        """,
        payload,
    )


def init_db(con: sqlite3.Connection) -> None:
    con.executescript(SCHEMA_SQL)
    current_version = _get_user_version(con)
    if current_version < 2:
        _migrate_to_v2(con)
    if current_version < 3:
        _migrate_to_v3(con)
    _seed_delay_criteria(con)
    con.commit()


def table_count(con: sqlite3.Connection, table: str) -> int:
    cur = con.execute(f"SELECT COUNT(1) AS n FROM {table}")
    return int(cur.fetchone()["n"])
