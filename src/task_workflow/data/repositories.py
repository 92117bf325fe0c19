from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

from task_workflow.data.db import connect
from task_workflow.domain.constants import (
    DEFAULT_DELAY_CRITERIA,
    DELAY_CRITERIA_TYPES,
    PRIORITY_ORDER,
    TASK_TYPES,
    TOMBSTONE_ACTIVE,
    TOMBSTONE_DELETED,
)
from task_workflow.services.delay import normalize_delay_criteria
from task_workflow.services.duplicates import DeletionReport, soft_delete_tasks

_LOGGER = logging.getLogger(__name__)

TASK_COLUMNS = """
    id,
    title,
    business_name,
    task_type,
    status,
    priority,
    assignees_json,
    start_date,
    due_date,
    created_at,
    updated_at,
    completed_at,
    description,
    notes,
    is_active,
    is_deleted
"""


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


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _task_row(row: sqlite3.Row) -> dict[str, Any]:
    task = dict(row)
    raw_assignees = task.pop("assignees_json", None)
    try:
        assignees = json.loads(raw_assignees) if raw_assignees else []
    except json.JSONDecodeError:
        assignees = []
    task["assignees"] = assignees if isinstance(assignees, list) else []
    task["is_active"] = bool(task.get("is_active"))
    task["is_deleted"] = bool(task.get("is_deleted"))
    return task


class TaskRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def create_task(self, payload: dict[str, Any]) -> str:
        business_name = (payload.get("business_name") or "").strip()
        if not business_name:
            raise ValueError("사업장명은 필수입니다.")
        task_type = (payload.get("task_type") or "").strip()
        if task_type not in TASK_TYPES:
            raise ValueError(f"지원하지 않는 업무 유형입니다: {task_type or '(없음)'}")
        status = (payload.get("status") or "").strip()
        if not status:
            raise ValueError("업무 상태는 필수입니다.")
        priority = (payload.get("priority") or "medium").strip()
        if priority not in PRIORITY_ORDER:
            raise ValueError(f"지원하지 않는 우선순위입니다: {priority}")

        task_id = payload.get("id") or str(uuid4())
        created_at = payload.get("created_at") or _now_iso()
        assignees = payload.get("assignees") or []
        self.con.execute(
            """
            INSERT INTO facility_tasks (
                id,
                title,
                business_name,
                task_type,
                status,
                priority,
                assignees_json,
                start_date,
                due_date,
                created_at,
                updated_at,
                completed_at,
                description,
                notes
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task_id,
                (payload.get("title") or "").strip(),
                business_name,
                task_type,
                status,
                priority,
                json.dumps(assignees, ensure_ascii=False),
                payload.get("start_date"),
                payload.get("due_date"),
                created_at,
                payload.get("updated_at") or created_at,
                payload.get("completed_at"),
                payload.get("description"),
                payload.get("notes"),
            ),
        )
        self._log_change(task_id, "CREATE", {"business_name": business_name, "status": status})
        self.con.commit()
        return task_id

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        cur = self.con.execute(
            f"SELECT {TASK_COLUMNS} FROM facility_tasks WHERE id = ?",
            (task_id,),
        )
        row = cur.fetchone()
        return _task_row(row) if row else None

    def list_active_tasks(self, business_name: str | None = None) -> list[dict[str, Any]]:
        query = f"""
            SELECT {TASK_COLUMNS}
            FROM facility_tasks
            WHERE is_active = 1 AND is_deleted = 0
        """
        params: list[Any] = []
        if business_name:
            query += " AND business_name = ?"
            params.append(business_name)
        query += " ORDER BY business_name, task_type, status, created_at"
        cur = self.con.execute(query, params)
        return [_task_row(row) for row in cur.fetchall()]

    def list_tasks_for_businesses(self, business_names: list[str]) -> list[dict[str, Any]]:
        if not business_names:
            return []
        placeholders = ", ".join(["?"] * len(business_names))
        cur = self.con.execute(
            f"""
            SELECT {TASK_COLUMNS}
            FROM facility_tasks
            WHERE business_name IN ({placeholders})
              AND is_active = 1
              AND is_deleted = 0
            ORDER BY updated_at DESC
            """,
            business_names,
        )
        return [_task_row(row) for row in cur.fetchall()]

    def list_business_names(self) -> list[str]:
        cur = self.con.execute(
            """
            SELECT DISTINCT business_name
            FROM facility_tasks
            WHERE is_deleted = 0
            ORDER BY business_name
            """
        )
        return [row["business_name"] for row in cur.fetchall()]

    def tombstone_state(self, task_id: str) -> str | None:
        cur = self.con.execute("SELECT is_deleted FROM facility_tasks WHERE id = ?", (task_id,))
        row = cur.fetchone()
        if row is None:
            return None
        return TOMBSTONE_DELETED if row["is_deleted"] else TOMBSTONE_ACTIVE

    def soft_delete_task(self, task_id: str) -> bool:
        """Tombstone one active task. Already deleted or unknown ids return False."""
        cur = self.con.execute(
            """
            UPDATE facility_tasks
            SET is_deleted = 1,
                updated_at = ?
            WHERE id = ? AND is_deleted = 0
            """,
            (_now_iso(), task_id),
        )
        if cur.rowcount != 1:
            return False
        self._log_change(task_id, "SOFT_DELETE", {"is_deleted": {"from": 0, "to": 1}})
        self.con.commit()
        return True

    def list_changelog(self, limit: int = 50) -> list[dict[str, Any]]:
        if not _table_exists(self.con, "task_changelog"):
            return []
        cur = self.con.execute(
            """
            SELECT id, task_id, event_type, event_at, changes_json
            FROM task_changelog
            ORDER BY event_at DESC
            LIMIT ?
            """,
            (limit,),
        )
        return [dict(row) for row in cur.fetchall()]

    def _log_change(self, task_id: str, event_type: str, changes: dict[str, Any]) -> None:
        if not _table_exists(self.con, "task_changelog"):
            return
        self.con.execute(
            """
            INSERT INTO task_changelog (id, task_id, event_type, event_at, changes_json)
            VALUES (?, ?, ?, ?, ?)
            """,
            (str(uuid4()), task_id, event_type, _now_iso(), json.dumps(changes, ensure_ascii=False)),
        )


class DelaySettingsRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def get_delay_criteria(self) -> dict[str, dict[str, int]]:
        try:
            if not _table_exists(self.con, "delay_criteria"):
                _LOGGER.warning("delay_criteria table missing, using default thresholds")
                return normalize_delay_criteria(None)
            cur = self.con.execute(
                """
                SELECT task_type, delayed_days, risky_days
                FROM delay_criteria
                ORDER BY task_type ASC
                """
            )
            rows = cur.fetchall()
        except sqlite3.Error as exc:
            _LOGGER.warning("Delay criteria lookup failed, using defaults: %s", exc)
            return normalize_delay_criteria(None)
        if not rows:
            return normalize_delay_criteria(None)
        return normalize_delay_criteria(
            {
                row["task_type"]: {"delayed": row["delayed_days"], "risky": row["risky_days"]}
                for row in rows
            }
        )

    def upsert_delay_criteria(self, task_type: str, delayed: int, risky: int) -> None:
        clean_type = (task_type or "").strip()
        if clean_type not in DELAY_CRITERIA_TYPES:
            raise ValueError(f"지연 기준을 따로 둘 수 없는 업무 유형입니다: {clean_type or '(없음)'}")
        for value in (delayed, risky):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError("기준 일수는 0 이상의 정수여야 합니다.")
        self.con.execute(
            """
            INSERT INTO delay_criteria (task_type, delayed_days, risky_days, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(task_type) DO UPDATE SET
                delayed_days = excluded.delayed_days,
                risky_days = excluded.risky_days,
                updated_at = excluded.updated_at
            """,
            (clean_type, delayed, risky, _now_iso()),
        )
        self.con.commit()

    def reset_delay_criteria(self) -> None:
        self.con.execute("DELETE FROM delay_criteria")
        for task_type, entry in DEFAULT_DELAY_CRITERIA.items():
            self.upsert_delay_criteria(task_type, entry["delayed"], entry["risky"])


def fetch_tasks_chunk(db_path: Path, business_names: list[str]) -> list[dict[str, Any]]:
    """Active tasks for one chunk of business names on a connection of its own."""
    with closing(connect(db_path)) as con:
        return TaskRepository(con).list_tasks_for_businesses(business_names)


def soft_delete_chunk(db_path: Path, task_ids: list[str]) -> DeletionReport:
    with closing(connect(db_path)) as con:
        return soft_delete_tasks(task_ids, TaskRepository(con).soft_delete_task)
