from __future__ import annotations

from pathlib import Path
import json
import sqlite3

import pandas as pd

TASK_SEED_COLUMNS = [
    "id",
    "title",
    "business_name",
    "task_type",
    "status",
    "priority",
    "assignees_json",
    "start_date",
    "due_date",
    "created_at",
    "updated_at",
    "completed_at",
    "description",
    "notes",
]


def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        return pd.DataFrame()
    df = pd.read_csv(path, sep=None, engine="python", dtype=str, keep_default_na=False)
    df.columns = [c.strip().lstrip("\ufeff") for c in df.columns]
    return df


def _assignees_to_json(value: str) -> str:
    names = [part.strip() for part in str(value or "").split("|") if part.strip()]
    return json.dumps([{"name": name} for name in names], ensure_ascii=False)


def prepare_tasks_frame(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    for required in ("id", "business_name", "status", "created_at"):
        if required not in df.columns:
            raise ValueError(f"Seed for facility_tasks requires column '{required}'")
    prepared = df.copy()
    if "assignees" in prepared.columns:
        prepared["assignees_json"] = prepared["assignees"].map(_assignees_to_json)
    if "task_type" not in prepared.columns:
        prepared["task_type"] = "etc"
    prepared = prepared.replace({"": None})
    return prepared[[c for c in TASK_SEED_COLUMNS if c in prepared.columns]]


def _upsert_df(con: sqlite3.Connection, table: str, df: pd.DataFrame, key: str = "id") -> int:
    if df.empty:
        return 0
    cols = list(df.columns)
    placeholders = ", ".join(["?"] * len(cols))
    col_list = ", ".join(cols)

    update_cols = [c for c in cols if c != key]
    set_clause = ", ".join([f"{c}=excluded.{c}" for c in update_cols])

    sql = f"""
    INSERT INTO {table} ({col_list})
    VALUES ({placeholders})
    ON CONFLICT({key}) DO UPDATE SET {set_clause};
    """

    rows = [
        tuple(None if pd.isna(v) else v for v in row)
        for row in df[cols].itertuples(index=False, name=None)
    ]
    con.executemany(sql, rows)
    con.commit()
    return len(rows)


def seed_tasks_from_csv(con: sqlite3.Connection, path: Path) -> int:
    """Upsert task rows from a CSV export; ``assignees`` holds ``|``-separated names."""
    return _upsert_df(con, "facility_tasks", prepare_tasks_frame(_read_csv(path)))
