from __future__ import annotations

import os
import sqlite3

import pandas as pd
import streamlit as st

from task_workflow.data.db import database_path
from task_workflow.data.repositories import TaskRepository, fetch_tasks_chunk
from task_workflow.domain.constants import BATCH_CHUNK_SIZE, BATCH_MAX_WORKERS
from task_workflow.services.business_status import build_business_statuses, task_summary
from task_workflow.services.status_labels import task_type_label


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name) or default)
    except ValueError:
        return default


def render(con: sqlite3.Connection) -> None:
    st.header("사업장 업무 상태")
    st.caption("사업장별 대표 업무(우선순위, 최근 수정 순)와 진행률")

    task_repo = TaskRepository(con)
    business_names = task_repo.list_business_names()
    if not business_names:
        st.info("등록된 사업장이 없습니다.")
        return

    query = st.text_input("사업장 검색")
    if query.strip():
        business_names = [name for name in business_names if query.strip() in name]

    db_path = database_path(con)
    if db_path is None:
        statuses = build_business_statuses(business_names, task_repo.list_tasks_for_businesses, max_workers=1)
    else:
        statuses = build_business_statuses(
            business_names,
            lambda chunk: fetch_tasks_chunk(db_path, chunk),
            chunk_size=_env_int("TASK_WORKFLOW_BATCH_CHUNK_SIZE", BATCH_CHUNK_SIZE),
            max_workers=_env_int("TASK_WORKFLOW_MAX_WORKERS", BATCH_MAX_WORKERS),
        )

    rows = [
        {
            "사업장": name,
            "상태": status.status_text,
            "유형": task_type_label(status.task_type) if status.task_type else "",
            "진행률": status.progress,
            "업무 수": status.task_count,
            "최근 업데이트": task_summary(status),
            "색상": status.color,
        }
        for name, status in statuses.items()
    ]
    df = pd.DataFrame(rows)

    k1, k2, k3 = st.columns(3)
    k1.metric("사업장", f"{len(statuses)}")
    k2.metric("진행 중", f"{sum(1 for status in statuses.values() if status.has_active_tasks)}")
    k3.metric("업무 미등록", f"{sum(1 for status in statuses.values() if status.task_count == 0)}")

    st.dataframe(
        df,
        use_container_width=True,
        hide_index=True,
    )
