from __future__ import annotations

import os
import sqlite3

import pandas as pd
import streamlit as st

from task_workflow.data.db import database_path
from task_workflow.data.repositories import TaskRepository, soft_delete_chunk
from task_workflow.domain.constants import BATCH_CHUNK_SIZE, BATCH_MAX_WORKERS
from task_workflow.services.duplicates import (
    DeletionReport,
    DuplicateGroup,
    delete_in_chunks,
    find_duplicate_groups,
    guard_selection,
    select_default_deletions,
    soft_delete_tasks,
    summarize_groups,
)
from task_workflow.services.status_labels import status_label, task_type_label


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name) or default)
    except ValueError:
        return default


def _group_frame(group: DuplicateGroup) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "id": member.id,
                "업무명": member.title or "",
                "담당자": member.assignee or "",
                "생성일": member.created_at,
                "마감일": member.due_date,
                "유지": "유지" if member.keep else "",
            }
            for member in group.members
        ]
    )


def _delete(con: sqlite3.Connection, task_ids: list[str]) -> DeletionReport:
    db_path = database_path(con)
    if db_path is None:
        return soft_delete_tasks(task_ids, TaskRepository(con).soft_delete_task)
    return delete_in_chunks(
        task_ids,
        lambda chunk: soft_delete_chunk(db_path, chunk),
        chunk_size=_env_int("TASK_WORKFLOW_BATCH_CHUNK_SIZE", BATCH_CHUNK_SIZE),
        max_workers=_env_int("TASK_WORKFLOW_MAX_WORKERS", BATCH_MAX_WORKERS),
    )


def render(con: sqlite3.Connection) -> None:
    st.header("중복 업무 정리")
    st.caption("사업장, 업무 유형, 상태가 같은 업무 중 가장 최근 업무만 남깁니다.")

    task_repo = TaskRepository(con)
    groups = find_duplicate_groups(task_repo.list_active_tasks())
    if not groups:
        st.success("중복 업무가 없습니다.")
        return

    summary = summarize_groups(groups)
    k1, k2, k3 = st.columns(3)
    k1.metric("중복 그룹", f"{summary['total_groups']}")
    k2.metric("중복 업무", f"{summary['total_duplicates']}")
    k3.metric("삭제 대상", f"{summary['to_delete']}")

    default_ids = select_default_deletions(groups)
    selected_ids: list[str] = []
    for group in groups:
        label = status_label(group.task_type, group.status)
        title = f"{group.business_name} · {task_type_label(group.task_type)} · {label} ({group.count}건)"
        with st.expander(title):
            st.dataframe(_group_frame(group), use_container_width=True, hide_index=True)
            st.caption(f"유지: {group.survivor.id}")
            candidates = [member.id for member in group.members if not member.keep]
            chosen = st.multiselect(
                "삭제할 업무",
                candidates,
                default=[task_id for task_id in candidates if task_id in default_ids],
                key=f"duplicates_{group.key}",
            )
            selected_ids.extend(chosen)

    to_delete = guard_selection(groups, selected_ids)
    st.divider()
    confirm = st.checkbox(f"선택한 업무 {len(to_delete)}건 삭제를 확인합니다")
    if st.button("선택 업무 삭제", disabled=not (confirm and to_delete)):
        report = _delete(con, to_delete)
        if report.success_count:
            st.success(f"{report.success_count}건 삭제했습니다.")
        if report.has_failures:
            st.warning(f"{report.failed_count}건은 삭제하지 못했습니다.")
            st.dataframe(pd.DataFrame(report.errors), use_container_width=True, hide_index=True)
        else:
            st.rerun()
