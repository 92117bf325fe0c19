from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

import altair as alt
import pandas as pd
import streamlit as st

from task_workflow.data.repositories import DelaySettingsRepository, TaskRepository
from task_workflow.domain.constants import (
    HEALTH_AT_RISK,
    HEALTH_DELAYED,
    HEALTH_ON_TIME,
    HEALTH_VALUES,
    TASK_TYPES,
)
from task_workflow.services.delay import classify_delay
from task_workflow.services.progress import progress_percent
from task_workflow.services.status_labels import (
    priority_label,
    status_color,
    status_label,
    task_type_label,
)

HEALTH_LABELS = {
    HEALTH_ON_TIME: "정상",
    HEALTH_AT_RISK: "위험",
    HEALTH_DELAYED: "지연",
}
HEALTH_COLORS = ["#4C78A8", "#F58518", "#E45756"]

ALL_OPTION = "(전체)"


def _assignee_names(task: dict[str, Any]) -> str:
    names = []
    for assignee in task.get("assignees") or []:
        if isinstance(assignee, dict):
            names.append(str(assignee.get("name") or ""))
        else:
            names.append(str(assignee))
    return ", ".join(name for name in names if name)


def build_task_rows(
    tasks: list[dict[str, Any]],
    criteria: dict[str, Any],
    now: datetime | None = None,
) -> pd.DataFrame:
    rows = []
    for task in tasks:
        task_type = task.get("task_type")
        status = task.get("status")
        health = classify_delay(task.get("start_date"), task_type, status, criteria, now=now)
        rows.append(
            {
                "id": task.get("id"),
                "business_name": task.get("business_name"),
                "title": task.get("title"),
                "task_type": task_type,
                "type_label": task_type_label(task_type),
                "status_label": status_label(task_type, status),
                "color": status_color(task_type, status),
                "progress": progress_percent(task_type, status),
                "health": health.health,
                "overdue_days": health.overdue_days,
                "priority": priority_label(task.get("priority")),
                "assignees": _assignee_names(task),
                "start_date": task.get("start_date"),
            }
        )
    return pd.DataFrame(rows)


def render(con: sqlite3.Connection) -> None:
    st.header("업무 현황")
    st.caption("업무 유형별 진행률과 일정 상태")

    task_repo = TaskRepository(con)
    criteria = DelaySettingsRepository(con).get_delay_criteria()

    f1, f2 = st.columns([1.6, 1.2])
    business_options = [ALL_OPTION] + task_repo.list_business_names()
    selected_business = f1.selectbox("사업장", business_options, index=0)
    type_options = [ALL_OPTION] + list(TASK_TYPES)
    selected_type = f2.selectbox(
        "업무 유형",
        type_options,
        index=0,
        format_func=lambda value: value if value == ALL_OPTION else task_type_label(value),
    )

    business_filter = None if selected_business == ALL_OPTION else selected_business
    tasks = task_repo.list_active_tasks(business_filter)
    if selected_type != ALL_OPTION:
        tasks = [task for task in tasks if task.get("task_type") == selected_type]

    if not tasks:
        st.info("조건에 맞는 업무가 없습니다.")
        return

    df = build_task_rows(tasks, criteria)

    k1, k2, k3, k4 = st.columns(4)
    k1.metric("업무 수", f"{len(df)}")
    k2.metric("지연", f"{int((df['health'] == HEALTH_DELAYED).sum())}")
    k3.metric("위험", f"{int((df['health'] == HEALTH_AT_RISK).sum())}")
    k4.metric("평균 진행률", f"{df['progress'].mean():.0f}%")

    st.subheader("일정 상태 (업무 유형별)")
    chart_df = (
        df.groupby(["type_label", "health"]).size().reset_index(name="count")
    )
    chart_df["health_label"] = chart_df["health"].map(HEALTH_LABELS)
    chart = (
        alt.Chart(chart_df)
        .mark_bar()
        .encode(
            x=alt.X("type_label:N", title="업무 유형"),
            y=alt.Y("count:Q", title="업무 수", stack="zero"),
            color=alt.Color(
                "health_label:N",
                scale=alt.Scale(
                    domain=[HEALTH_LABELS[value] for value in HEALTH_VALUES],
                    range=HEALTH_COLORS,
                ),
                legend=alt.Legend(title=None),
            ),
            tooltip=[
                alt.Tooltip("type_label:N", title="업무 유형"),
                alt.Tooltip("health_label:N", title="상태"),
                alt.Tooltip("count:Q", title="업무 수"),
            ],
        )
        .properties(height=320)
    )
    st.altair_chart(chart, use_container_width=True)

    st.subheader("업무 목록")
    table = df.assign(health=df["health"].map(HEALTH_LABELS)).rename(
        columns={
            "business_name": "사업장",
            "title": "업무명",
            "type_label": "유형",
            "status_label": "상태",
            "progress": "진행률",
            "health": "일정",
            "overdue_days": "초과 일수",
            "priority": "우선순위",
            "assignees": "담당자",
            "start_date": "시작일",
        }
    )
    st.dataframe(
        table[["사업장", "업무명", "유형", "상태", "진행률", "일정", "초과 일수", "우선순위", "담당자", "시작일"]],
        use_container_width=True,
        hide_index=True,
    )
