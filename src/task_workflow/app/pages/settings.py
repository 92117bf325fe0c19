from __future__ import annotations

import sqlite3

import pandas as pd
import streamlit as st

from task_workflow.data.repositories import DelaySettingsRepository
from task_workflow.domain.constants import DELAY_CRITERIA_TYPES, TASK_TYPE_ETC
from task_workflow.services.status_labels import task_type_label
from task_workflow.services.task_steps import registry_sanity_check


def render(con: sqlite3.Connection) -> None:
    st.header("설정")
    st.caption("업무 유형별 지연 판정 기준(시작일로부터 경과 일수)을 관리합니다.")

    repo = DelaySettingsRepository(con)
    criteria = repo.get_delay_criteria()

    # =========================
    # DELAY CRITERIA
    # =========================
    st.subheader("지연 판정 기준")
    df = pd.DataFrame(
        [
            {
                "유형": task_type_label(task_type),
                "지연 (일)": entry["delayed"],
                "위험 (일)": entry["risky"],
            }
            for task_type, entry in criteria.items()
        ]
    )
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption("지연 기준을 먼저 확인하므로 위험 기준이 지연 기준보다 크면 '위험'은 표시되지 않습니다.")

    st.divider()
    st.subheader("기준 수정")
    st.caption(f"대리점, 외주설치 업무는 '{task_type_label(TASK_TYPE_ETC)}' 기준을 따릅니다.")
    selected_type = st.selectbox("업무 유형", list(DELAY_CRITERIA_TYPES), format_func=task_type_label)
    current = criteria[selected_type]

    with st.form("edit_delay_criteria"):
        delayed = st.number_input("지연 (일)", min_value=0, step=1, value=int(current["delayed"]))
        risky = st.number_input("위험 (일)", min_value=0, step=1, value=int(current["risky"]))
        submitted = st.form_submit_button("저장")
        if submitted:
            try:
                repo.upsert_delay_criteria(selected_type, int(delayed), int(risky))
                st.success("기준을 저장했습니다.")
                st.rerun()
            except (ValueError, sqlite3.Error) as exc:
                st.error(str(exc))

    st.divider()
    confirm = st.checkbox("기본값으로 되돌리기를 확인합니다")
    if st.button("기본값 복원", disabled=not confirm):
        try:
            repo.reset_delay_criteria()
            st.success("기본 기준으로 복원했습니다.")
            st.rerun()
        except sqlite3.Error as exc:
            st.error(str(exc))

    st.divider()
    st.subheader("단계 정의 점검")
    problems = registry_sanity_check()
    if problems:
        st.warning("\n".join(problems))
    else:
        st.caption("모든 업무 유형의 단계 정의가 정상입니다.")
