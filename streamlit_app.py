from __future__ import annotations

import logging
import os
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import streamlit as st

import task_workflow
from task_workflow.data.db import connect, init_db
from task_workflow.app.pages import (
    business_status,
    duplicates,
    settings,
    tasks,
)
from task_workflow.services.task_steps import registry_sanity_check

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")

st.set_page_config(page_title="task-workflow", layout="wide")

# --- DB init (once per app start) ---
DATA_DIR = Path(os.getenv("TASK_WORKFLOW_DATA_DIR", "./data"))
DB_PATH = Path(os.getenv("TASK_WORKFLOW_DB_PATH", DATA_DIR / "app.db"))

con = connect(DB_PATH)
init_db(con)
registry_sanity_check()

# --- Sidebar navigation ---
st.sidebar.title("시설 업무 관리")

build_number = (
    os.getenv("APP_BUILD")
    or os.getenv("BUILD_NUMBER")
    or task_workflow.__version__
)
st.sidebar.markdown(
    f"""
    <style>
    [data-testid="stSidebar"] .build-info {{
        position: fixed;
        bottom: 0.5rem;
        left: 1rem;
        color: #6c757d;
        font-size: 0.75rem;
    }}
    </style>
    <div class="build-info">Build: {build_number}</div>
    """,
    unsafe_allow_html=True,
)

PAGES = {
    "업무 현황": lambda: tasks.render(con),
    "사업장 상태": lambda: business_status.render(con),
    "중복 업무 정리": lambda: duplicates.render(con),
    "설정": lambda: settings.render(con),
}

page_param = st.query_params.get("page")

nav_target = st.session_state.pop("nav_to_page", None)
if nav_target:
    st.session_state["sidebar_page_default"] = nav_target
elif page_param in PAGES:
    st.session_state["sidebar_page_default"] = page_param

page_labels = list(PAGES.keys())
default_index = 0
current_page = st.session_state.get("sidebar_page_default")
if current_page in page_labels:
    default_index = page_labels.index(current_page)

selected = st.sidebar.radio("페이지", page_labels, index=default_index, key="sidebar_page")
st.session_state.pop("sidebar_page_default", None)

# --- Render selected page ---
PAGES[selected]()
