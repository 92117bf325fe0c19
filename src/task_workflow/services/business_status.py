from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Sequence

from task_workflow.domain.constants import (
    BATCH_CHUNK_SIZE,
    BATCH_MAX_WORKERS,
    PRIORITY_ORDER,
)
from task_workflow.services.batching import run_chunks
from task_workflow.services.progress import progress_percent
from task_workflow.services.status_labels import FALLBACK_COLOR, status_color, status_label

_LOGGER = logging.getLogger(__name__)

STATUS_TEXT_COMPLETED = "업무 완료"
STATUS_TEXT_UNREGISTERED = "업무 미등록"
COMPLETED_COLOR = "green"

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class BusinessStatus:
    status_text: str
    color: str
    last_updated: str
    task_count: int
    has_active_tasks: bool
    progress: int = 0
    task_type: str | None = None
    status: str | None = None


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_text(value: Any) -> str:
    if value in (None, ""):
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _recency(task: dict[str, Any]) -> float:
    parsed = _parse_timestamp(task.get("updated_at")) or _parse_timestamp(task.get("created_at"))
    return parsed.timestamp() if parsed else float("-inf")


def _top_task(active_tasks: list[dict[str, Any]]) -> dict[str, Any]:
    return sorted(
        active_tasks,
        key=lambda task: (PRIORITY_ORDER.get(str(task.get("priority") or ""), 0), _recency(task)),
        reverse=True,
    )[0]


def summarize_business(tasks: Sequence[dict[str, Any]]) -> BusinessStatus:
    """Summary of one business: its top-priority active task, or a completed/empty marker."""
    active = [task for task in tasks if not task.get("completed_at")]
    if not active:
        completed = [task for task in tasks if task.get("completed_at")]
        if not completed:
            return BusinessStatus(
                status_text=STATUS_TEXT_UNREGISTERED,
                color=FALLBACK_COLOR,
                last_updated="",
                task_count=0,
                has_active_tasks=False,
            )
        latest = max(
            completed,
            key=lambda task: _parse_timestamp(task.get("completed_at")) or _OLDEST,
        )
        return BusinessStatus(
            status_text=STATUS_TEXT_COMPLETED,
            color=COMPLETED_COLOR,
            last_updated=_timestamp_text(latest.get("completed_at")),
            task_count=len(completed),
            has_active_tasks=False,
            progress=100,
        )

    top = _top_task(active)
    task_type = top.get("task_type")
    status = top.get("status")
    label = status_label(task_type, status)
    status_text = label if len(active) == 1 else f"{label} 외 {len(active) - 1}건"
    return BusinessStatus(
        status_text=status_text,
        color=status_color(task_type, status),
        last_updated=_timestamp_text(top.get("updated_at") or top.get("created_at")),
        task_count=len(active),
        has_active_tasks=True,
        progress=progress_percent(task_type, status),
        task_type=task_type,
        status=status,
    )


def group_by_business(
    business_names: Iterable[str],
    tasks: Iterable[dict[str, Any]],
) -> dict[str, list[dict[str, Any]]]:
    grouped: dict[str, list[dict[str, Any]]] = {name: [] for name in business_names}
    for task in tasks:
        name = task.get("business_name")
        if name in grouped:
            grouped[name].append(task)
    return grouped


def build_business_statuses(
    business_names: Sequence[str],
    fetch_chunk: Callable[[list[str]], list[dict[str, Any]]],
    chunk_size: int = BATCH_CHUNK_SIZE,
    max_workers: int = BATCH_MAX_WORKERS,
) -> dict[str, BusinessStatus]:
    """One status summary per requested business name.

    Tasks are fetched through ``fetch_chunk`` in independent chunks of
    ``chunk_size`` names and merged once every chunk has finished.
    """
    names = list(dict.fromkeys(name for name in business_names if name))
    tasks = run_chunks(names, fetch_chunk, chunk_size, max_workers)
    _LOGGER.info("Fetched %s tasks for %s businesses", len(tasks), len(names))
    grouped = group_by_business(names, tasks)
    return {name: summarize_business(grouped[name]) for name in names}


def format_update_date(value: Any, now: datetime | None = None) -> str:
    if value in (None, ""):
        return ""
    parsed = _parse_timestamp(value)
    if parsed is None:
        return "날짜 오류"
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    diff = current - parsed
    if diff < timedelta(0):
        return "미래 날짜"
    if diff < timedelta(minutes=1):
        return "방금 전"
    if diff < timedelta(hours=1):
        return f"{int(diff.total_seconds() // 60)}분 전"
    hours = int(diff.total_seconds() // 3600)
    days = hours // 24
    if hours < 24:
        return f"{hours}시간 전"
    if days == 1:
        return "1일 전"
    if days < 7:
        return f"{days}일 전"
    if days < 14:
        return "1주일 전"
    if days < 30:
        return f"{-(-days // 7)}주일 전"
    return f"{parsed.month}. {parsed.day}."


def task_summary(status: BusinessStatus, now: datetime | None = None) -> str:
    if not status.has_active_tasks:
        if status.task_count == 0:
            return "등록 필요"
        return f"완료 ({format_update_date(status.last_updated, now)})"
    return f"{format_update_date(status.last_updated, now)} 업데이트"
