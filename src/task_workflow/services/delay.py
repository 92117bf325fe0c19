from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from task_workflow.domain.constants import (
    COMPLETED_STATUSES,
    DEFAULT_DELAY_CRITERIA,
    DELAY_CRITERIA_TYPES,
    HEALTH_AT_RISK,
    HEALTH_DELAYED,
    HEALTH_ON_TIME,
    TASK_TYPE_ETC,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayResult:
    health: str
    overdue_days: int = 0


ON_TIME = DelayResult(HEALTH_ON_TIME, 0)


def parse_start_date(value: Any) -> date | datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, (date, datetime)):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _elapsed_days(start: date | datetime, now: datetime) -> int:
    if isinstance(start, datetime):
        if start.tzinfo is not None and now.tzinfo is None:
            now = now.astimezone(start.tzinfo)
        elif start.tzinfo is None and now.tzinfo is not None:
            now = now.astimezone().replace(tzinfo=None)
        return (now - start) // timedelta(days=1)
    return (now.date() - start).days


def _coerce_days(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        days = int(value)
    except (TypeError, ValueError):
        return None
    return days if days >= 0 else None


def normalize_delay_criteria(raw: Any) -> dict[str, dict[str, int]]:
    """Merge a supplied threshold mapping over the defaults.

    Entries that are not ``{"delayed": int, "risky": int}`` with non-negative
    values are ignored and the default for that type is kept. Types without
    thresholds of their own (dealer, outsourcing) are dropped.
    """
    criteria = {key: dict(value) for key, value in DEFAULT_DELAY_CRITERIA.items()}
    if not isinstance(raw, dict):
        return criteria
    for task_type, entry in raw.items():
        if not isinstance(entry, dict):
            continue
        if task_type not in DELAY_CRITERIA_TYPES:
            _LOGGER.warning("Ignoring delay criteria for %s, it uses the etc thresholds", task_type)
            continue
        delayed = _coerce_days(entry.get("delayed"))
        risky = _coerce_days(entry.get("risky"))
        if delayed is None or risky is None:
            _LOGGER.warning("Ignoring invalid delay criteria for %s: %s", task_type, entry)
            continue
        criteria[str(task_type)] = {"delayed": delayed, "risky": risky}
    return criteria


def criteria_key(task_type: Any, criteria: dict[str, Any] | None = None) -> str:
    criteria = criteria if criteria is not None else DEFAULT_DELAY_CRITERIA
    key = str(task_type or "")
    if key in DELAY_CRITERIA_TYPES and key in criteria:
        return key
    return TASK_TYPE_ETC


def _thresholds(task_type: Any, criteria: dict[str, Any] | None) -> tuple[int, int]:
    source = criteria if isinstance(criteria, dict) and criteria else DEFAULT_DELAY_CRITERIA
    entry = source.get(criteria_key(task_type, source))
    if not isinstance(entry, dict):
        entry = DEFAULT_DELAY_CRITERIA[TASK_TYPE_ETC]
    delayed = _coerce_days(entry.get("delayed"))
    risky = _coerce_days(entry.get("risky"))
    if delayed is None or risky is None:
        fallback = DEFAULT_DELAY_CRITERIA[TASK_TYPE_ETC]
        return fallback["delayed"], fallback["risky"]
    return delayed, risky


def classify_delay(
    start_date: Any,
    task_type: Any,
    status: Any,
    criteria: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> DelayResult:
    """Schedule health of a task from the days elapsed since its start date.

    Completed statuses, missing or unparseable start dates and start dates in
    the future are always on time. The delayed threshold is checked before the
    risky one.
    """
    if is_completed_status(status):
        return ON_TIME
    start = parse_start_date(start_date)
    if start is None:
        return ON_TIME
    elapsed = _elapsed_days(start, now or datetime.now())
    if elapsed < 0:
        return ON_TIME

    delayed, risky = _thresholds(task_type, criteria)
    if elapsed >= delayed:
        return DelayResult(HEALTH_DELAYED, elapsed - delayed)
    if elapsed >= risky:
        return DelayResult(HEALTH_AT_RISK, 0)
    return ON_TIME


def is_completed_status(status: Any) -> bool:
    return isinstance(status, str) and status in COMPLETED_STATUSES
