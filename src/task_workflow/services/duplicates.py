from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Sequence

from task_workflow.domain.constants import BATCH_CHUNK_SIZE, BATCH_MAX_WORKERS
from task_workflow.services.batching import run_chunks

_LOGGER = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DuplicateMember:
    id: str
    created_at: Any
    keep: bool
    title: str | None = None
    assignee: str | None = None
    due_date: Any = None


@dataclass(frozen=True)
class DuplicateGroup:
    business_name: str
    task_type: str
    status: str
    members: tuple[DuplicateMember, ...]

    @property
    def key(self) -> str:
        return f"{self.business_name}|{self.task_type}|{self.status}"

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def survivor(self) -> DuplicateMember:
        return next(member for member in self.members if member.keep)


@dataclass
class DeletionReport:
    success_count: int = 0
    failed_count: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0

    def merge(self, other: "DeletionReport") -> "DeletionReport":
        return DeletionReport(
            success_count=self.success_count + other.success_count,
            failed_count=self.failed_count + other.failed_count,
            errors=[*self.errors, *other.errors],
        )


def _created_sort_key(value: Any) -> datetime:
    parsed: datetime | None = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
    if parsed is None:
        return _OLDEST
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def group_key(task: dict[str, Any]) -> tuple[str, str, str]:
    return (
        str(task.get("business_name") or ""),
        str(task.get("task_type") or ""),
        str(task.get("status") or ""),
    )


def _assignee_name(task: dict[str, Any]) -> str | None:
    if task.get("assignee"):
        return str(task["assignee"])
    assignees = task.get("assignees") or []
    if isinstance(assignees, list) and assignees:
        first = assignees[0]
        if isinstance(first, dict):
            return first.get("name")
        return str(first)
    return None


def find_duplicate_groups(tasks: Iterable[dict[str, Any]]) -> list[DuplicateGroup]:
    """Group tasks sharing business name, type and status.

    Groups keep the order in which their key first appears. Inside a group the
    most recently created task comes first and is the only one with
    ``keep=True``; equal ``created_at`` values keep their input order.
    """
    partitions: dict[tuple[str, str, str], list[dict[str, Any]]] = {}
    for task in tasks:
        partitions.setdefault(group_key(task), []).append(task)

    groups: list[DuplicateGroup] = []
    for (business_name, task_type, status), members in partitions.items():
        if len(members) < 2:
            continue
        ordered = sorted(
            members,
            key=lambda task: _created_sort_key(task.get("created_at")),
            reverse=True,
        )
        groups.append(
            DuplicateGroup(
                business_name=business_name,
                task_type=task_type,
                status=status,
                members=tuple(
                    DuplicateMember(
                        id=str(task.get("id")),
                        created_at=task.get("created_at"),
                        keep=index == 0,
                        title=task.get("title"),
                        assignee=_assignee_name(task),
                        due_date=task.get("due_date"),
                    )
                    for index, task in enumerate(ordered)
                ),
            )
        )
    return groups


def select_default_deletions(groups: Iterable[DuplicateGroup]) -> list[str]:
    """Every non-survivor id, oldest first within each group."""
    selected: list[str] = []
    for group in groups:
        selected.extend(member.id for member in reversed(group.members) if not member.keep)
    return selected


def guard_selection(groups: Iterable[DuplicateGroup], selected_ids: Iterable[str]) -> list[str]:
    """Drop survivors and ids outside the groups from an operator selection."""
    survivors: set[str] = set()
    candidates: set[str] = set()
    for group in groups:
        for member in group.members:
            (survivors if member.keep else candidates).add(member.id)
    guarded: list[str] = []
    for task_id in selected_ids:
        task_id = str(task_id)
        if task_id in survivors or task_id not in candidates or task_id in guarded:
            continue
        guarded.append(task_id)
    return guarded


def summarize_groups(groups: Sequence[DuplicateGroup]) -> dict[str, int]:
    return {
        "total_groups": len(groups),
        "total_duplicates": sum(group.count for group in groups),
        "to_delete": sum(group.count - 1 for group in groups),
    }


def soft_delete_tasks(
    task_ids: Iterable[str],
    delete_one: Callable[[str], bool],
) -> DeletionReport:
    """Soft-delete ids one by one and report per-id outcomes.

    A failed id never stops or rolls back the others. ``delete_one`` returns
    ``False`` or raises to signal a failure.
    """
    report = DeletionReport()
    for task_id in task_ids:
        try:
            deleted = delete_one(task_id)
        except Exception as exc:
            deleted = False
            message = str(exc) or exc.__class__.__name__
        else:
            message = "task not found or already deleted"
        if deleted:
            report.success_count += 1
            continue
        report.failed_count += 1
        report.errors.append({"id": str(task_id), "error": message})
        _LOGGER.warning("Soft delete failed for task %s: %s", task_id, message)
    return report


def delete_in_chunks(
    task_ids: Sequence[str],
    delete_chunk: Callable[[list[str]], DeletionReport],
    chunk_size: int = BATCH_CHUNK_SIZE,
    max_workers: int = BATCH_MAX_WORKERS,
) -> DeletionReport:
    """Soft-delete large id lists in independent chunks and merge the reports.

    ``delete_chunk`` owns its store handle for the lifetime of one chunk,
    typically opening a connection and calling :func:`soft_delete_tasks`.
    A chunk that raises counts every one of its ids as failed; the other
    chunks still run and their outcomes are kept.
    """

    def _guarded(chunk: list[str]) -> list[DeletionReport]:
        try:
            return [delete_chunk(chunk)]
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            _LOGGER.warning("Soft delete chunk of %s tasks failed: %s", len(chunk), message)
            return [
                DeletionReport(
                    failed_count=len(chunk),
                    errors=[{"id": str(task_id), "error": message} for task_id in chunk],
                )
            ]

    report = DeletionReport()
    chunk_reports = run_chunks(list(task_ids), _guarded, chunk_size, max_workers)
    for chunk_report in chunk_reports:
        report = report.merge(chunk_report)
    return report
