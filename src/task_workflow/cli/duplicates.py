from __future__ import annotations

import argparse
from contextlib import closing
import logging
import os
from pathlib import Path
from typing import Any

from task_workflow.data.db import connect, init_db
from task_workflow.data.repositories import TaskRepository, soft_delete_chunk
from task_workflow.domain.constants import BATCH_CHUNK_SIZE, BATCH_MAX_WORKERS
from task_workflow.services.duplicates import (
    delete_in_chunks,
    find_duplicate_groups,
    select_default_deletions,
    summarize_groups,
)
from task_workflow.services.status_labels import status_label, task_type_label

LOGGER = logging.getLogger(__name__)


def _parse_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer %r, using %s.", value, default)
        return default


def _db_path() -> Path:
    data_dir = Path(os.getenv("TASK_WORKFLOW_DATA_DIR", "./data"))
    return Path(os.getenv("TASK_WORKFLOW_DB_PATH", data_dir / "app.db"))


def _get_db_connection(db_path: Path) -> Any:
    con = connect(db_path)
    init_db(con)
    return con


def _print_groups(groups) -> None:
    for group in groups:
        label = status_label(group.task_type, group.status)
        print(f"--- {group.business_name} / {task_type_label(group.task_type)} / {label} ---")
        for member in group.members:
            marker = "KEEP  " if member.keep else "DELETE"
            print(f"  {marker} {member.id}  created {member.created_at}  {member.title or ''}")
    print("")


def run(
    mode: str,
    db_path: Path,
    business_name: str | None = None,
    dry_run: bool = False,
    chunk_size: int = BATCH_CHUNK_SIZE,
    max_workers: int = BATCH_MAX_WORKERS,
) -> dict[str, int]:
    with closing(_get_db_connection(db_path)) as con:
        tasks = TaskRepository(con).list_active_tasks(business_name)

    groups = find_duplicate_groups(tasks)
    counts = summarize_groups(groups)
    if mode == "find" or dry_run:
        _print_groups(groups)
        counts.update({"deleted": 0, "failed": 0})
        return counts

    task_ids = select_default_deletions(groups)
    if not task_ids:
        counts.update({"deleted": 0, "failed": 0})
        return counts

    report = delete_in_chunks(
        task_ids,
        lambda chunk: soft_delete_chunk(db_path, chunk),
        chunk_size=chunk_size,
        max_workers=max_workers,
    )
    if report.has_failures:
        LOGGER.warning(
            "%s of %s duplicate tasks could not be deleted.",
            report.failed_count,
            len(task_ids),
        )
        for error in report.errors:
            LOGGER.warning("  %s: %s", error["id"], error["error"])
    counts.update({"deleted": report.success_count, "failed": report.failed_count})
    return counts


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    parser = argparse.ArgumentParser(description="Find and soft-delete duplicate facility tasks.")
    parser.add_argument("mode", choices=["find", "delete"], help="List groups or delete duplicates.")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be deleted.")
    parser.add_argument("--business", help="Restrict to one business name.")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=_parse_int(os.getenv("TASK_WORKFLOW_BATCH_CHUNK_SIZE"), BATCH_CHUNK_SIZE),
        help="Task ids per deletion chunk.",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=_parse_int(os.getenv("TASK_WORKFLOW_MAX_WORKERS"), BATCH_MAX_WORKERS),
        help="Chunks processed in parallel.",
    )
    args = parser.parse_args(argv)

    if args.chunk_size <= 0:
        parser.error("--chunk-size must be positive")

    counts = run(
        args.mode,
        _db_path(),
        business_name=args.business,
        dry_run=args.dry_run,
        chunk_size=args.chunk_size,
        max_workers=args.max_workers,
    )
    LOGGER.info("Summary: %s", counts)


if __name__ == "__main__":
    main()
