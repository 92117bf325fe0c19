import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from task_workflow.services import duplicates as dup


def _task(task_id: str, created_at: str, business: str = "Acme", status: str = "self_contract") -> dict:
    return {
        "id": task_id,
        "business_name": business,
        "task_type": "self",
        "status": status,
        "created_at": created_at,
        "assignees": [{"name": "Kim"}],
    }


class FindDuplicateGroupsTests(unittest.TestCase):
    def test_three_way_group_keeps_newest(self) -> None:
        tasks = [
            _task("t2", "2024-02-01T00:00:00Z"),
            _task("t1", "2024-01-01T00:00:00Z"),
            _task("t3", "2024-03-01T00:00:00Z"),
        ]
        groups = dup.find_duplicate_groups(tasks)
        self.assertEqual(len(groups), 1)
        group = groups[0]
        self.assertEqual(group.count, 3)
        self.assertEqual(group.key, "Acme|self|self_contract")
        self.assertEqual([m.id for m in group.members], ["t3", "t2", "t1"])
        self.assertEqual(group.survivor.id, "t3")
        self.assertEqual(sum(1 for m in group.members if m.keep), 1)
        self.assertEqual(dup.select_default_deletions(groups), ["t1", "t2"])

    def test_singletons_are_not_groups(self) -> None:
        tasks = [
            _task("a", "2024-01-01"),
            _task("b", "2024-01-02", status="self_quotation"),
            _task("c", "2024-01-03", business="Other"),
        ]
        self.assertEqual(dup.find_duplicate_groups(tasks), [])

    def test_mixed_timestamp_formats(self) -> None:
        tasks = [
            _task("old", "2024-01-01 09:00:00"),
            _task("new", "2024-01-01T10:00:00+00:00"),
            _task("broken", "not a date"),
        ]
        group = dup.find_duplicate_groups(tasks)[0]
        self.assertEqual(group.survivor.id, "new")
        self.assertEqual(group.members[-1].id, "broken")

    def test_equal_created_at_keeps_input_order(self) -> None:
        tasks = [_task("first", "2024-01-01"), _task("second", "2024-01-01")]
        group = dup.find_duplicate_groups(tasks)[0]
        self.assertEqual(group.survivor.id, "first")

    def test_groups_in_first_seen_order(self) -> None:
        tasks = [
            _task("b1", "2024-01-01", business="Beta"),
            _task("a1", "2024-01-01", business="Alpha"),
            _task("b2", "2024-01-02", business="Beta"),
            _task("a2", "2024-01-02", business="Alpha"),
        ]
        groups = dup.find_duplicate_groups(tasks)
        self.assertEqual([g.business_name for g in groups], ["Beta", "Alpha"])
        self.assertEqual(groups[0].members[0].assignee, "Kim")

    def test_summarize_groups(self) -> None:
        tasks = [_task(str(i), f"2024-01-0{i}") for i in range(1, 4)]
        tasks += [_task("x1", "2024-01-01", business="B"), _task("x2", "2024-01-02", business="B")]
        summary = dup.summarize_groups(dup.find_duplicate_groups(tasks))
        self.assertEqual(summary, {"total_groups": 2, "total_duplicates": 5, "to_delete": 3})


class SelectionTests(unittest.TestCase):
    def test_guard_selection_removes_survivors_and_strangers(self) -> None:
        groups = dup.find_duplicate_groups(
            [_task("t1", "2024-01-01"), _task("t2", "2024-01-02"), _task("t3", "2024-01-03")]
        )
        guarded = dup.guard_selection(groups, ["t3", "t1", "zzz", "t1", "t2"])
        self.assertEqual(guarded, ["t1", "t2"])


class SoftDeleteTests(unittest.TestCase):
    def test_failures_do_not_stop_other_ids(self) -> None:
        deleted = []

        def delete_one(task_id: str) -> bool:
            if task_id == "boom":
                raise RuntimeError("storage offline")
            if task_id == "gone":
                return False
            deleted.append(task_id)
            return True

        with self.assertLogs("task_workflow.services.duplicates", level="WARNING"):
            report = dup.soft_delete_tasks(["a", "boom", "b", "gone"], delete_one)
        self.assertEqual(deleted, ["a", "b"])
        self.assertEqual(report.success_count, 2)
        self.assertEqual(report.failed_count, 2)
        self.assertTrue(report.has_failures)
        self.assertEqual(report.errors[0], {"id": "boom", "error": "storage offline"})

    def test_empty_selection(self) -> None:
        report = dup.soft_delete_tasks([], lambda task_id: True)
        self.assertEqual((report.success_count, report.failed_count), (0, 0))
        self.assertFalse(report.has_failures)

    def test_delete_in_chunks_merges_reports(self) -> None:
        ids = [f"t{i}" for i in range(7)]
        seen_chunks = []

        def delete_chunk(chunk):
            seen_chunks.append(list(chunk))
            return dup.soft_delete_tasks(chunk, lambda task_id: task_id != "t5")

        with self.assertLogs("task_workflow.services.duplicates", level="WARNING"):
            report = dup.delete_in_chunks(ids, delete_chunk, chunk_size=3, max_workers=1)
        self.assertEqual(seen_chunks, [["t0", "t1", "t2"], ["t3", "t4", "t5"], ["t6"]])
        self.assertEqual(report.success_count, 6)
        self.assertEqual(report.failed_count, 1)
        self.assertEqual(report.errors[0]["id"], "t5")

    def test_failing_chunk_is_reported_not_raised(self) -> None:
        deleted = []

        def delete_chunk(chunk):
            if "t2" in chunk:
                raise OSError("unable to open database file")
            deleted.extend(chunk)
            return dup.soft_delete_tasks(chunk, lambda task_id: True)

        ids = [f"t{i}" for i in range(6)]
        with self.assertLogs("task_workflow.services.duplicates", level="WARNING"):
            report = dup.delete_in_chunks(ids, delete_chunk, chunk_size=2, max_workers=1)
        self.assertEqual(deleted, ["t0", "t1", "t4", "t5"])
        self.assertEqual(report.success_count, 4)
        self.assertEqual(report.failed_count, 2)
        self.assertEqual(
            report.errors,
            [
                {"id": "t2", "error": "unable to open database file"},
                {"id": "t3", "error": "unable to open database file"},
            ],
        )

    def test_delete_in_chunks_parallel(self) -> None:
        ids = [f"t{i}" for i in range(10)]
        report = dup.delete_in_chunks(
            ids,
            lambda chunk: dup.soft_delete_tasks(chunk, lambda task_id: True),
            chunk_size=2,
            max_workers=4,
        )
        self.assertEqual(report.success_count, 10)
        self.assertEqual(report.failed_count, 0)


if __name__ == "__main__":
    unittest.main()
