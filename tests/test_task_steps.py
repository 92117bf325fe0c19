import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from task_workflow.services import task_steps as ts


class StepRegistryTests(unittest.TestCase):
    def test_table_sizes(self) -> None:
        for task_type, expected in ts.EXPECTED_TABLE_SIZES.items():
            self.assertEqual(len(ts.steps_for(task_type)), expected, task_type)
        self.assertEqual(ts.registry_sanity_check(), [])

    def test_statuses_unique_within_type(self) -> None:
        for task_type in ts.REGISTRY.task_types:
            statuses = [step.status for step in ts.steps_for(task_type)]
            self.assertEqual(len(statuses), len(set(statuses)))

    def test_unknown_type_uses_etc_table(self) -> None:
        self.assertEqual(ts.steps_for("unknown"), ts.ETC_STEPS)
        self.assertEqual(ts.steps_for(None), ts.ETC_STEPS)

    def test_find_in_type_and_flattened(self) -> None:
        self.assertEqual(ts.REGISTRY.position_in_type("self", "self_installation"), 9)
        self.assertIsNone(ts.REGISTRY.find_in_type("dealer", "self_quotation"))
        self.assertEqual(ts.REGISTRY.find_any("self_quotation").label, "견적서 작성")
        self.assertIsNone(ts.REGISTRY.find_any("nope"))

    def test_all_steps_in_table_order(self) -> None:
        steps = ts.all_steps()
        self.assertEqual(len(steps), sum(ts.EXPECTED_TABLE_SIZES.values()))
        self.assertEqual(steps[0].status, "self_needs_check")

    def test_sanity_check_reports_mismatch(self) -> None:
        registry = ts.StepRegistry({"etc": ts.ETC_STEPS, "self": ts.SELF_STEPS[:3]})
        with self.assertLogs("task_workflow.services.task_steps", level="WARNING"):
            problems = ts.registry_sanity_check(registry)
        self.assertIn("self -> 3 steps (expected 12)", problems)
        self.assertIn("subsidy -> missing table", problems)

    def test_registry_rejects_missing_default(self) -> None:
        with self.assertRaises(ValueError):
            ts.StepRegistry({"self": ts.SELF_STEPS})

    def test_step_definition_is_immutable(self) -> None:
        with self.assertRaises(AttributeError):
            ts.SELF_STEPS[0].label = "x"  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
