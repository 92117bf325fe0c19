import sys
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from task_workflow.domain.constants import (
    COMPLETED_STATUSES,
    DEFAULT_DELAY_CRITERIA,
    HEALTH_AT_RISK,
    HEALTH_DELAYED,
    HEALTH_ON_TIME,
)
from task_workflow.services import delay

NOW = datetime(2024, 6, 20, 12, 0, 0)


class ClassifyDelayTests(unittest.TestCase):
    def test_ten_days_self_is_delayed_by_three(self) -> None:
        result = delay.classify_delay(NOW - timedelta(days=10), "self", "self_site_inspection", now=NOW)
        self.assertEqual(result, delay.DelayResult(HEALTH_DELAYED, 3))

    def test_completed_status_is_always_on_time(self) -> None:
        long_ago = NOW - timedelta(days=400)
        for status in COMPLETED_STATUSES:
            self.assertEqual(delay.classify_delay(long_ago, "self", status, now=NOW), delay.ON_TIME)

    def test_completed_set_is_closed(self) -> None:
        self.assertEqual(
            COMPLETED_STATUSES,
            {
                "document_complete",
                "balance_payment",
                "self_document_complete",
                "self_balance_payment",
                "subsidy_payment",
                "as_completed",
                "dealer_payment_confirmed",
                "etc_status",
            },
        )
        self.assertFalse(delay.is_completed_status("outsourcing_completed"))
        result = delay.classify_delay(NOW - timedelta(days=30), "outsourcing", "outsourcing_completed", now=NOW)
        self.assertEqual(result.health, HEALTH_DELAYED)

    def test_missing_or_bad_start_date(self) -> None:
        for value in (None, "", "not a date", 12345):
            self.assertEqual(delay.classify_delay(value, "self", "self_contract", now=NOW), delay.ON_TIME)

    def test_future_start_date(self) -> None:
        result = delay.classify_delay(NOW + timedelta(days=5), "as", "as_contract", now=NOW)
        self.assertEqual(result.health, HEALTH_ON_TIME)
        self.assertEqual(result.overdue_days, 0)

    def test_below_threshold_is_on_time(self) -> None:
        result = delay.classify_delay("2024-06-14", "self", "self_contract", now=NOW)
        self.assertEqual(result, delay.ON_TIME)

    def test_date_string_and_utc_suffix(self) -> None:
        self.assertEqual(
            delay.classify_delay("2024-06-10", "self", "self_contract", now=NOW),
            delay.DelayResult(HEALTH_DELAYED, 3),
        )
        aware_now = NOW.replace(tzinfo=timezone.utc)
        self.assertEqual(
            delay.classify_delay("2024-06-10T12:00:00Z", "self", "self_contract", now=aware_now),
            delay.DelayResult(HEALTH_DELAYED, 3),
        )

    def test_dealer_uses_etc_thresholds(self) -> None:
        start = NOW - timedelta(days=7)
        self.assertEqual(
            delay.classify_delay(start, "dealer", "dealer_order_received", now=NOW),
            delay.DelayResult(HEALTH_DELAYED, 0),
        )
        self.assertEqual(
            delay.classify_delay(NOW - timedelta(days=6), "dealer", "dealer_order_received", now=NOW),
            delay.ON_TIME,
        )

    def test_dealer_entry_in_criteria_is_not_used(self) -> None:
        criteria = dict(DEFAULT_DELAY_CRITERIA)
        criteria["dealer"] = {"delayed": 1, "risky": 2}
        criteria["outsourcing"] = {"delayed": 1, "risky": 2}
        for task_type in ("dealer", "outsourcing"):
            self.assertEqual(delay.criteria_key(task_type, criteria), "etc")
            result = delay.classify_delay(NOW - timedelta(days=5), task_type, "x", criteria, now=NOW)
            self.assertEqual(result, delay.ON_TIME)

    def test_delayed_checked_before_risky(self) -> None:
        # risky >= delayed under the defaults so at-risk never shows up
        for days in range(0, 40):
            result = delay.classify_delay(NOW - timedelta(days=days), "subsidy", "subsidy_contract", now=NOW)
            self.assertNotEqual(result.health, HEALTH_AT_RISK)

    def test_at_risk_when_risky_threshold_is_lower(self) -> None:
        criteria = {"self": {"delayed": 14, "risky": 7}}
        result = delay.classify_delay(NOW - timedelta(days=8), "self", "self_contract", criteria, now=NOW)
        self.assertEqual(result, delay.DelayResult(HEALTH_AT_RISK, 0))

    def test_overdue_days_only_when_delayed(self) -> None:
        for days in range(0, 30):
            result = delay.classify_delay(NOW - timedelta(days=days), "as", "as_contract", now=NOW)
            if result.health != HEALTH_DELAYED:
                self.assertEqual(result.overdue_days, 0)
            else:
                self.assertEqual(result.overdue_days, days - 3)


class DelayCriteriaTests(unittest.TestCase):
    def test_normalize_none_gives_defaults(self) -> None:
        self.assertEqual(delay.normalize_delay_criteria(None), DEFAULT_DELAY_CRITERIA)

    def test_normalize_ignores_invalid_entries(self) -> None:
        with self.assertLogs("task_workflow.services.delay", level="WARNING"):
            criteria = delay.normalize_delay_criteria(
                {"self": {"delayed": "x", "risky": 3}, "as": {"delayed": 1, "risky": 2}}
            )
        self.assertEqual(criteria["self"], DEFAULT_DELAY_CRITERIA["self"])
        self.assertEqual(criteria["as"], {"delayed": 1, "risky": 2})

    def test_normalize_drops_types_without_own_thresholds(self) -> None:
        with self.assertLogs("task_workflow.services.delay", level="WARNING"):
            criteria = delay.normalize_delay_criteria({"dealer": {"delayed": 1, "risky": 2}})
        self.assertNotIn("dealer", criteria)
        self.assertEqual(criteria, DEFAULT_DELAY_CRITERIA)

    def test_criteria_key(self) -> None:
        self.assertEqual(delay.criteria_key("subsidy"), "subsidy")
        self.assertEqual(delay.criteria_key("outsourcing"), "etc")
        self.assertEqual(delay.criteria_key(None), "etc")

    def test_parse_start_date(self) -> None:
        self.assertEqual(delay.parse_start_date("2024-01-02"), date(2024, 1, 2))
        self.assertIsInstance(delay.parse_start_date("2024-01-02T03:04:05"), datetime)
        self.assertIsNone(delay.parse_start_date("2024-13-40"))


if __name__ == "__main__":
    unittest.main()
