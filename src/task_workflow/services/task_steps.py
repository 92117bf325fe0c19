from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from task_workflow.domain.constants import (
    TASK_TYPE_AS,
    TASK_TYPE_DEALER,
    TASK_TYPE_ETC,
    TASK_TYPE_OUTSOURCING,
    TASK_TYPE_SELF,
    TASK_TYPE_SUBSIDY,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    status: str
    label: str
    color: str


def _table(rows: Iterable[tuple[str, str, str]]) -> tuple[StepDefinition, ...]:
    return tuple(StepDefinition(status, label, color) for status, label, color in rows)


SELF_STEPS = _table(
    [
        ("self_needs_check", "확인필요", "red"),
        ("self_customer_contact", "고객 상담", "blue"),
        ("self_site_inspection", "현장 실사", "yellow"),
        ("self_quotation", "견적서 작성", "orange"),
        ("self_contract", "계약 체결", "purple"),
        ("self_deposit_confirm", "계약금 확인", "indigo"),
        ("self_product_order", "제품 발주", "cyan"),
        ("self_product_shipment", "제품 출고", "emerald"),
        ("self_installation_schedule", "설치 협의", "teal"),
        ("self_installation", "제품 설치", "green"),
        ("self_balance_payment", "잔금 입금", "lime"),
        ("self_document_complete", "서류 발송 완료", "green"),
    ]
)

SUBSIDY_STEPS = _table(
    [
        ("subsidy_needs_check", "확인필요", "red"),
        ("subsidy_customer_contact", "고객 상담", "blue"),
        ("subsidy_site_inspection", "현장 실사", "yellow"),
        ("subsidy_quotation", "견적서 작성", "orange"),
        ("subsidy_contract", "계약 체결", "purple"),
        ("subsidy_document_preparation", "신청서 작성 필요", "amber"),
        ("subsidy_application_submit", "신청서 제출", "purple"),
        ("subsidy_approval_pending", "보조금 승인대기", "sky"),
        ("subsidy_approved", "보조금 승인", "lime"),
        ("subsidy_rejected", "보조금 탈락", "red"),
        ("subsidy_document_supplement", "신청서 보완", "pink"),
        ("subsidy_pre_construction_inspection", "착공 전 실사", "indigo"),
        ("subsidy_pre_construction_supplement_1st", "착공 보완 1차", "rose"),
        ("subsidy_pre_construction_supplement_2nd", "착공 보완 2차", "fuchsia"),
        ("subsidy_construction_report_submit", "착공신고서 제출", "blue"),
        ("subsidy_product_order", "제품 발주", "cyan"),
        ("subsidy_product_shipment", "제품 출고", "emerald"),
        ("subsidy_installation_schedule", "설치예정", "teal"),
        ("subsidy_installation", "설치완료", "green"),
        ("subsidy_pre_completion_document_submit", "준공도서 작성 필요", "amber"),
        ("subsidy_completion_inspection", "준공 실사", "violet"),
        ("subsidy_completion_supplement_1st", "준공 보완 1차", "slate"),
        ("subsidy_completion_supplement_2nd", "준공 보완 2차", "zinc"),
        ("subsidy_completion_supplement_3rd", "준공 보완 3차", "stone"),
        ("subsidy_final_document_submit", "보조금지급신청서 제출", "gray"),
        ("subsidy_payment", "보조금 입금", "green"),
    ]
)

ETC_STEPS = _table(
    [
        ("etc_needs_check", "확인필요", "red"),
        ("etc_status", "기타", "gray"),
    ]
)

AS_STEPS = _table(
    [
        ("as_needs_check", "확인필요", "red"),
        ("as_customer_contact", "AS 고객 상담", "blue"),
        ("as_site_inspection", "AS 현장 확인", "yellow"),
        ("as_quotation", "AS 견적 작성", "orange"),
        ("as_contract", "AS 계약 체결", "purple"),
        ("as_part_order", "AS 부품 발주", "cyan"),
        ("as_completed", "AS 완료", "green"),
    ]
)

DEALER_STEPS = _table(
    [
        ("dealer_needs_check", "확인필요", "red"),
        ("dealer_order_received", "발주 수신", "blue"),
        ("dealer_invoice_issued", "계산서 발행", "yellow"),
        ("dealer_payment_confirmed", "입금 확인", "green"),
        ("dealer_product_ordered", "제품 발주", "emerald"),
    ]
)

OUTSOURCING_STEPS = _table(
    [
        ("outsourcing_needs_check", "확인필요", "red"),
        ("outsourcing_order", "외주 발주", "blue"),
        ("outsourcing_schedule", "일정 조율", "yellow"),
        ("outsourcing_in_progress", "설치 진행 중", "orange"),
        ("outsourcing_completed", "설치 완료", "green"),
    ]
)

# Concatenation order of the flattened lookup; the first table holding a
# status wins when a status appears in several tables.
STEP_TABLES: dict[str, tuple[StepDefinition, ...]] = {
    TASK_TYPE_SELF: SELF_STEPS,
    TASK_TYPE_SUBSIDY: SUBSIDY_STEPS,
    TASK_TYPE_DEALER: DEALER_STEPS,
    TASK_TYPE_OUTSOURCING: OUTSOURCING_STEPS,
    TASK_TYPE_ETC: ETC_STEPS,
    TASK_TYPE_AS: AS_STEPS,
}

EXPECTED_TABLE_SIZES = {
    TASK_TYPE_SELF: 12,
    TASK_TYPE_SUBSIDY: 26,
    TASK_TYPE_ETC: 2,
    TASK_TYPE_AS: 7,
    TASK_TYPE_DEALER: 5,
    TASK_TYPE_OUTSOURCING: 5,
}


class StepRegistry:
    """Read-only index over the per-type step tables.

    Two lookup levels are precomputed: a per-type ``status -> (index, step)``
    map for exact matches and a flattened ``status -> step`` map across all
    tables for records whose type and status disagree.
    """

    def __init__(
        self,
        tables: dict[str, tuple[StepDefinition, ...]],
        default_type: str = TASK_TYPE_ETC,
    ) -> None:
        if default_type not in tables:
            raise ValueError(f"Default task type '{default_type}' has no step table.")
        for task_type, steps in tables.items():
            if not steps:
                raise ValueError(f"Step table for '{task_type}' is empty.")
        self._tables = dict(tables)
        self._default_type = default_type
        self._by_type: dict[str, dict[str, tuple[int, StepDefinition]]] = {}
        for task_type, steps in self._tables.items():
            index: dict[str, tuple[int, StepDefinition]] = {}
            for position, step in enumerate(steps):
                index.setdefault(step.status, (position, step))
            self._by_type[task_type] = index
        self._flat: dict[str, StepDefinition] = {}
        for steps in self._tables.values():
            for step in steps:
                self._flat.setdefault(step.status, step)

    @property
    def task_types(self) -> tuple[str, ...]:
        return tuple(self._tables)

    def resolve_type(self, task_type: Any) -> str:
        key = str(task_type or "").strip()
        if key in self._tables:
            return key
        return self._default_type

    def steps_for(self, task_type: Any) -> tuple[StepDefinition, ...]:
        return self._tables[self.resolve_type(task_type)]

    def position_in_type(self, task_type: Any, status: Any) -> int | None:
        hit = self._by_type[self.resolve_type(task_type)].get(_status_key(status))
        return hit[0] if hit else None

    def find_in_type(self, task_type: Any, status: Any) -> StepDefinition | None:
        hit = self._by_type[self.resolve_type(task_type)].get(_status_key(status))
        return hit[1] if hit else None

    def find_any(self, status: Any) -> StepDefinition | None:
        return self._flat.get(_status_key(status))

    def all_steps(self) -> list[StepDefinition]:
        return [step for steps in self._tables.values() for step in steps]


def _status_key(status: Any) -> str:
    if status is None:
        return ""
    return str(status)


REGISTRY = StepRegistry(STEP_TABLES)


def steps_for(task_type: Any) -> tuple[StepDefinition, ...]:
    return REGISTRY.steps_for(task_type)


def all_steps() -> list[StepDefinition]:
    return REGISTRY.all_steps()


def registry_sanity_check(registry: StepRegistry | None = None) -> list[str]:
    registry = registry or REGISTRY
    mismatches = []
    for task_type, expected in EXPECTED_TABLE_SIZES.items():
        actual = len(registry.steps_for(task_type))
        if task_type not in registry.task_types:
            mismatches.append(f"{task_type} -> missing table")
        elif actual != expected:
            mismatches.append(f"{task_type} -> {actual} steps (expected {expected})")
    for task_type in registry.task_types:
        statuses = [step.status for step in registry.steps_for(task_type)]
        if len(set(statuses)) != len(statuses):
            mismatches.append(f"{task_type} -> duplicate statuses")
    if mismatches:
        _LOGGER.warning("Step registry sanity check failed: %s", mismatches)
    return mismatches
