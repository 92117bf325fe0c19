from __future__ import annotations

import re
from typing import Any

from task_workflow.services.task_steps import REGISTRY, StepRegistry

FALLBACK_COLOR = "gray"

_WORD_START_RE = re.compile(r"\b\w")

# Statuses written before the per-type prefixes existed, plus the generic
# workflow states some imported records still carry.
LEGACY_STATUS_LABELS: dict[str, str] = {
    "customer_contact": "고객 상담",
    "site_inspection": "현장 실사",
    "quotation": "견적서 작성",
    "contract": "계약 체결",
    "deposit_confirm": "계약금 확인",
    "product_order": "제품 발주",
    "product_shipment": "제품 출고",
    "installation_schedule": "설치예정",
    "installation": "설치완료",
    "balance_payment": "잔금 입금",
    "document_complete": "서류 발송 완료",
    "document_preparation": "신청서 작성 필요",
    "application_submit": "신청서 제출",
    "approval_pending": "보조금 승인대기",
    "approved": "보조금 승인",
    "rejected": "보조금 탈락",
    "document_supplement": "신청서 보완",
    "pre_construction_inspection": "착공 전 실사",
    "pre_construction_supplement_1st": "착공 보완 1차",
    "pre_construction_supplement_2nd": "착공 보완 2차",
    "construction_report_submit": "착공신고서 제출",
    "pre_completion_document_submit": "준공도서 작성 필요",
    "completion_inspection": "준공 실사",
    "completion_supplement_1st": "준공 보완 1차",
    "completion_supplement_2nd": "준공 보완 2차",
    "completion_supplement_3rd": "준공 보완 3차",
    "final_document_submit": "보조금지급신청서 제출",
    "pending": "대기",
    "in_progress": "진행중",
    "completed": "완료",
    "cancelled": "취소",
    "on_hold": "보류",
}

TASK_TYPE_LABELS: dict[str, str] = {
    "self": "자가시설",
    "subsidy": "보조금",
    "as": "A/S",
    "dealer": "대리점",
    "outsourcing": "외주설치",
    "etc": "기타",
}

PRIORITY_LABELS: dict[str, str] = {
    "low": "낮음",
    "medium": "보통",
    "high": "높음",
    "critical": "긴급",
}


def humanize_status(status: Any) -> str:
    """Turn a raw status code into display text: ``as_part_order`` -> ``As Part Order``."""
    text = str(status or "").replace("_", " ")
    return _WORD_START_RE.sub(lambda match: match.group(0).upper(), text)


def status_label(
    task_type: Any,
    status: Any,
    registry: StepRegistry | None = None,
) -> str:
    registry = registry or REGISTRY
    step = registry.find_in_type(task_type, status)
    if step is None:
        step = registry.find_any(status)
    if step is not None:
        return step.label
    return humanize_status(status)


def status_color(
    task_type: Any,
    status: Any,
    registry: StepRegistry | None = None,
) -> str:
    registry = registry or REGISTRY
    step = registry.find_in_type(task_type, status)
    if step is None:
        step = registry.find_any(status)
    if step is not None:
        return step.color
    return FALLBACK_COLOR


def legacy_status_label(status: Any) -> str:
    """Label from the step tables or the legacy vocabulary; the raw code otherwise."""
    raw = str(status or "")
    step = REGISTRY.find_any(raw)
    if step is not None:
        return step.label
    return LEGACY_STATUS_LABELS.get(raw, raw)


def task_type_label(task_type: Any) -> str:
    raw = str(task_type or "")
    return TASK_TYPE_LABELS.get(raw, raw)


def priority_label(priority: Any) -> str:
    raw = str(priority or "")
    return PRIORITY_LABELS.get(raw, raw)


def status_change_message(
    old_status: Any,
    new_status: Any,
    business_name: str,
    modifier_name: str | None = None,
) -> str:
    old_label = legacy_status_label(old_status)
    new_label = legacy_status_label(new_status)
    suffix = f"({modifier_name}님이 수정)" if modifier_name else f"({business_name})"
    return (
        f'"{business_name}" 업무 상태가 {old_label}에서 {new_label}로 변경되었습니다. {suffix}'
    )
