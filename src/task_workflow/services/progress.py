from __future__ import annotations

from typing import Any

from task_workflow.services.task_steps import REGISTRY, StepRegistry


def _round_half_up_percent(numerator: int, denominator: int) -> int:
    # floor(100 * numerator / denominator + 0.5) in integer arithmetic
    return (200 * numerator + denominator) // (2 * denominator)


def progress_percent(
    task_type: Any,
    status: Any,
    registry: StepRegistry | None = None,
) -> int:
    """Position of ``status`` within the type's step table as 0-100.

    Unknown statuses have no measurable progress and return 0.
    """
    registry = registry or REGISTRY
    position = registry.position_in_type(task_type, status)
    if position is None:
        return 0
    total = len(registry.steps_for(task_type))
    return _round_half_up_percent(position + 1, total)


def step_position(task_type: Any, status: Any) -> tuple[int, int] | None:
    position = REGISTRY.position_in_type(task_type, status)
    if position is None:
        return None
    return position + 1, len(REGISTRY.steps_for(task_type))
