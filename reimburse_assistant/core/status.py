"""Approval status transition table.

Review happens in four ordered stages (box, han, assistant, office) before a
record reaches success. Progression is driven by hand from the admin view, so
every move between two different statuses is listed as legal, including moves
back out of success and rejected. Only self-transitions are refused.
"""
from itertools import permutations

from .exceptions import StatusTransitionError
from .models import ReimbursementStatus

STAGES = (
    ReimbursementStatus.BOX,
    ReimbursementStatus.HAN,
    ReimbursementStatus.ASSISTANT,
    ReimbursementStatus.OFFICE,
)

STAGE_LABELS = {
    ReimbursementStatus.BOX: "发票盒",
    ReimbursementStatus.HAN: "韩老师",
    ReimbursementStatus.ASSISTANT: "财务助管",
    ReimbursementStatus.OFFICE: "财务处",
    ReimbursementStatus.SUCCESS: "已完成",
    ReimbursementStatus.REJECTED: "已退单",
}

TRANSITIONS: frozenset[tuple[ReimbursementStatus, ReimbursementStatus]] = frozenset(
    permutations(ReimbursementStatus, 2)
)


def can_transition(source: ReimbursementStatus, target: ReimbursementStatus) -> bool:
    return (ReimbursementStatus(source), ReimbursementStatus(target)) in TRANSITIONS


def check_transition(source: ReimbursementStatus, target: ReimbursementStatus) -> None:
    """Raise StatusTransitionError unless source -> target is in the table."""
    source = ReimbursementStatus(source)
    target = ReimbursementStatus(target)
    if not can_transition(source, target):
        raise StatusTransitionError(source.value, target.value, "transition is not allowed")


def stage_index(status: ReimbursementStatus) -> int:
    """Position in the review pipeline.

    Stages map to 0..3, success to len(STAGES), rejected to -1.
    """
    status = ReimbursementStatus(status)
    if status == ReimbursementStatus.SUCCESS:
        return len(STAGES)
    if status == ReimbursementStatus.REJECTED:
        return -1
    return STAGES.index(status)


def progress_label(status: ReimbursementStatus, rejection_reason: str | None = None) -> str:
    """Human-readable progress, e.g. '发票盒 > [韩老师] > 财务助管 > 财务处'."""
    status = ReimbursementStatus(status)
    if status == ReimbursementStatus.REJECTED:
        label = STAGE_LABELS[status]
        return f"{label}：{rejection_reason}" if rejection_reason else label
    if status == ReimbursementStatus.SUCCESS:
        return STAGE_LABELS[status]
    current = stage_index(status)
    parts = [
        f"[{STAGE_LABELS[stage]}]" if i == current else STAGE_LABELS[stage]
        for i, stage in enumerate(STAGES)
    ]
    return " > ".join(parts)
