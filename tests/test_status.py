"""Tests for the approval status transition table."""
import pytest

from reimburse_assistant.core.exceptions import StatusTransitionError
from reimburse_assistant.core.models import ReimbursementStatus
from reimburse_assistant.core.status import (
    STAGES,
    TRANSITIONS,
    can_transition,
    check_transition,
    progress_label,
    stage_index,
)

ALL_STATUSES = list(ReimbursementStatus)


def test_table_lists_every_move_between_distinct_statuses():
    assert len(TRANSITIONS) == 30
    for source in ALL_STATUSES:
        for target in ALL_STATUSES:
            assert can_transition(source, target) == (source != target)


@pytest.mark.parametrize("status", ALL_STATUSES)
def test_self_transition_raises(status):
    with pytest.raises(StatusTransitionError) as exc_info:
        check_transition(status, status)
    assert exc_info.value.source == status.value


def test_string_statuses_accepted():
    assert can_transition("rejected", "box")
    check_transition("success", "office")


def test_stage_order():
    assert [stage_index(stage) for stage in STAGES] == [0, 1, 2, 3]
    assert stage_index(ReimbursementStatus.SUCCESS) == 4
    assert stage_index(ReimbursementStatus.REJECTED) == -1


def test_progress_label_marks_current_stage():
    assert progress_label(ReimbursementStatus.HAN) == "发票盒 > [韩老师] > 财务助管 > 财务处"
    assert progress_label(ReimbursementStatus.SUCCESS) == "已完成"


def test_progress_label_shows_rejection_reason():
    assert progress_label(ReimbursementStatus.REJECTED, "缺少签字") == "已退单：缺少签字"
    assert progress_label(ReimbursementStatus.REJECTED) == "已退单"
