"""
Tests for the goods issue state machine (garment_engines.issue_workflow).
"""

import pytest

from garment_engines.issue_workflow import (
    GOODS_ISSUE_WORKFLOW,
    STOCK_AVAILABLE,
    IssueStatus,
    next_status,
    require_editable,
    require_transition,
)
from garment_kernel.exceptions import IssueStateError


class TestTransitions:
    def test_pending_can_be_posted(self):
        assert next_status("pending", "post") is IssueStatus.ISSUED

    def test_pending_can_be_cancelled(self):
        assert next_status(IssueStatus.PENDING, "cancel") is IssueStatus.CANCELLED

    @pytest.mark.parametrize("status", [IssueStatus.ISSUED, IssueStatus.CANCELLED])
    @pytest.mark.parametrize("action", ["post", "cancel"])
    def test_terminal_states_reject_everything(self, status, action):
        with pytest.raises(IssueStateError) as exc_info:
            next_status(status, action, issue_id="GI-000001")
        assert exc_info.value.code == "INVALID_ISSUE_STATE"
        assert exc_info.value.current_status == status.value

    def test_unknown_action(self):
        with pytest.raises(IssueStateError):
            next_status("pending", "approve")

    def test_terminal_states(self):
        assert GOODS_ISSUE_WORKFLOW.is_terminal(IssueStatus.ISSUED)
        assert GOODS_ISSUE_WORKFLOW.is_terminal(IssueStatus.CANCELLED)
        assert not GOODS_ISSUE_WORKFLOW.is_terminal(IssueStatus.PENDING)

    def test_posting_is_guarded_by_stock(self):
        assert require_transition("pending", "post").guard == STOCK_AVAILABLE
        assert require_transition("pending", "cancel").guard is None

    def test_require_transition_rejects_terminal_state(self):
        with pytest.raises(IssueStateError):
            require_transition("cancelled", "post")


class TestRequireEditable:
    def test_pending_is_editable(self):
        require_editable("pending", "add_line")
        require_editable("pending", "update_line")
        require_editable("pending", "remove_line")

    def test_posted_is_not_editable(self):
        with pytest.raises(IssueStateError):
            require_editable("issued", "add_line")

    def test_non_edit_action_is_a_programming_error(self):
        with pytest.raises(ValueError):
            require_editable("pending", "post")
