"""
Goods issue workflow.

State machine for material withdrawals: an issue is created ``pending``,
then either posted (``issued``, consumes inventory) or ``cancelled``.  Both
end states are terminal.  Lines may only be edited while pending.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from garment_kernel.exceptions import IssueStateError
from garment_kernel.logging_config import get_logger

logger = get_logger("engines.issue_workflow")


class IssueStatus(str, Enum):
    PENDING = "pending"
    ISSUED = "issued"
    CANCELLED = "cancelled"


class IssueType(str, Enum):
    PRODUCTION = "production"
    MAINTENANCE = "maintenance"
    SAMPLE = "sample"
    WASTE = "waste"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class Guard:
    """A condition checked by the service before a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: IssueStatus
    to_state: IssueStatus
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: IssueStatus
    states: tuple[IssueStatus, ...]
    transitions: tuple[Transition, ...]

    def transition_for(self, current: IssueStatus, action: str) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == current and transition.action == action:
                return transition
        return None

    def is_terminal(self, state: IssueStatus) -> bool:
        return not any(t.from_state == state for t in self.transitions)


STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Every line is covered by available inventory layers",
)

GOODS_ISSUE_WORKFLOW = Workflow(
    name="goods_issue",
    description="Raw material issue to production and other consumers",
    initial_state=IssueStatus.PENDING,
    states=(IssueStatus.PENDING, IssueStatus.ISSUED, IssueStatus.CANCELLED),
    transitions=(
        Transition(
            IssueStatus.PENDING,
            IssueStatus.ISSUED,
            action="post",
            guard=STOCK_AVAILABLE,
        ),
        Transition(IssueStatus.PENDING, IssueStatus.CANCELLED, action="cancel"),
    ),
)

# Actions that do not change state but require it to be pending.
EDIT_ACTIONS = frozenset({"add_line", "update_line", "remove_line"})


def require_transition(
    current: IssueStatus | str, action: str, issue_id: Any = None
) -> Transition:
    """
    Transition taken by ``action`` from ``current``.

    The caller checks the transition's guard before applying it.

    Raises:
        IssueStateError: the action is not permitted from ``current``.
    """
    status = IssueStatus(current)
    transition = GOODS_ISSUE_WORKFLOW.transition_for(status, action)
    if transition is None:
        raise IssueStateError(issue_id, status.value, action)
    return transition


def next_status(current: IssueStatus | str, action: str, issue_id: Any = None) -> IssueStatus:
    """Status after ``action``; see ``require_transition``."""
    return require_transition(current, action, issue_id).to_state


def require_editable(current: IssueStatus | str, action: str, issue_id: Any = None) -> None:
    """Raise IssueStateError unless lines may still be changed."""
    if action not in EDIT_ACTIONS:
        raise ValueError(f"Not an edit action: {action!r}")
    status = IssueStatus(current)
    if status != GOODS_ISSUE_WORKFLOW.initial_state:
        raise IssueStateError(issue_id, status.value, action)
