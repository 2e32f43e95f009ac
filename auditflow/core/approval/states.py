"""Approval workflow states and transitions.

State Machine Diagram:

    ┌──────────┐  start_review  ┌───────────┐
    │ PENDING  │───────────────►│ IN_REVIEW │
    └────┬─────┘                └─────┬─────┘
         │                            │
         │    ┌───────────┐  escalate │
         ├───►│ ESCALATED │◄──────────┤   (new approver bound,
         │    └─────┬─────┘           │    escalate may repeat)
         │          │                 │
         ▼          ▼                 ▼
    ┌──────────┐ ┌──────────┐ ┌───────────┐
    │ APPROVED │ │ REJECTED │ │ CANCELLED │
    └──────────┘ └──────────┘ └───────────┘

ESCALATED is an open state: it behaves like PENDING under the new approver
and accepts the same decisions. APPROVED, REJECTED and CANCELLED are terminal.
"""

from enum import Enum
from typing import Set, Dict, Optional, NamedTuple


class ApprovalState(str, Enum):
    """States in the approval workflow."""

    # Open states
    PENDING = "pending"           # Submitted, awaiting the approver
    IN_REVIEW = "in-review"       # Approver has picked it up
    ESCALATED = "escalated"       # Reassigned to a new approver

    # Terminal states
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"       # Withdrawn by the requester


class ApprovalTransition(str, Enum):
    """Actions that trigger state transitions."""

    START_REVIEW = "start_review"    # PENDING/ESCALATED → IN_REVIEW
    APPROVE = "approve"              # open → APPROVED
    REJECT = "reject"                # open → REJECTED
    ESCALATE = "escalate"            # open → ESCALATED
    CANCEL = "cancel"                # open → CANCELLED


class Actor(str, Enum):
    """Which party of the approval may fire a transition."""

    APPROVER = "approver"
    REQUESTER = "requester"


class ReviewAction(str, Enum):
    """Actions recorded in the review history."""

    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    UPDATED = "updated"
    COMMENTED = "commented"
    ESCALATED = "escalated"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: ApprovalState
    to_state: ApprovalState
    transition: ApprovalTransition
    performed_by: Actor = Actor.APPROVER
    requires_comment: bool = False
    review_action: Optional[ReviewAction] = None


OPEN_STATES: Set[ApprovalState] = {
    ApprovalState.PENDING,
    ApprovalState.IN_REVIEW,
    ApprovalState.ESCALATED,
}

TERMINAL_STATES: Set[ApprovalState] = {
    ApprovalState.APPROVED,
    ApprovalState.REJECTED,
    ApprovalState.CANCELLED,
}

# Plain strings for SQL filters
OPEN_STATUS_VALUES = tuple(sorted(s.value for s in OPEN_STATES))


def _from_open_states(transition, to_state, review_action, **kwargs) -> list[TransitionRule]:
    return [
        TransitionRule(state, to_state, transition, review_action=review_action, **kwargs)
        for state in (ApprovalState.PENDING, ApprovalState.IN_REVIEW, ApprovalState.ESCALATED)
    ]


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ApprovalState.PENDING, ApprovalState.IN_REVIEW, ApprovalTransition.START_REVIEW,
                   review_action=ReviewAction.REVIEWED),
    TransitionRule(ApprovalState.ESCALATED, ApprovalState.IN_REVIEW, ApprovalTransition.START_REVIEW,
                   review_action=ReviewAction.REVIEWED),
    *_from_open_states(ApprovalTransition.APPROVE, ApprovalState.APPROVED, ReviewAction.APPROVED),
    *_from_open_states(ApprovalTransition.REJECT, ApprovalState.REJECTED, ReviewAction.REJECTED,
                       requires_comment=True),
    *_from_open_states(ApprovalTransition.ESCALATE, ApprovalState.ESCALATED, ReviewAction.ESCALATED),
    *_from_open_states(ApprovalTransition.CANCEL, ApprovalState.CANCELLED, ReviewAction.CANCELLED,
                       performed_by=Actor.REQUESTER),
]

# Build lookup tables for efficient access
VALID_TRANSITIONS: Dict[ApprovalState, Set[ApprovalTransition]] = {}
TRANSITION_TARGETS: Dict[tuple[ApprovalState, ApprovalTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.transition)
    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


def can_transition(from_state: ApprovalState, transition: ApprovalTransition) -> bool:
    """Check if a transition is valid from the given state."""
    return transition in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(from_state: ApprovalState, transition: ApprovalTransition) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))


def get_target_state(from_state: ApprovalState, transition: ApprovalTransition) -> Optional[ApprovalState]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, transition)
    return rule.to_state if rule else None
