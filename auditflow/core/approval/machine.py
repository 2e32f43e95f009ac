"""Approval state machine implementation.

Validates transitions against the rule table, checks that the acting user is
the party the rule names (bound approver or original requester), and records
every transition for the caller to persist.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Dict, Any, Callable

from auditflow.core.errors import AuthorizationError, ConflictError, ValidationError
from .states import (
    Actor,
    ApprovalState,
    ApprovalTransition,
    TransitionRule,
    can_transition,
    get_transition_rule,
    TERMINAL_STATES,
)

logger = logging.getLogger(__name__)


_VERBS = {
    ApprovalTransition.START_REVIEW: "review",
    ApprovalTransition.APPROVE: "approve",
    ApprovalTransition.REJECT: "reject",
    ApprovalTransition.ESCALATE: "escalate",
    ApprovalTransition.CANCEL: "cancel",
}


class TransitionError(ConflictError):
    """Raised when a transition is not valid from the current state."""

    code = "invalid_transition"

    def __init__(self, message: str, from_state: ApprovalState, transition: ApprovalTransition):
        super().__init__(
            message,
            details={"from_state": from_state.value, "transition": transition.value},
        )
        self.from_state = from_state
        self.transition = transition


class PermissionDeniedError(AuthorizationError):
    """Raised when the actor is not the party allowed to fire a transition."""

    def __init__(self, transition: ApprovalTransition):
        super().__init__(f"You are not authorized to {_VERBS[transition]} this request")
        self.transition = transition


def _same_user(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


class ApprovalStateMachine:
    """
    State machine for a single approval.

    Manages transitions between approval states with:
    - Validation of valid transitions
    - Actor checks (approver decides, requester cancels)
    - Transition history for persistence
    - Callback hooks for side effects
    """

    def __init__(
        self,
        approval_id: uuid.UUID,
        current_state: ApprovalState,
        *,
        approver_id: Optional[uuid.UUID] = None,
        requested_by_id: Optional[uuid.UUID] = None,
    ):
        self.approval_id = approval_id
        self._state = ApprovalState(current_state)
        self.approver_id = approver_id
        self.requested_by_id = requested_by_id
        self._transition_history: list[Dict[str, Any]] = []
        self._callbacks: Dict[ApprovalTransition, list[Callable]] = {}

    @property
    def state(self) -> ApprovalState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def is_allowed_actor(self, rule: TransitionRule, actor_id: Any) -> bool:
        if rule.performed_by == Actor.REQUESTER:
            return _same_user(actor_id, self.requested_by_id)
        return _same_user(actor_id, self.approver_id)

    def can_perform(self, transition: ApprovalTransition, actor_id: Any) -> bool:
        rule = get_transition_rule(self._state, transition)
        return rule is not None and self.is_allowed_actor(rule, actor_id)

    def get_available_transitions(self, actor_id: Any) -> list[ApprovalTransition]:
        return [t for t in ApprovalTransition if self.can_perform(t, actor_id)]

    def validate(
        self,
        transition: ApprovalTransition,
        *,
        actor_id: Any,
        comment: Optional[str] = None,
    ) -> TransitionRule:
        """
        Check a transition without performing it.

        Raises:
            TransitionError: the transition is not valid from the current state
            PermissionDeniedError: the actor is not the approver/requester
            ValidationError: the rule needs a comment and none was given
        """
        if not can_transition(self._state, transition):
            raise TransitionError(
                f"Cannot {_VERBS[transition]} a request that is {self._state.value}",
                self._state,
                transition,
            )

        rule = get_transition_rule(self._state, transition)

        if not self.is_allowed_actor(rule, actor_id):
            raise PermissionDeniedError(transition)

        if rule.requires_comment and not (comment and comment.strip()):
            raise ValidationError("Comments are required when rejecting a request")

        return rule

    def transition(
        self,
        transition: ApprovalTransition,
        *,
        actor_id: Any,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TransitionRule:
        """
        Perform a state transition.

        Returns:
            The rule that fired; ``rule.to_state`` is the new state
        """
        rule = self.validate(transition, actor_id=actor_id, comment=comment)

        record = {
            "id": uuid.uuid4(),
            "approval_id": self.approval_id,
            "from_state": self._state.value,
            "to_state": rule.to_state.value,
            "transition": transition.value,
            "actor_id": actor_id,
            "comment": comment,
            "metadata": metadata or {},
            "timestamp": datetime.utcnow(),
        }
        self._transition_history.append(record)
        self._state = rule.to_state

        logger.info(
            f"Approval {self.approval_id}: {record['from_state']} -> {record['to_state']} "
            f"({transition.value}) by {actor_id}"
        )

        self._execute_callbacks(transition, record)
        return rule

    def register_callback(
        self,
        transition: ApprovalTransition,
        callback: Callable[[Dict[str, Any]], None],
    ) -> None:
        self._callbacks.setdefault(transition, []).append(callback)

    def get_history(self) -> list[Dict[str, Any]]:
        return self._transition_history.copy()

    def _execute_callbacks(self, transition: ApprovalTransition, record: Dict[str, Any]) -> None:
        for callback in self._callbacks.get(transition, []):
            try:
                callback(record)
            except Exception:
                # A failing hook never undoes the transition
                logger.exception(f"Callback error for {transition.value} on approval {self.approval_id}")
