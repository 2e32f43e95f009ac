"""Tests for approval workflow states and the state machine."""

import pytest
from uuid import uuid4

from auditflow.core.approval.states import (
    ApprovalState, ApprovalTransition, Actor, ReviewAction,
    OPEN_STATES, TERMINAL_STATES, OPEN_STATUS_VALUES, VALID_TRANSITIONS,
    can_transition, get_target_state, get_transition_rule,
)
from auditflow.core.approval.machine import (
    ApprovalStateMachine, TransitionError, PermissionDeniedError,
)
from auditflow.core.errors import AuthorizationError, ConflictError, ValidationError


class TestApprovalStates:
    """Test approval state definitions."""

    def test_all_states_defined(self):
        values = {s.value for s in ApprovalState}
        assert values == {"pending", "in-review", "escalated", "approved", "rejected", "cancelled"}

    def test_open_and_terminal_partition(self):
        assert OPEN_STATES | TERMINAL_STATES == set(ApprovalState)
        assert not OPEN_STATES & TERMINAL_STATES

    def test_escalated_is_open(self):
        assert ApprovalState.ESCALATED in OPEN_STATES
        assert "escalated" in OPEN_STATUS_VALUES

    def test_terminal_states_have_no_transitions(self):
        for state in TERMINAL_STATES:
            assert state not in VALID_TRANSITIONS


class TestApprovalTransitions:
    """Test valid state transitions."""

    @pytest.mark.parametrize("state", [ApprovalState.PENDING, ApprovalState.IN_REVIEW, ApprovalState.ESCALATED])
    def test_decisions_from_open_states(self, state):
        assert get_target_state(state, ApprovalTransition.APPROVE) == ApprovalState.APPROVED
        assert get_target_state(state, ApprovalTransition.REJECT) == ApprovalState.REJECTED
        assert get_target_state(state, ApprovalTransition.ESCALATE) == ApprovalState.ESCALATED
        assert get_target_state(state, ApprovalTransition.CANCEL) == ApprovalState.CANCELLED

    def test_start_review(self):
        assert can_transition(ApprovalState.PENDING, ApprovalTransition.START_REVIEW)
        assert can_transition(ApprovalState.ESCALATED, ApprovalTransition.START_REVIEW)
        assert not can_transition(ApprovalState.IN_REVIEW, ApprovalTransition.START_REVIEW)

    def test_no_transition_out_of_approved(self):
        for transition in ApprovalTransition:
            assert not can_transition(ApprovalState.APPROVED, transition)
            assert get_target_state(ApprovalState.APPROVED, transition) is None

    def test_reject_requires_comment(self):
        rule = get_transition_rule(ApprovalState.PENDING, ApprovalTransition.REJECT)
        assert rule.requires_comment
        assert rule.review_action == ReviewAction.REJECTED

    def test_cancel_is_performed_by_requester(self):
        rule = get_transition_rule(ApprovalState.IN_REVIEW, ApprovalTransition.CANCEL)
        assert rule.performed_by == Actor.REQUESTER


class TestApprovalStateMachine:
    """Test the approval state machine."""

    @pytest.fixture
    def parties(self):
        return {"approver": uuid4(), "requester": uuid4(), "stranger": uuid4()}

    def _machine(self, parties, state=ApprovalState.PENDING):
        return ApprovalStateMachine(
            uuid4(),
            state,
            approver_id=parties["approver"],
            requested_by_id=parties["requester"],
        )

    def test_initial_state(self, parties):
        machine = self._machine(parties)
        assert machine.state == ApprovalState.PENDING
        assert not machine.is_terminal

    def test_accepts_plain_string_state(self, parties):
        machine = self._machine(parties, "in-review")
        assert machine.state == ApprovalState.IN_REVIEW

    def test_approver_approves(self, parties):
        machine = self._machine(parties)
        rule = machine.transition(ApprovalTransition.APPROVE, actor_id=parties["approver"])
        assert rule.to_state == ApprovalState.APPROVED
        assert machine.state == ApprovalState.APPROVED
        assert machine.is_terminal

    def test_ids_compared_as_strings(self, parties):
        machine = self._machine(parties)
        assert machine.can_perform(ApprovalTransition.APPROVE, str(parties["approver"]))

    def test_stranger_cannot_decide(self, parties):
        machine = self._machine(parties)
        with pytest.raises(PermissionDeniedError) as exc_info:
            machine.transition(ApprovalTransition.APPROVE, actor_id=parties["stranger"])
        assert isinstance(exc_info.value, AuthorizationError)
        assert str(exc_info.value) == "You are not authorized to approve this request"
        assert machine.state == ApprovalState.PENDING

    def test_requester_cannot_approve_own_request(self, parties):
        machine = self._machine(parties)
        assert not machine.can_perform(ApprovalTransition.APPROVE, parties["requester"])

    def test_unassigned_approval_cannot_be_decided(self, parties):
        machine = ApprovalStateMachine(uuid4(), ApprovalState.PENDING, requested_by_id=parties["requester"])
        with pytest.raises(PermissionDeniedError):
            machine.validate(ApprovalTransition.APPROVE, actor_id=parties["approver"])

    def test_only_requester_cancels(self, parties):
        machine = self._machine(parties)
        with pytest.raises(PermissionDeniedError):
            machine.validate(ApprovalTransition.CANCEL, actor_id=parties["approver"])
        machine.transition(ApprovalTransition.CANCEL, actor_id=parties["requester"])
        assert machine.state == ApprovalState.CANCELLED

    @pytest.mark.parametrize("comment", [None, "", "   "])
    def test_reject_without_comment(self, parties, comment):
        machine = self._machine(parties)
        with pytest.raises(ValidationError, match="Comments are required when rejecting a request"):
            machine.transition(ApprovalTransition.REJECT, actor_id=parties["approver"], comment=comment)
        assert machine.state == ApprovalState.PENDING

    def test_invalid_transition_reports_state(self, parties):
        machine = self._machine(parties, ApprovalState.APPROVED)
        with pytest.raises(TransitionError) as exc_info:
            machine.validate(ApprovalTransition.REJECT, actor_id=parties["approver"], comment="late")
        err = exc_info.value
        assert isinstance(err, ConflictError)
        assert err.message == "Cannot reject a request that is approved"
        assert err.details == {"from_state": "approved", "transition": "reject"}

    def test_state_checked_before_actor(self, parties):
        machine = self._machine(parties, ApprovalState.REJECTED)
        with pytest.raises(TransitionError):
            machine.validate(ApprovalTransition.APPROVE, actor_id=parties["stranger"])

    def test_available_transitions(self, parties):
        machine = self._machine(parties)
        assert set(machine.get_available_transitions(parties["approver"])) == {
            ApprovalTransition.START_REVIEW,
            ApprovalTransition.APPROVE,
            ApprovalTransition.REJECT,
            ApprovalTransition.ESCALATE,
        }
        assert machine.get_available_transitions(parties["requester"]) == [ApprovalTransition.CANCEL]

    def test_history_and_callbacks(self, parties):
        machine = self._machine(parties)
        seen = []
        machine.register_callback(ApprovalTransition.START_REVIEW, seen.append)

        machine.transition(ApprovalTransition.START_REVIEW, actor_id=parties["approver"], comment="looking")
        machine.transition(ApprovalTransition.APPROVE, actor_id=parties["approver"])

        history = machine.get_history()
        assert [h["to_state"] for h in history] == ["in-review", "approved"]
        assert len(seen) == 1
        assert seen[0]["comment"] == "looking"

    def test_failing_callback_keeps_transition(self, parties):
        machine = self._machine(parties)

        def boom(record):
            raise RuntimeError("hook failed")

        machine.register_callback(ApprovalTransition.APPROVE, boom)
        machine.transition(ApprovalTransition.APPROVE, actor_id=parties["approver"])
        assert machine.state == ApprovalState.APPROVED
