"""Approval service for managing approval workflows.

Provides the high-level API over the approval state machine: persistence,
requirement gating, review history and entity-status propagation.

Services flush but never commit; the caller owns the transaction.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from uuid import UUID
import uuid

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auditflow.core.errors import (
    AppError,
    AuthorizationError,
    ConflictError,
    DuplicateApprovalError,
    NotFoundError,
    UnmetRequirementsError,
    ValidationError,
)
from auditflow.core.rbac.roles import Role
from auditflow.db.models import Approval, ApprovalRequirement, ApprovalReview, User
from .effects import DECISION_STATUSES, EntityStatusPropagator, resolve_entity_type
from .machine import ApprovalStateMachine
from .states import (
    ApprovalState,
    ApprovalTransition,
    OPEN_STATES,
    OPEN_STATUS_VALUES,
    Priority,
    ReviewAction,
)

logger = logging.getLogger(__name__)


# Roles that also work the unassigned approval pool
POOL_ROLES = frozenset([Role.MANAGER.value, Role.ADMIN.value, Role.SYSADMIN.value])

DECISION_ACTIONS = {
    "approve": ApprovalTransition.APPROVE,
    "reject": ApprovalTransition.REJECT,
    "escalate": ApprovalTransition.ESCALATE,
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _str_id(value) -> Optional[str]:
    return str(value) if value else None


def _blank(value: Optional[str]) -> bool:
    return not (value and value.strip())


class ApprovalService:
    """
    High-level service for managing approvals.

    Handles:
    - Creating approvals (one open approval per entity)
    - Decisions: approve, reject, escalate
    - Review start, cancellation, requirement updates and comments
    - Queries and batch decisions
    """

    def __init__(
        self,
        db: Session,
        *,
        propagator: Optional[EntityStatusPropagator] = None,
        default_priority: str = Priority.MEDIUM.value,
        sla_warning_hours: int = 24,
    ):
        self.db = db
        self.propagator = propagator or EntityStatusPropagator(db)
        self.default_priority = default_priority
        self.sla_warning_hours = sla_warning_hours

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create_approval(
        self,
        entity_type: str,
        entity_id: UUID,
        title: str,
        description: str,
        *,
        requested_by: UUID,
        approver_id: Optional[UUID] = None,
        priority: Optional[str] = None,
        deadline: Optional[datetime] = None,
        requirements: Optional[List[Any]] = None,
    ) -> Dict[str, Any]:
        """
        Submit an entity for approval.

        ``requirements`` items are descriptions or ``{"description", "completed"}``
        mappings.

        Raises:
            ValidationError: missing fields, unknown entity type or priority
            NotFoundError: the entity or approver does not exist
            DuplicateApprovalError: an open approval already targets the entity
        """
        if _blank(title) or _blank(description) or not entity_id or not requested_by:
            raise ValidationError(
                "Entity type, entity ID, title, description and requester are required"
            )
        entity_type = resolve_entity_type(entity_type).value
        priority = self._resolve_priority(priority or self.default_priority)

        if self.propagator.fetch(entity_type, entity_id) is None:
            raise NotFoundError(entity_type, entity_id)
        if approver_id is not None and self.db.get(User, approver_id) is None:
            raise NotFoundError("Approver", approver_id)

        if self._find_open(entity_type, entity_id) is not None:
            raise DuplicateApprovalError(entity_type, entity_id)

        now = datetime.utcnow()
        approval = Approval(
            id=uuid.uuid4(),
            entity_type=entity_type,
            entity_id=entity_id,
            title=title.strip(),
            description=description.strip(),
            approval_status=ApprovalState.PENDING.value,
            priority=priority,
            approver_id=approver_id,
            requested_by_id=requested_by,
            requested_at=now,
            deadline=deadline,
        )
        for position, item in enumerate(requirements or []):
            approval.requirements.append(self._build_requirement(position, item, requested_by, now))
        approval.refresh_sla_status(self.sla_warning_hours, now=now)
        self._append_review(approval, requested_by, ReviewAction.SUBMITTED, "Approval request submitted")

        try:
            with self.db.begin_nested():
                self.db.add(approval)
                self.db.flush()
        except IntegrityError:
            # Lost a race against a concurrent submission
            raise DuplicateApprovalError(entity_type, entity_id)

        logger.info(
            f"Approval {approval.id} submitted for {entity_type} {entity_id} by {requested_by}"
        )
        return self._approval_to_dict(approval)

    def get_approval(self, approval_id: UUID) -> Dict[str, Any]:
        return self._approval_to_dict(self._load(approval_id))

    def history(self, approval_id: UUID) -> List[Dict[str, Any]]:
        approval = self._load(approval_id)
        return [self._review_to_dict(r) for r in approval.reviews]

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def decide(
        self,
        approval_id: UUID,
        actor_id: UUID,
        action: str,
        comments: Optional[str] = None,
        *,
        escalated_to: Optional[UUID] = None,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Approve, reject or escalate an approval as ``actor_id``.

        Only the currently bound approver may decide. Approving requires every
        requirement to be completed; rejecting requires comments; escalating
        requires the new approver and a reason.

        Raises:
            ValidationError, NotFoundError, PermissionDeniedError,
            UnmetRequirementsError, TransitionError
        """
        transition = DECISION_ACTIONS.get(action)
        if transition is None:
            raise ValidationError(f"Invalid action: {action}. Expected approve, reject or escalate")
        if transition == ApprovalTransition.ESCALATE and (not escalated_to or _blank(reason)):
            raise ValidationError("Escalated to user and reason are required")

        approval = self._load(approval_id, lock=True)
        machine = self._machine(approval)
        machine.validate(transition, actor_id=actor_id, comment=comments)

        if transition == ApprovalTransition.APPROVE:
            unmet = approval.unmet_requirements
            if unmet:
                raise UnmetRequirementsError(unmet)
        elif transition == ApprovalTransition.ESCALATE:
            if self.db.get(User, escalated_to) is None:
                raise NotFoundError("User", escalated_to)

        rule = machine.transition(transition, actor_id=actor_id, comment=comments)
        now = datetime.utcnow()

        approval.approval_status = rule.to_state.value
        approval.decision = rule.to_state.value
        approval.decision_by_id = actor_id
        approval.decision_at = now

        if transition == ApprovalTransition.ESCALATE:
            approval.decision_comments = comments
            approval.escalation_reason = reason.strip()
            approval.escalated_to_id = escalated_to
            approval.approver_id = escalated_to
            history_comment = f"Escalated to new approver. Reason: {reason.strip()}. {comments or ''}".strip()
        else:
            approval.escalation_reason = None
            approval.escalated_to_id = None
            approval.responded_at = now
            if transition == ApprovalTransition.APPROVE:
                approval.decision_comments = comments or "Approved"
                history_comment = comments or "Request approved"
            else:
                approval.decision_comments = comments
                history_comment = comments

        approval.updated_at = now
        approval.refresh_sla_status(self.sla_warning_hours, now=now)
        self._append_review(approval, actor_id, rule.review_action, history_comment, now)
        self.db.flush()

        outcome = rule.to_state.value
        if outcome in DECISION_STATUSES:
            self.propagator.set_entity_status(
                approval.entity_type,
                approval.entity_id,
                DECISION_STATUSES[outcome],
                outcome=outcome,
                actor_id=actor_id,
            )

        return self._approval_to_dict(approval)

    def approve(self, approval_id: UUID, actor_id: UUID, comments: Optional[str] = None) -> Dict[str, Any]:
        return self.decide(approval_id, actor_id, "approve", comments)

    def reject(self, approval_id: UUID, actor_id: UUID, comments: Optional[str]) -> Dict[str, Any]:
        return self.decide(approval_id, actor_id, "reject", comments)

    def escalate(
        self,
        approval_id: UUID,
        actor_id: UUID,
        escalated_to: UUID,
        reason: str,
        comments: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.decide(
            approval_id, actor_id, "escalate", comments, escalated_to=escalated_to, reason=reason
        )

    def start_review(
        self,
        approval_id: UUID,
        actor: User,
        comments: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move a pending or escalated approval into review.

        An unassigned approval is claimed by a pool role (manager, admin,
        sysadmin) as part of starting the review.
        """
        approval = self._load(approval_id, lock=True)
        if approval.approver_id is None:
            if actor.role not in POOL_ROLES:
                raise AuthorizationError("You are not authorized to review this request")
            if ApprovalState(approval.approval_status) in OPEN_STATES:
                approval.approver_id = actor.id

        rule = self._machine(approval).transition(
            ApprovalTransition.START_REVIEW, actor_id=actor.id, comment=comments
        )
        approval.approval_status = rule.to_state.value
        approval.updated_at = datetime.utcnow()
        self._append_review(approval, actor.id, rule.review_action, comments or "Review started")
        self.db.flush()
        return self._approval_to_dict(approval)

    def cancel(self, approval_id: UUID, actor_id: UUID, comments: Optional[str] = None) -> Dict[str, Any]:
        """Withdraw an open approval. Only the requester may cancel."""
        approval = self._load(approval_id, lock=True)
        rule = self._machine(approval).transition(
            ApprovalTransition.CANCEL, actor_id=actor_id, comment=comments
        )
        now = datetime.utcnow()
        approval.approval_status = rule.to_state.value
        approval.responded_at = now
        approval.updated_at = now
        approval.refresh_sla_status(self.sla_warning_hours, now=now)
        self._append_review(approval, actor_id, rule.review_action, comments or "Request cancelled", now)
        self.db.flush()
        return self._approval_to_dict(approval)

    # ------------------------------------------------------------------
    # Requirements, comments and details
    # ------------------------------------------------------------------

    def update_requirement(
        self,
        approval_id: UUID,
        requirement_index: int,
        completed: bool,
        actor_id: UUID,
    ) -> Dict[str, Any]:
        """
        Mark the requirement at ``requirement_index`` complete or incomplete.

        Raises:
            NotFoundError: unknown approval
            ValidationError: index outside ``0 <= i < len(requirements)``
            ConflictError: the approval is already closed
        """
        approval = self._load(approval_id, lock=True)
        requirements = approval.requirements
        if requirement_index is None or requirement_index < 0 or requirement_index >= len(requirements):
            raise ValidationError(
                "Invalid requirement index",
                details={"requirement_index": requirement_index, "count": len(requirements)},
            )
        self._ensure_open(approval, "update requirements of")

        now = datetime.utcnow()
        requirement = requirements[requirement_index]
        requirement.completed = bool(completed)
        requirement.completed_at = now if completed else None
        requirement.completed_by_id = actor_id if completed else None

        approval.updated_at = now
        state = "completed" if completed else "incomplete"
        self._append_review(
            approval,
            actor_id,
            ReviewAction.UPDATED,
            f'Requirement "{requirement.description}" marked as {state}.',
            now,
        )
        self.db.flush()
        return self._approval_to_dict(approval)

    def add_comment(self, approval_id: UUID, actor_id: UUID, comments: str) -> Dict[str, Any]:
        if _blank(comments):
            raise ValidationError("Comments are required")
        approval = self._load(approval_id, lock=True)
        self._append_review(approval, actor_id, ReviewAction.COMMENTED, comments.strip())
        self.db.flush()
        return self._approval_to_dict(approval)

    def update_details(
        self,
        approval_id: UUID,
        actor_id: UUID,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        deadline: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Edit title, description, priority or deadline of an open approval."""
        approval = self._load(approval_id, lock=True)
        self._ensure_open(approval, "edit")

        if title is not None:
            if _blank(title):
                raise ValidationError("Title cannot be empty")
            approval.title = title.strip()
        if description is not None:
            if _blank(description):
                raise ValidationError("Description cannot be empty")
            approval.description = description.strip()
        if priority is not None:
            approval.priority = self._resolve_priority(priority)
        if deadline is not None:
            approval.deadline = deadline

        now = datetime.utcnow()
        approval.updated_at = now
        approval.refresh_sla_status(self.sla_warning_hours, now=now)
        self._append_review(
            approval, actor_id, ReviewAction.UPDATED, "Approval request basic details updated", now
        )
        self.db.flush()
        return self._approval_to_dict(approval)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_approvals(
        self,
        *,
        approval_status: Optional[str] = None,
        priority: Optional[str] = None,
        entity_type: Optional[str] = None,
        approver_id: Optional[UUID] = None,
        requested_by_id: Optional[UUID] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """List approvals, newest first. Returns ``{"items", "total"}``."""
        query = self.db.query(Approval)

        if approval_status:
            query = query.filter(Approval.approval_status == approval_status)
        if priority:
            query = query.filter(Approval.priority == priority)
        if entity_type:
            query = query.filter(Approval.entity_type == entity_type)
        if approver_id:
            query = query.filter(Approval.approver_id == approver_id)
        if requested_by_id:
            query = query.filter(Approval.requested_by_id == requested_by_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(Approval.title.ilike(pattern), Approval.description.ilike(pattern))
            )

        total = query.count()
        approvals = (
            query.order_by(Approval.created_at.desc(), Approval.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"items": [self._approval_to_dict(a) for a in approvals], "total": total}

    def list_for_approver(
        self,
        user: User,
        *,
        approval_status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Approvals assigned to ``user``; pool roles also see unassigned ones."""
        if user.role in POOL_ROLES:
            assigned = or_(Approval.approver_id == user.id, Approval.approver_id.is_(None))
        else:
            assigned = Approval.approver_id == user.id

        query = self.db.query(Approval).filter(assigned)
        if approval_status:
            query = query.filter(Approval.approval_status == approval_status)

        approvals = query.order_by(Approval.created_at.desc(), Approval.id).all()
        return [self._approval_to_dict(a) for a in approvals]

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def batch_decide(
        self,
        approval_ids: List[UUID],
        action: str,
        *,
        actor_id: UUID,
        comments: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Approve or reject many approvals; each item succeeds or fails alone.

        Returns:
            ``{"approved"|"rejected": [ids], "failed": [{"id", "error", ...}]}``
        """
        if action not in ("approve", "reject"):
            raise ValidationError("Batch action must be approve or reject")
        if not approval_ids:
            raise ValidationError("Approval IDs array is required")
        if action == "reject" and _blank(comments):
            raise ValidationError("Comments are required when rejecting a request")

        done_key = "approved" if action == "approve" else "rejected"
        results = {done_key: [], "failed": []}

        for approval_id in approval_ids:
            try:
                with self.db.begin_nested():
                    self.decide(approval_id, actor_id, action, comments)
                results[done_key].append(str(approval_id))
            except AppError as e:
                failure = {"id": str(approval_id), "error": e.message}
                if isinstance(e, UnmetRequirementsError):
                    failure["unmet_requirements"] = e.unmet_requirements
                results["failed"].append(failure)

        logger.info(
            f"Batch {action} by {actor_id}: "
            f"{len(results[done_key])} succeeded, {len(results['failed'])} failed"
        )
        return results

    def batch_approve(self, approval_ids: List[UUID], *, actor_id: UUID, comments: Optional[str] = None):
        return self.batch_decide(approval_ids, "approve", actor_id=actor_id, comments=comments)

    def batch_reject(self, approval_ids: List[UUID], *, actor_id: UUID, comments: str):
        return self.batch_decide(approval_ids, "reject", actor_id=actor_id, comments=comments)

    def refresh_sla_statuses(self) -> int:
        """Recompute sla_status on every open approval with a deadline."""
        open_approvals = self.db.query(Approval).filter(
            and_(
                Approval.approval_status.in_(OPEN_STATUS_VALUES),
                Approval.deadline.isnot(None),
            )
        ).all()

        now = datetime.utcnow()
        changed = 0
        for approval in open_approvals:
            before = approval.sla_status
            if approval.refresh_sla_status(self.sla_warning_hours, now=now) != before:
                changed += 1

        self.db.flush()
        return changed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, approval_id: UUID, *, lock: bool = False) -> Approval:
        if not isinstance(approval_id, UUID):
            try:
                approval_id = UUID(str(approval_id))
            except ValueError:
                raise NotFoundError("Approval", approval_id)
        query = self.db.query(Approval).filter(Approval.id == approval_id)
        if lock:
            query = query.with_for_update()
        approval = query.first()
        if approval is None:
            raise NotFoundError("Approval", approval_id)
        return approval

    def _find_open(self, entity_type: str, entity_id: UUID) -> Optional[Approval]:
        return self.db.query(Approval).filter(
            and_(
                Approval.entity_type == entity_type,
                Approval.entity_id == entity_id,
                Approval.approval_status.in_(OPEN_STATUS_VALUES),
            )
        ).first()

    def _machine(self, approval: Approval) -> ApprovalStateMachine:
        return ApprovalStateMachine(
            approval.id,
            ApprovalState(approval.approval_status),
            approver_id=approval.approver_id,
            requested_by_id=approval.requested_by_id,
        )

    def _ensure_open(self, approval: Approval, verb: str) -> None:
        if not approval.is_open:
            raise ConflictError(
                f"Cannot {verb} an approval that is {approval.approval_status}"
            )

    def _resolve_priority(self, priority: str) -> str:
        try:
            return Priority(priority).value
        except ValueError:
            raise ValidationError(f"Invalid priority: {priority}")

    def _build_requirement(self, position: int, item: Any, actor_id: UUID, now: datetime) -> ApprovalRequirement:
        if isinstance(item, str):
            description, completed = item, False
        else:
            description, completed = item.get("description"), bool(item.get("completed", False))
        if _blank(description):
            raise ValidationError("Requirement description is required")
        return ApprovalRequirement(
            id=uuid.uuid4(),
            position=position,
            description=description.strip(),
            completed=completed,
            completed_at=now if completed else None,
            completed_by_id=actor_id if completed else None,
        )

    def _append_review(
        self,
        approval: Approval,
        actor_id: Optional[UUID],
        action: ReviewAction,
        comments: Optional[str],
        at: Optional[datetime] = None,
    ) -> ApprovalReview:
        review = ApprovalReview(
            id=uuid.uuid4(),
            sequence=len(approval.reviews) + 1,
            reviewed_by_id=actor_id,
            reviewed_at=at or datetime.utcnow(),
            action=action.value,
            comments=comments,
        )
        approval.reviews.append(review)
        return review

    def _review_to_dict(self, review: ApprovalReview) -> Dict[str, Any]:
        return {
            "sequence": review.sequence,
            "reviewed_by": _str_id(review.reviewed_by_id),
            "reviewed_at": _iso(review.reviewed_at),
            "action": review.action,
            "comments": review.comments,
        }

    def _approval_to_dict(self, approval: Approval) -> Dict[str, Any]:
        """Convert an Approval model to dictionary."""
        decision = None
        if approval.decision:
            decision = {
                "decision": approval.decision,
                "decision_by": _str_id(approval.decision_by_id),
                "decision_at": _iso(approval.decision_at),
                "comments": approval.decision_comments,
                "escalation_reason": approval.escalation_reason,
                "escalated_to": _str_id(approval.escalated_to_id),
            }

        return {
            "id": str(approval.id),
            "entity_type": approval.entity_type,
            "entity_id": str(approval.entity_id),
            "title": approval.title,
            "description": approval.description,
            "approval_status": approval.approval_status,
            "priority": approval.priority,
            "approver": _str_id(approval.approver_id),
            "requested_by": _str_id(approval.requested_by_id),
            "decision": decision,
            "timeline": {
                "requested_at": _iso(approval.requested_at),
                "deadline": _iso(approval.deadline),
                "responded_at": _iso(approval.responded_at),
                "sla_status": approval.sla_status,
                "is_overdue": approval.is_overdue(),
            },
            "requirements": [
                {
                    "id": str(r.id),
                    "position": r.position,
                    "description": r.description,
                    "completed": r.completed,
                    "completed_at": _iso(r.completed_at),
                    "completed_by": _str_id(r.completed_by_id),
                }
                for r in approval.requirements
            ],
            "review_history": [self._review_to_dict(r) for r in approval.reviews],
            "notification": {
                "sent": approval.notification_sent,
                "reminder_count": approval.reminder_count,
                "last_reminder_at": _iso(approval.last_reminder_at),
            },
            "created_at": _iso(approval.created_at),
            "updated_at": _iso(approval.updated_at),
        }
