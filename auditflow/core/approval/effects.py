"""Entity-status propagation for decided approvals.

Each approvable entity type maps to an ``EntityHandler``. On approve the
entity becomes ``active``, on reject ``inactive``; handlers may add a hook for
type-specific follow-up (a verified FixAction resolves its Problem).

The update runs in a SAVEPOINT inside the caller's transaction. A failure
rolls back only the savepoint and is logged; it never reaches the caller.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional

from sqlalchemy.orm import Session

from auditflow.core.errors import IntegrityWarning, ValidationError
from auditflow.db.models import AuditSession, FixAction, Problem, Report, Schedule, Template

logger = logging.getLogger(__name__)


class ApprovalEntityType(str, Enum):
    REPORT = "Report"
    PROBLEM = "Problem"
    FIX_ACTION = "FixAction"
    AUDIT_SESSION = "AuditSession"
    TEMPLATE = "Template"
    SCHEDULE = "Schedule"


DECISION_STATUSES = {
    "approved": "active",
    "rejected": "inactive",
}


class EntityHandler(NamedTuple):
    model: type
    on_decision: Optional[Callable[[Session, Any, str, Any], None]] = None


def _fix_action_decided(db: Session, fix_action: FixAction, outcome: str, actor_id: Any) -> None:
    problem = fix_action.problem
    if outcome == "approved":
        fix_action.verified_by_id = actor_id
        fix_action.verified_at = datetime.utcnow()
        fix_action.verification_result = "Effective"
        fix_action.action_status = "Verified"
        if problem is not None:
            problem.problem_status = "Resolved"
    elif outcome == "rejected" and problem is not None:
        problem.problem_status = "Open"


ENTITY_HANDLERS: Dict[str, EntityHandler] = {
    ApprovalEntityType.REPORT.value: EntityHandler(Report),
    ApprovalEntityType.PROBLEM.value: EntityHandler(Problem),
    ApprovalEntityType.FIX_ACTION.value: EntityHandler(FixAction, _fix_action_decided),
    ApprovalEntityType.AUDIT_SESSION.value: EntityHandler(AuditSession),
    ApprovalEntityType.TEMPLATE.value: EntityHandler(Template),
    ApprovalEntityType.SCHEDULE.value: EntityHandler(Schedule),
}


def resolve_entity_type(value: str) -> ApprovalEntityType:
    try:
        return ApprovalEntityType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in ApprovalEntityType)
        raise ValidationError(f"Invalid entity type: {value}. Expected one of: {allowed}")


class EntityStatusPropagator:
    """Applies decision outcomes to the approval's subject entity."""

    def __init__(self, db: Session, handlers: Optional[Dict[str, EntityHandler]] = None):
        self.db = db
        self.handlers = ENTITY_HANDLERS if handlers is None else handlers

    def fetch(self, entity_type: str, entity_id: Any):
        handler = self.handlers.get(entity_type)
        if handler is None:
            return None
        return self.db.get(handler.model, entity_id)

    def set_entity_status(
        self,
        entity_type: str,
        entity_id: Any,
        status: str,
        *,
        outcome: Optional[str] = None,
        actor_id: Any = None,
    ) -> bool:
        """
        Best-effort status update. Returns True when the update was applied.

        Safe to repeat: setting the same status twice leaves the same row.
        """
        handler = self.handlers.get(entity_type)
        if handler is None:
            logger.warning(f"No status handler for entity type {entity_type}; skipping {entity_id}")
            return False

        try:
            with self.db.begin_nested():
                entity = self.db.get(handler.model, entity_id)
                if entity is None:
                    logger.warning(
                        f"{IntegrityWarning.__name__}: {entity_type} {entity_id} vanished "
                        f"before status {status} could be applied"
                    )
                    return False
                entity.status = status
                entity.updated_by_id = actor_id
                self.db.flush()
                if handler.on_decision and outcome:
                    handler.on_decision(self.db, entity, outcome, actor_id)
        except Exception as e:
            logger.warning(
                f"{IntegrityWarning.__name__}: failed to set {entity_type} {entity_id} "
                f"status to {status}: {e}"
            )
            return False

        logger.debug(f"{entity_type} {entity_id} status -> {status}")
        return True
