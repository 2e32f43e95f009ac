"""Lead-auditor and closed-audit gates.

Both compose with the route permissions: they run after authentication and
decide on a single Schedule or AuditSession.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from auditflow.core.errors import (
    AuthorizationError,
    ClosedAuditError,
    NotFoundError,
    UnassignedScheduleError,
)
from auditflow.db.models import AuditSession, Schedule
from .roles import Role

logger = logging.getLogger(__name__)


LEAD_AUDITOR_OVERRIDE_ROLES = frozenset([Role.ADMIN.value, Role.SYSADMIN.value])

CLOSED_AUDIT_OVERRIDE_ROLES = frozenset([
    Role.ADMIN.value,
    Role.SYSADMIN.value,
    Role.SUPER_ADMIN.value,
    Role.COMPLIANCE_OFFICER.value,
])

MUTATING_METHODS = frozenset(["PUT", "PATCH", "DELETE"])


def check_lead_auditor(schedule: Optional[Schedule], user) -> None:
    """
    Only the schedule's assigned lead auditor (or an admin) may act on it.

    Raises:
        NotFoundError: schedule is None
        UnassignedScheduleError: the schedule has nobody assigned
        AuthorizationError: the user is not the assigned lead auditor
    """
    if user.role in LEAD_AUDITOR_OVERRIDE_ROLES:
        return
    if schedule is None:
        raise NotFoundError("Schedule")
    if schedule.assigned_user_id is None:
        raise UnassignedScheduleError(
            "This schedule has no assigned lead auditor. Please assign one first."
        )
    if str(schedule.assigned_user_id) != str(user.id):
        raise AuthorizationError("Only the assigned lead auditor can start this audit.")


def authorize_lead_auditor(db: Session, schedule_id, user) -> Optional[Schedule]:
    """Load the schedule and apply ``check_lead_auditor``.

    Admin overrides skip the lookup entirely, so None may be returned for them.
    """
    if user.role in LEAD_AUDITOR_OVERRIDE_ROLES:
        return db.get(Schedule, schedule_id)
    schedule = db.get(Schedule, schedule_id)
    check_lead_auditor(schedule, user)
    return schedule


def protect_closed_audit(session: Optional[AuditSession], user, method: str) -> None:
    """
    Block mutations of a locked or completed audit session.

    Read methods and a missing session pass through; the handler reports its
    own 404.
    """
    if method.upper() not in MUTATING_METHODS or session is None:
        return
    if not session.is_closed:
        return
    if user.role in CLOSED_AUDIT_OVERRIDE_ROLES:
        logger.warning(
            f"Closed audit override: user={user.id} role={user.role} "
            f"session={session.id} method={method.upper()}"
        )
        return
    raise ClosedAuditError(
        "This audit is closed and cannot be modified. "
        "Contact an administrator if changes are required."
    )
