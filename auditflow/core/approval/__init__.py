"""Approval workflow module for AuditFlow.

Implements the approval state machine, entity-status propagation and the
approval service.
"""

from .states import ApprovalState, ApprovalTransition, ReviewAction, VALID_TRANSITIONS
from .machine import ApprovalStateMachine, TransitionError, PermissionDeniedError
from .effects import ApprovalEntityType, EntityHandler, EntityStatusPropagator
from .service import ApprovalService

__all__ = [
    "ApprovalState",
    "ApprovalTransition",
    "ReviewAction",
    "VALID_TRANSITIONS",
    "ApprovalStateMachine",
    "TransitionError",
    "PermissionDeniedError",
    "ApprovalEntityType",
    "EntityHandler",
    "EntityStatusPropagator",
    "ApprovalService",
]
