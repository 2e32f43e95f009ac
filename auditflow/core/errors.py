"""Exception hierarchy shared by the services and the HTTP layer.

Services raise these types; the API registers a single handler for
``AppError`` that renders ``{"error": code, "detail": message, ...}`` with
the class' status code.

Usage:
    from auditflow.core.errors import NotFoundError, ValidationError

    raise NotFoundError("Approval", approval_id)
    raise ValidationError("Comments are required when rejecting a request")
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for operational errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.details}


class ValidationError(AppError):
    """Missing or malformed input. The caller can fix the request."""

    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    """A referenced record does not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class AuthorizationError(AppError):
    """The principal lacks the tier, scope or ownership for the action."""

    status_code = 403
    code = "forbidden"


class UnassignedScheduleError(AuthorizationError):
    """A schedule has no lead auditor, so nobody but an admin may act on it."""

    code = "schedule_unassigned"


class ClosedAuditError(AuthorizationError):
    """The audit session is locked or completed."""

    code = "audit_closed"


class ConflictError(AppError):
    """The request conflicts with the current state of a record."""

    status_code = 409
    code = "conflict"


class DuplicateApprovalError(ConflictError):
    code = "duplicate_pending_approval"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            "Pending approval already exists for this entity.",
            details={"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class UnmetRequirementsError(ConflictError):
    """Approval was attempted while checklist items are still open."""

    status_code = 400
    code = "unmet_requirements"

    def __init__(self, unmet_requirements: List[str]):
        self.unmet_requirements = list(unmet_requirements)
        super().__init__(
            "Cannot approve - requirements not completed",
            details={"unmet_requirements": self.unmet_requirements},
        )


class IntegrityWarning(UserWarning):
    """A side effect failed after the primary write succeeded.

    Only ever logged; never raised to a caller.
    """
