"""Access control for AuditFlow.

Role tiers and scope weights, the authority resolver, scope filters, route
permissions and the lead-auditor / closed-audit gates.
"""

from .permissions import Permission, Resource, Action, PERMISSION_DEFINITIONS
from .roles import Role, ScopeLevel, AUTHORITY_TIERS, SCOPE_WEIGHTS, ROLE_PERMISSIONS
from .checker import PermissionChecker, has_permission, require_permission
from .authority import (
    Principal,
    EntityAnchor,
    validate_authority,
    validate_entity_creation,
)
from .scope import ScopeFilter, compute_scope_filter
from .guards import authorize_lead_auditor, check_lead_auditor, protect_closed_audit

__all__ = [
    "Permission",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "Role",
    "ScopeLevel",
    "AUTHORITY_TIERS",
    "SCOPE_WEIGHTS",
    "ROLE_PERMISSIONS",
    "PermissionChecker",
    "has_permission",
    "require_permission",
    "Principal",
    "EntityAnchor",
    "validate_authority",
    "validate_entity_creation",
    "ScopeFilter",
    "compute_scope_filter",
    "authorize_lead_auditor",
    "check_lead_auditor",
    "protect_closed_audit",
]
