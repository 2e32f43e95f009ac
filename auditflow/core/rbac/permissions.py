"""Permission model for AuditFlow route protection.

Permissions are a matrix of actions × resources.

Permission string format: "resource:action"
Examples:
  - approvals:approve
  - companies:create
  - schedules:execute
"""

from enum import Enum
from typing import NamedTuple, FrozenSet


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    # Organisational hierarchy
    GROUPS = "groups"
    COMPANIES = "companies"
    SITES = "sites"
    USERS = "users"

    # Audit execution
    TEMPLATES = "templates"
    SCHEDULES = "schedules"
    AUDIT_SESSIONS = "audit_sessions"
    REPORTS = "reports"

    # Approval workflow
    APPROVALS = "approvals"

    SYSTEM = "system"


class Action(str, Enum):
    """Actions that can be performed on resources."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"

    APPROVE = "approve"
    REJECT = "reject"
    ESCALATE = "escalate"
    EXECUTE = "execute"           # Start an audit
    MANAGE = "manage"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @classmethod
    def from_string(cls, perm_str: str) -> "Permission":
        """Parse a permission string like 'approvals:read'."""
        parts = perm_str.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid permission format: {perm_str}")
        return cls(Resource(parts[0]), Action(parts[1]))


_CRUD = frozenset([Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE, Action.LIST])

PERMISSION_MATRIX: dict[Resource, FrozenSet[Action]] = {
    Resource.GROUPS: _CRUD,
    Resource.COMPANIES: _CRUD,
    Resource.SITES: _CRUD,
    Resource.USERS: _CRUD | {Action.MANAGE},
    Resource.TEMPLATES: _CRUD,
    Resource.SCHEDULES: _CRUD | {Action.EXECUTE},
    Resource.AUDIT_SESSIONS: _CRUD,
    Resource.REPORTS: frozenset([Action.CREATE, Action.READ, Action.LIST]),
    Resource.APPROVALS: frozenset([
        Action.CREATE, Action.READ, Action.UPDATE, Action.LIST,
        Action.APPROVE, Action.REJECT, Action.ESCALATE,
    ]),
    Resource.SYSTEM: frozenset([Action.READ, Action.MANAGE]),
}


def _generate_permission_definitions() -> dict[str, Permission]:
    permissions = {}
    for resource, actions in PERMISSION_MATRIX.items():
        for action in actions:
            perm = Permission(resource, action)
            permissions[str(perm)] = perm
    return permissions


# All valid permissions: "resource:action" -> Permission
PERMISSION_DEFINITIONS = _generate_permission_definitions()

READONLY_ACTIONS = frozenset([Action.READ, Action.LIST])


def is_valid_permission(perm_str: str) -> bool:
    """Check if a permission string is valid (wildcards included)."""
    if perm_str == "*:*":
        return True
    resource, _, action = perm_str.partition(":")
    if action == "*":
        return resource in {r.value for r in Resource}
    return perm_str in PERMISSION_DEFINITIONS


def get_permissions_for_resource(resource: Resource) -> list[str]:
    return sorted(
        str(Permission(resource, action))
        for action in PERMISSION_MATRIX.get(resource, set())
    )
