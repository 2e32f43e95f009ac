"""Role catalogue for AuditFlow.

Each role carries an authority tier (1 is the highest) used by the authority
resolver, and a coarse permission set used to protect routes. Principals are
also bound to a scope level whose weight bounds the reach they can grant.
"""

from enum import Enum
from typing import Dict, List
from .permissions import READONLY_ACTIONS, Resource, Action, Permission


class Role(str, Enum):
    SUPER_ADMIN = "superAdmin"
    SYSADMIN = "sysadmin"
    ADMIN = "admin"
    GROUP_ADMIN = "groupAdmin"
    COMPANY_ADMIN = "companyAdmin"
    MANAGER = "manager"
    COMPLIANCE_OFFICER = "complianceOfficer"
    SITE_MANAGER = "siteManager"
    AUDITOR = "auditor"
    PROBLEM_OWNER = "problemOwner"
    APPROVER = "approver"


class ScopeLevel(str, Enum):
    SYSTEM = "system"
    GROUP = "group"
    COMPANY = "company"
    SITE = "site"


AUTHORITY_TIERS: Dict[Role, int] = {
    Role.SUPER_ADMIN: 1,
    Role.SYSADMIN: 1,
    Role.ADMIN: 1,
    Role.GROUP_ADMIN: 2,
    Role.COMPANY_ADMIN: 3,
    Role.MANAGER: 3,
    Role.COMPLIANCE_OFFICER: 4,
    Role.SITE_MANAGER: 5,
    Role.AUDITOR: 5,
    Role.PROBLEM_OWNER: 6,
    Role.APPROVER: 6,
}

SCOPE_WEIGHTS: Dict[ScopeLevel, int] = {
    ScopeLevel.SYSTEM: 100,
    ScopeLevel.GROUP: 75,
    ScopeLevel.COMPANY: 50,
    ScopeLevel.SITE: 25,
}

OVERRIDE_TIER = 1


def _build_permissions(*perms: tuple) -> List[str]:
    """Build permission strings from (Resource, Action) tuples."""
    return [str(Permission(r, a)) for r, a in perms]


def _read(*resources: Resource) -> List[tuple]:
    return [(r, a) for r in resources for a in sorted(READONLY_ACTIONS)]


ADMIN_PERMISSIONS = ["*:*"]

GROUP_ADMIN_PERMISSIONS = [
    "companies:*",
    "sites:*",
    "users:*",
    "templates:*",
    "schedules:*",
    "audit_sessions:*",
    "approvals:*",
] + _build_permissions(*_read(Resource.GROUPS, Resource.REPORTS))

COMPANY_ADMIN_PERMISSIONS = [
    "sites:*",
    "users:*",
    "templates:*",
    "schedules:*",
    "audit_sessions:*",
    "approvals:*",
] + _build_permissions(*_read(Resource.COMPANIES, Resource.REPORTS))

MANAGER_PERMISSIONS = [
    "schedules:*",
    "audit_sessions:*",
    "approvals:*",
] + _build_permissions(
    *_read(Resource.COMPANIES, Resource.SITES, Resource.USERS, Resource.TEMPLATES, Resource.REPORTS),
    (Resource.USERS, Action.CREATE),
)

COMPLIANCE_OFFICER_PERMISSIONS = ["approvals:*"] + _build_permissions(
    *_read(Resource.COMPANIES, Resource.SITES, Resource.SCHEDULES, Resource.AUDIT_SESSIONS, Resource.REPORTS),
    (Resource.AUDIT_SESSIONS, Action.UPDATE),
    (Resource.USERS, Action.CREATE),
    (Resource.USERS, Action.LIST),
)

SITE_MANAGER_PERMISSIONS = _build_permissions(
    *_read(Resource.SITES, Resource.USERS, Resource.SCHEDULES, Resource.AUDIT_SESSIONS, Resource.APPROVALS),
    (Resource.USERS, Action.CREATE),
    (Resource.SCHEDULES, Action.CREATE),
    (Resource.SCHEDULES, Action.EXECUTE),
    (Resource.AUDIT_SESSIONS, Action.UPDATE),
    (Resource.APPROVALS, Action.CREATE),
    (Resource.APPROVALS, Action.APPROVE),
    (Resource.APPROVALS, Action.REJECT),
    (Resource.APPROVALS, Action.ESCALATE),
)

AUDITOR_PERMISSIONS = _build_permissions(
    *_read(Resource.SITES, Resource.SCHEDULES, Resource.AUDIT_SESSIONS, Resource.APPROVALS, Resource.TEMPLATES),
    (Resource.SCHEDULES, Action.EXECUTE),
    (Resource.AUDIT_SESSIONS, Action.UPDATE),
    (Resource.APPROVALS, Action.CREATE),
    (Resource.REPORTS, Action.CREATE),
)

PROBLEM_OWNER_PERMISSIONS = _build_permissions(
    *_read(Resource.AUDIT_SESSIONS, Resource.APPROVALS),
    (Resource.APPROVALS, Action.CREATE),
)

APPROVER_PERMISSIONS = _build_permissions(
    *_read(Resource.AUDIT_SESSIONS, Resource.APPROVALS, Resource.REPORTS),
    (Resource.APPROVALS, Action.CREATE),
    (Resource.APPROVALS, Action.APPROVE),
    (Resource.APPROVALS, Action.REJECT),
    (Resource.APPROVALS, Action.ESCALATE),
)


ROLE_PERMISSIONS: Dict[Role, List[str]] = {
    Role.SUPER_ADMIN: ADMIN_PERMISSIONS,
    Role.SYSADMIN: ADMIN_PERMISSIONS,
    Role.ADMIN: ADMIN_PERMISSIONS,
    Role.GROUP_ADMIN: GROUP_ADMIN_PERMISSIONS,
    Role.COMPANY_ADMIN: COMPANY_ADMIN_PERMISSIONS,
    Role.MANAGER: MANAGER_PERMISSIONS,
    Role.COMPLIANCE_OFFICER: COMPLIANCE_OFFICER_PERMISSIONS,
    Role.SITE_MANAGER: SITE_MANAGER_PERMISSIONS,
    Role.AUDITOR: AUDITOR_PERMISSIONS,
    Role.PROBLEM_OWNER: PROBLEM_OWNER_PERMISSIONS,
    Role.APPROVER: APPROVER_PERMISSIONS,
}


def get_role_permissions(role: str) -> List[str]:
    """Permission strings for a role value; empty for unknown roles."""
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return []
