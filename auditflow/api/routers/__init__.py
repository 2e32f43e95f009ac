"""API routers for AuditFlow."""

from . import auth
from . import users
from . import groups
from . import companies
from . import sites
from . import schedules
from . import audit_sessions
from . import approvals
from . import health

__all__ = [
    "auth",
    "users",
    "groups",
    "companies",
    "sites",
    "schedules",
    "audit_sessions",
    "approvals",
    "health",
]
