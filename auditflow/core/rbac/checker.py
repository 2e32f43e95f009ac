"""Route-level permission checks.

A role maps to a set of ``resource:action`` strings (see ``roles.py``).
These checks are the first gate on an endpoint; authority, scope and the
approval engine decide on the concrete record.
"""

from functools import wraps
from typing import Callable, Iterable, List, Union

from fastapi import HTTPException, status

from .permissions import Permission, Resource, Action
from .roles import get_role_permissions

PermissionLike = Union[str, Permission]


def _as_str(permission: PermissionLike) -> str:
    return str(permission) if isinstance(permission, Permission) else permission


class PermissionChecker:
    """Answers permission questions for one role's grant set."""

    def __init__(self, granted: Iterable[str]):
        self.permissions = frozenset(granted)

    @classmethod
    def for_role(cls, role: str) -> "PermissionChecker":
        return cls(get_role_permissions(role))

    def has_permission(self, permission: PermissionLike) -> bool:
        # Exact grant, then resource:* and *:* wildcards
        perm_str = _as_str(permission)
        resource, _, _ = perm_str.partition(":")
        return bool({perm_str, f"{resource}:*", "*:*"} & self.permissions)

    def has_any_permission(self, permissions: List[PermissionLike]) -> bool:
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[PermissionLike]) -> bool:
        return all(self.has_permission(p) for p in permissions)

    def can_access_resource(self, resource: Resource, action: Action) -> bool:
        return self.has_permission(Permission(resource, action))


def has_permission(user, permission: PermissionLike) -> bool:
    """True when ``user``'s role grants ``permission``; False for no user or role."""
    if not user or not user.role:
        return False
    return PermissionChecker.for_role(user.role).has_permission(permission)


def require_permission(*permissions: PermissionLike, require_all: bool = False):
    """
    Guard a FastAPI endpoint on the caller's role permissions.

    The endpoint must take ``current_user`` as a keyword dependency. One
    matching permission suffices unless ``require_all`` is set.

    Usage:
        @router.post("/companies")
        @require_permission("companies:create")
        async def create_company(..., current_user: User = Depends(get_current_user)):
            ...
    """
    required = [_as_str(p) for p in permissions]

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            current_user = kwargs.get("current_user")
            if not current_user:
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Authentication required",
                )

            checker = PermissionChecker.for_role(current_user.role)
            check = checker.has_all_permissions if require_all else checker.has_any_permission
            if not check(required):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Insufficient permissions. Required: {', '.join(required)}",
                )

            return await func(*args, **kwargs)

        return wrapper
    return decorator
