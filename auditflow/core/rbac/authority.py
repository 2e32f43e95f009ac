"""Authority resolution for creating and reassigning principals and entities.

A requester may only grant strictly subordinate roles, never a broader scope
than their own, and only inside their own organisational anchor. Tier-1 roles
(superAdmin, sysadmin, admin) bypass every check.

Both validators are pure: they look only at the values passed in and raise
``AuthorizationError`` with a user-facing reason on the first violation.
Unknown role or scope strings are rejected rather than ranked.
"""

from typing import Any, NamedTuple, Optional

from auditflow.core.errors import AuthorizationError, ValidationError
from .roles import AUTHORITY_TIERS, OVERRIDE_TIER, SCOPE_WEIGHTS, Role, ScopeLevel


class Principal(NamedTuple):
    """Role and scope of an actor or of the user being created.

    ``User`` rows expose the same attribute names and can be passed directly.
    """
    role: str
    scope_level: str
    assigned_group_id: Optional[Any] = None
    assigned_company_id: Optional[Any] = None
    assigned_site_id: Optional[Any] = None

    @classmethod
    def of(cls, user) -> "Principal":
        return cls(
            role=user.role,
            scope_level=user.scope_level,
            assigned_group_id=user.assigned_group_id,
            assigned_company_id=user.assigned_company_id,
            assigned_site_id=user.assigned_site_id,
        )


class EntityAnchor(NamedTuple):
    """Where a new Company or Site would be attached."""
    group_id: Optional[Any] = None
    company_id: Optional[Any] = None


def role_tier(role: str) -> int:
    try:
        return AUTHORITY_TIERS[Role(role)]
    except ValueError:
        raise AuthorizationError(f"Unknown role: {role}")


def scope_weight(scope_level: str) -> int:
    try:
        return SCOPE_WEIGHTS[ScopeLevel(scope_level)]
    except ValueError:
        raise AuthorizationError(f"Unknown scope level: {scope_level}")


def is_override(role: str) -> bool:
    """True for tier-1 roles. Never raises, so garbage input is simply False."""
    try:
        return AUTHORITY_TIERS[Role(role)] == OVERRIDE_TIER
    except ValueError:
        return False


def _differs(target_id: Any, requester_id: Any) -> bool:
    # Only a provided target anchor is compared
    if not target_id:
        return False
    return str(target_id) != str(requester_id) if requester_id is not None else True


def validate_authority(requester, target) -> None:
    """Check that ``requester`` may create or reassign a user shaped like ``target``.

    Raises:
        AuthorizationError: on tier, scope or anchor violations
    """
    if is_override(requester.role):
        return

    requester_tier = role_tier(requester.role)
    target_tier = role_tier(target.role)
    if target_tier <= requester_tier:
        raise AuthorizationError(
            f"A {requester.role} cannot create a user with the role {target.role} (Peer or Higher)."
        )

    if scope_weight(target.scope_level) > scope_weight(requester.scope_level):
        raise AuthorizationError(
            f"A {requester.scope_level}-level user cannot create a {target.scope_level}-level user."
        )

    if requester.role == Role.GROUP_ADMIN:
        if _differs(target.assigned_group_id, requester.assigned_group_id):
            raise AuthorizationError("You can only manage resources within your own group.")

    elif requester.role == Role.COMPANY_ADMIN:
        if _differs(target.assigned_company_id, requester.assigned_company_id):
            raise AuthorizationError("You can only manage resources within your own company.")
        if _differs(target.assigned_group_id, requester.assigned_group_id):
            raise AuthorizationError("Cross-group management is strictly prohibited.")


def validate_entity_creation(requester, entity_type: str, anchor: EntityAnchor) -> None:
    """Check that ``requester`` may create a Company or Site at ``anchor``.

    Raises:
        AuthorizationError: when the role may not create the entity or the
            anchor lies outside the requester's own group/company
        ValidationError: for an entity type other than "company" or "site"
    """
    if is_override(requester.role):
        return

    if entity_type == "company":
        if requester.role != Role.GROUP_ADMIN:
            raise AuthorizationError("Only Group Admins can create companies.")
        if _differs(anchor.group_id, requester.assigned_group_id):
            raise AuthorizationError("You can only create companies within your own group.")

    elif entity_type == "site":
        if requester.role not in (Role.GROUP_ADMIN, Role.COMPANY_ADMIN):
            raise AuthorizationError("Only Group or Company Admins can create sites.")
        if requester.role == Role.COMPANY_ADMIN:
            if _differs(anchor.company_id, requester.assigned_company_id):
                raise AuthorizationError("You can only create sites within your own company.")
        else:
            if _differs(anchor.group_id, requester.assigned_group_id):
                raise AuthorizationError(
                    "You can only create sites for companies within your own group."
                )

    else:
        raise ValidationError(f"Unsupported entity type: {entity_type}")
