"""User management endpoints.

Creation and reassignment go through the authority resolver; listings are
limited to the caller's scope.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user, get_scope_filter
from auditflow.api.schemas.auth import UserCreate, UserUpdate, UserResponse
from auditflow.api.schemas.common import ERROR_RESPONSES, Page, PaginatedResponse
from auditflow.core.errors import ConflictError, NotFoundError, ValidationError
from auditflow.core.rbac import (
    Principal,
    Role,
    ScopeFilter,
    ScopeLevel,
    require_permission,
    validate_authority,
)
from auditflow.core.security import get_password_hash
from auditflow.db.models import Company, Group, Site, User

router = APIRouter(prefix="/users", tags=["users"], responses=ERROR_RESPONSES)


def _check_role_and_scope(role: str, scope_level: str) -> None:
    try:
        Role(role)
    except ValueError:
        raise ValidationError(f"Invalid role: {role}")
    try:
        ScopeLevel(scope_level)
    except ValueError:
        raise ValidationError(f"Invalid scope level: {scope_level}")


def _check_anchors_exist(db: Session, principal: Principal) -> None:
    for model, value in (
        (Group, principal.assigned_group_id),
        (Company, principal.assigned_company_id),
        (Site, principal.assigned_site_id),
    ):
        if value is not None and db.get(model, value) is None:
            raise NotFoundError(model.__name__, value)


def _visible_user(db: Session, user_id: UUID, scope: ScopeFilter) -> User:
    user = db.get(User, user_id)
    if user is None or not scope.allows(
        group_id=user.assigned_group_id,
        company_id=user.assigned_company_id,
        site_id=user.assigned_site_id,
    ):
        raise NotFoundError("User", user_id)
    return user


@router.get("", response_model=PaginatedResponse[UserResponse])
@require_permission("users:list")
async def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
    paging: Page = Depends(),
    role: Optional[str] = None,
):
    """List users inside the caller's scope."""
    query = scope.apply(db.query(User), User)
    if role:
        query = query.filter(User.role == role)

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset(paging.offset).limit(paging.per_page).all()
    return PaginatedResponse.of([UserResponse.model_validate(u) for u in users], total, paging)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@require_permission("users:create")
async def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a user with a strictly subordinate role inside the caller's anchor."""
    _check_role_and_scope(user_in.role, user_in.scope_level)
    target = Principal(
        role=user_in.role,
        scope_level=user_in.scope_level,
        assigned_group_id=user_in.assigned_group_id,
        assigned_company_id=user_in.assigned_company_id,
        assigned_site_id=user_in.assigned_site_id,
    )
    validate_authority(current_user, target)
    _check_anchors_exist(db, target)

    if db.query(User).filter(User.email == user_in.email).first():
        raise ConflictError("Email already registered")

    user = User(
        email=user_in.email,
        password_hash=get_password_hash(user_in.password),
        name=user_in.name,
        **target._asdict(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserResponse)
@require_permission("users:update")
async def update_user(
    user_id: UUID,
    user_in: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    """Update a user. The caller must out-rank both the current and the new shape."""
    user = _visible_user(db, user_id, scope)
    changes = user_in.model_dump(exclude_unset=True)

    if str(user.id) != str(current_user.id):
        validate_authority(current_user, Principal.of(user))

    reassigning = changes.keys() & {
        "role", "scope_level", "assigned_group_id", "assigned_company_id", "assigned_site_id",
    }
    if reassigning:
        target = Principal.of(user)._replace(**{k: changes[k] for k in reassigning})
        _check_role_and_scope(target.role, target.scope_level)
        validate_authority(current_user, target)
        _check_anchors_exist(db, target)

    for field, value in changes.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user
