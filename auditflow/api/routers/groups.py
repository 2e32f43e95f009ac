from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user, get_scope_filter
from auditflow.core.errors import AuthorizationError
from auditflow.core.rbac import ScopeFilter, require_permission
from auditflow.core.rbac.authority import is_override
from auditflow.db.models import Group, User

router = APIRouter(prefix="/groups", tags=["groups"])


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class GroupResponse(BaseModel):
    id: UUID
    name: str
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


@router.get("", response_model=List[GroupResponse])
@require_permission("groups:list")
async def list_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    return scope.apply(db.query(Group), Group).order_by(Group.name).all()


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
@require_permission("groups:create")
async def create_group(
    group_in: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a group. Groups sit at the top of the hierarchy, so only tier-1 roles may."""
    if not is_override(current_user.role):
        raise AuthorizationError("Only system administrators can create groups.")

    group = Group(name=group_in.name, created_by_id=current_user.id)
    db.add(group)
    db.commit()
    db.refresh(group)
    return group
