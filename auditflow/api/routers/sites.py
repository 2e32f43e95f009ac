from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user, get_scope_filter
from auditflow.core.errors import NotFoundError
from auditflow.core.rbac import EntityAnchor, ScopeFilter, require_permission, validate_entity_creation
from auditflow.db.models import Company, Site, User

router = APIRouter(prefix="/sites", tags=["sites"])


class SiteCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    location: str = Field(..., min_length=1, max_length=255)
    company_id: UUID


class SiteResponse(BaseModel):
    id: UUID
    name: str
    location: str
    company_id: UUID
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


@router.get("", response_model=List[SiteResponse])
@require_permission("sites:list")
async def list_sites(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
    company_id: Optional[UUID] = None,
):
    query = scope.apply(db.query(Site), Site)
    if company_id:
        query = query.filter(Site.company_id == company_id)
    return query.order_by(Site.name).all()


@router.post("", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
@require_permission("sites:create")
async def create_site(
    site_in: SiteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    company = db.get(Company, site_in.company_id)
    if company is None:
        raise NotFoundError("Company", site_in.company_id)

    # The parent company's group is the anchor for group admins
    validate_entity_creation(
        current_user,
        "site",
        EntityAnchor(group_id=company.group_id, company_id=company.id),
    )

    site = Site(**site_in.model_dump(), created_by_id=current_user.id)
    db.add(site)
    db.commit()
    db.refresh(site)
    return site
