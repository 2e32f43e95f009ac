from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user, get_scope_filter
from auditflow.core.errors import NotFoundError
from auditflow.core.rbac import EntityAnchor, ScopeFilter, require_permission, validate_entity_creation
from auditflow.db.models import Company, Group, User

router = APIRouter(prefix="/companies", tags=["companies"])


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    group_id: UUID
    sector: Optional[str] = None
    address: Optional[str] = None


class CompanyResponse(BaseModel):
    id: UUID
    name: str
    group_id: UUID
    sector: Optional[str]
    address: Optional[str]
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


@router.get("", response_model=List[CompanyResponse])
@require_permission("companies:list")
async def list_companies(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
    group_id: Optional[UUID] = None,
):
    query = scope.apply(db.query(Company), Company)
    if group_id:
        query = query.filter(Company.group_id == group_id)
    return query.order_by(Company.name).all()


@router.get("/{company_id}", response_model=CompanyResponse)
@require_permission("companies:read")
async def get_company(
    company_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    company = db.get(Company, company_id)
    if company is None or not scope.allows(group_id=company.group_id, company_id=company.id):
        raise NotFoundError("Company", company_id)
    return company


@router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
@require_permission("companies:create")
async def create_company(
    company_in: CompanyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    validate_entity_creation(current_user, "company", EntityAnchor(group_id=company_in.group_id))
    if db.get(Group, company_in.group_id) is None:
        raise NotFoundError("Group", company_in.group_id)

    company = Company(**company_in.model_dump(), created_by_id=current_user.id)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company
