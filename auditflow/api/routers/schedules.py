"""Audit schedules and the lead-auditor gated audit start."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user, get_scope_filter
from auditflow.api.routers.audit_sessions import AuditSessionResponse
from auditflow.core.errors import ConflictError, NotFoundError, ValidationError
from auditflow.core.rbac import ScopeFilter, authorize_lead_auditor, require_permission
from auditflow.db.models import AuditSession, Company, Schedule, Site, Template, User

router = APIRouter(prefix="/schedules", tags=["schedules"])


class ScheduleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    start_date: datetime
    end_date: datetime
    company_id: UUID
    site_id: Optional[UUID] = None
    template_id: Optional[UUID] = None
    assigned_user_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ScheduleResponse(BaseModel):
    id: UUID
    title: str
    start_date: datetime
    end_date: datetime
    company_id: UUID
    site_id: Optional[UUID]
    template_id: Optional[UUID]
    assigned_user_id: Optional[UUID]
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StartAudit(BaseModel):
    site_id: Optional[UUID] = None


@router.get("", response_model=List[ScheduleResponse])
@require_permission("schedules:list")
async def list_schedules(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
    assigned_to_me: bool = False,
):
    query = scope.apply(db.query(Schedule), Schedule)
    if assigned_to_me:
        query = query.filter(Schedule.assigned_user_id == current_user.id)
    return query.order_by(Schedule.start_date.desc()).all()


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
@require_permission("schedules:create")
async def create_schedule(
    schedule_in: ScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    company = db.get(Company, schedule_in.company_id)
    if company is None or not scope.allows(group_id=company.group_id, company_id=company.id):
        raise NotFoundError("Company", schedule_in.company_id)

    if schedule_in.site_id is not None:
        site = db.get(Site, schedule_in.site_id)
        if site is None:
            raise NotFoundError("Site", schedule_in.site_id)
        if site.company_id != company.id:
            raise ValidationError("Site does not belong to the schedule's company")
    if schedule_in.template_id is not None and db.get(Template, schedule_in.template_id) is None:
        raise NotFoundError("Template", schedule_in.template_id)
    if schedule_in.assigned_user_id is not None and db.get(User, schedule_in.assigned_user_id) is None:
        raise NotFoundError("User", schedule_in.assigned_user_id)

    schedule = Schedule(**schedule_in.model_dump(), created_by_id=current_user.id)
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.post(
    "/{schedule_id}/start",
    response_model=AuditSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
@require_permission("schedules:execute")
async def start_audit(
    schedule_id: UUID,
    body: StartAudit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Open an in-progress audit session. Only the schedule's lead auditor may start it."""
    schedule = authorize_lead_auditor(db, schedule_id, current_user)
    if schedule is None:
        raise NotFoundError("Schedule", schedule_id)

    site_id = body.site_id or schedule.site_id
    if site_id is None:
        raise ValidationError("A site is required to start this audit")
    site = db.get(Site, site_id)
    if site is None:
        raise NotFoundError("Site", site_id)
    if site.company_id != schedule.company_id:
        raise ValidationError("Site does not belong to the schedule's company")

    existing = db.query(AuditSession).filter(
        AuditSession.schedule_id == schedule.id,
        AuditSession.site_id == site_id,
    ).first()
    if existing is not None:
        raise ConflictError("An audit session already exists for this schedule and site.")

    session = AuditSession(
        title=schedule.title,
        start_date=datetime.utcnow(),
        workflow_status="in-progress",
        template_id=schedule.template_id,
        site_id=site_id,
        schedule_id=schedule.id,
        created_by_id=current_user.id,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session
