"""Audit session endpoints. Mutations of closed sessions are gated."""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user, get_scope_filter
from auditflow.core.errors import ConflictError, NotFoundError
from auditflow.core.rbac import ScopeFilter, protect_closed_audit, require_permission
from auditflow.db.models import AuditSession, User

router = APIRouter(prefix="/audit-sessions", tags=["audit-sessions"])


WorkflowStatus = Literal["planned", "in-progress", "completed", "cancelled"]


class AuditSessionUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=150)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    workflow_status: Optional[WorkflowStatus] = None
    template_id: Optional[UUID] = None


class AuditSessionResponse(BaseModel):
    id: UUID
    title: Optional[str]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    workflow_status: str
    is_locked: bool
    template_id: Optional[UUID]
    site_id: UUID
    schedule_id: UUID
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


def _visible_session(db: Session, session_id: UUID, scope: ScopeFilter) -> AuditSession:
    session = db.get(AuditSession, session_id)
    if session is None or not scope.allows(site_id=session.site_id):
        raise NotFoundError("Audit session", session_id)
    return session


@router.get("", response_model=List[AuditSessionResponse])
@require_permission("audit_sessions:list")
async def list_audit_sessions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
    workflow_status: Optional[str] = None,
):
    query = scope.apply(db.query(AuditSession), AuditSession)
    if workflow_status:
        query = query.filter(AuditSession.workflow_status == workflow_status)
    return query.order_by(AuditSession.created_at.desc()).all()


@router.get("/{session_id}", response_model=AuditSessionResponse)
@require_permission("audit_sessions:read")
async def get_audit_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    return _visible_session(db, session_id, scope)


async def _update(request, session_id, update, db, current_user, scope):
    session = _visible_session(db, session_id, scope)
    protect_closed_audit(session, current_user, request.method)

    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(session, field, value)
    session.updated_by_id = current_user.id

    db.commit()
    db.refresh(session)
    return session


@router.put("/{session_id}", response_model=AuditSessionResponse)
@require_permission("audit_sessions:update")
async def replace_audit_session(
    session_id: UUID,
    update: AuditSessionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    return await _update(request, session_id, update, db, current_user, scope)


@router.patch("/{session_id}", response_model=AuditSessionResponse)
@require_permission("audit_sessions:update")
async def update_audit_session(
    session_id: UUID,
    update: AuditSessionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    return await _update(request, session_id, update, db, current_user, scope)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_permission("audit_sessions:delete")
async def delete_audit_session(
    session_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    session = _visible_session(db, session_id, scope)
    protect_closed_audit(session, current_user, request.method)

    db.delete(session)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{session_id}/complete", response_model=AuditSessionResponse)
@require_permission("audit_sessions:update")
async def complete_audit_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    scope: ScopeFilter = Depends(get_scope_filter),
):
    """Mark the session completed and lock it against further edits."""
    session = _visible_session(db, session_id, scope)
    if session.is_closed:
        raise ConflictError("Audit session is already closed")

    session.workflow_status = "completed"
    session.is_locked = True
    session.end_date = session.end_date or datetime.utcnow()
    session.updated_by_id = current_user.id
    db.commit()
    db.refresh(session)
    return session
