"""Approval workflow API endpoints."""

from typing import List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auditflow.api.deps import get_db, get_current_user
from auditflow.api.schemas.common import ERROR_RESPONSES, Page, PaginatedResponse
from auditflow.db.models import User
from auditflow.core.rbac import require_permission
from auditflow.core.approval import ApprovalService

router = APIRouter(prefix="/approvals", tags=["approvals"], responses=ERROR_RESPONSES)


# Schemas
class DecisionResponse(BaseModel):
    decision: str
    decision_by: Optional[str]
    decision_at: Optional[datetime]
    comments: Optional[str]
    escalation_reason: Optional[str]
    escalated_to: Optional[str]


class TimelineResponse(BaseModel):
    requested_at: Optional[datetime]
    deadline: Optional[datetime]
    responded_at: Optional[datetime]
    sla_status: str
    is_overdue: bool


class RequirementResponse(BaseModel):
    id: UUID
    position: int
    description: str
    completed: bool
    completed_at: Optional[datetime]
    completed_by: Optional[str]


class ReviewResponse(BaseModel):
    sequence: int
    reviewed_by: Optional[str]
    reviewed_at: datetime
    action: str
    comments: Optional[str]


class NotificationResponse(BaseModel):
    sent: bool
    reminder_count: int
    last_reminder_at: Optional[datetime]


class ApprovalResponse(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    title: str
    description: str
    approval_status: str
    priority: str
    approver: Optional[str]
    requested_by: Optional[str]
    decision: Optional[DecisionResponse]
    timeline: TimelineResponse
    requirements: List[RequirementResponse]
    review_history: List[ReviewResponse]
    notification: NotificationResponse
    created_at: datetime
    updated_at: datetime


class RequirementIn(BaseModel):
    description: str = Field(..., min_length=1)
    completed: bool = False


class ApprovalCreate(BaseModel):
    entity_type: str
    entity_id: UUID
    title: str
    description: str
    approver_id: Optional[UUID] = None
    priority: Optional[str] = None
    deadline: Optional[datetime] = None
    requirements: List[RequirementIn] = []


class ApprovalUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    deadline: Optional[datetime] = None


class ApprovalAction(BaseModel):
    comments: Optional[str] = None


class EscalateAction(BaseModel):
    escalated_to: Optional[UUID] = None
    reason: Optional[str] = None
    comments: Optional[str] = None


class RequirementUpdate(BaseModel):
    requirement_index: int
    completed: bool


class CommentIn(BaseModel):
    comments: str


class BatchApprovalRequest(BaseModel):
    approval_ids: List[UUID]
    comments: Optional[str] = None


class BatchApprovalResponse(BaseModel):
    approved: List[str] = []
    rejected: List[str] = []
    failed: List[dict] = []


def get_approval_service(request: Request, db: Session = Depends(get_db)) -> ApprovalService:
    settings = request.app.state.settings
    return ApprovalService(
        db,
        default_priority=settings.approval_default_priority,
        sla_warning_hours=settings.approval_sla_warning_hours,
    )


# Endpoints
@router.get("", response_model=PaginatedResponse[ApprovalResponse])
@require_permission("approvals:list")
async def list_approvals(
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
    paging: Page = Depends(),
    approval_status: Optional[str] = None,
    priority: Optional[str] = None,
    entity_type: Optional[str] = None,
    approver_id: Optional[UUID] = None,
    requested_by_id: Optional[UUID] = None,
    search: Optional[str] = None,
):
    """List approvals with filters and free-text search on title/description."""
    result = service.list_approvals(
        approval_status=approval_status,
        priority=priority,
        entity_type=entity_type,
        approver_id=approver_id,
        requested_by_id=requested_by_id,
        search=search,
        limit=paging.per_page,
        offset=paging.offset,
    )
    return PaginatedResponse.of(result["items"], result["total"], paging)


@router.get("/mine", response_model=List[ApprovalResponse])
@require_permission("approvals:list")
async def list_my_approvals(
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
    approval_status: Optional[str] = None,
):
    """Approvals waiting on the current user (plus the unassigned pool for managers)."""
    return service.list_for_approver(current_user, approval_status=approval_status)


@router.post("/batch/approve", response_model=BatchApprovalResponse)
@require_permission("approvals:approve")
async def batch_approve(
    batch: BatchApprovalRequest,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Approve multiple requests in a batch."""
    result = service.batch_approve(batch.approval_ids, actor_id=current_user.id, comments=batch.comments)
    db.commit()
    return BatchApprovalResponse(**result)


@router.post("/batch/reject", response_model=BatchApprovalResponse)
@require_permission("approvals:reject")
async def batch_reject(
    batch: BatchApprovalRequest,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Reject multiple requests in a batch."""
    result = service.batch_reject(batch.approval_ids, actor_id=current_user.id, comments=batch.comments)
    db.commit()
    return BatchApprovalResponse(**result)


@router.get("/{approval_id}", response_model=ApprovalResponse)
@require_permission("approvals:read")
async def get_approval(
    approval_id: UUID,
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    return service.get_approval(approval_id)


@router.get("/{approval_id}/history", response_model=List[ReviewResponse])
@require_permission("approvals:read")
async def get_approval_history(
    approval_id: UUID,
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Review history, oldest first."""
    return service.history(approval_id)


@router.post("", response_model=ApprovalResponse, status_code=status.HTTP_201_CREATED)
@require_permission("approvals:create")
async def create_approval(
    approval_in: ApprovalCreate,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Submit an entity for approval."""
    result = service.create_approval(
        approval_in.entity_type,
        approval_in.entity_id,
        approval_in.title,
        approval_in.description,
        requested_by=current_user.id,
        approver_id=approval_in.approver_id,
        priority=approval_in.priority,
        deadline=approval_in.deadline,
        requirements=[r.model_dump() for r in approval_in.requirements],
    )
    db.commit()
    return result


@router.put("/{approval_id}", response_model=ApprovalResponse)
@require_permission("approvals:update")
async def update_approval(
    approval_id: UUID,
    update: ApprovalUpdate,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    result = service.update_details(approval_id, current_user.id, **update.model_dump(exclude_unset=True))
    db.commit()
    return result


@router.post("/{approval_id}/review", response_model=ApprovalResponse)
@require_permission("approvals:read")
async def start_review(
    approval_id: UUID,
    action: ApprovalAction,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Pick up a pending or escalated approval (claims it when unassigned)."""
    result = service.start_review(approval_id, current_user, action.comments)
    db.commit()
    return result


@router.post("/{approval_id}/approve", response_model=ApprovalResponse)
@require_permission("approvals:approve")
async def approve_request(
    approval_id: UUID,
    action: ApprovalAction,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    result = service.approve(approval_id, current_user.id, action.comments)
    db.commit()
    return result


@router.post("/{approval_id}/reject", response_model=ApprovalResponse)
@require_permission("approvals:reject")
async def reject_request(
    approval_id: UUID,
    action: ApprovalAction,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    result = service.reject(approval_id, current_user.id, action.comments)
    db.commit()
    return result


@router.post("/{approval_id}/escalate", response_model=ApprovalResponse)
@require_permission("approvals:escalate")
async def escalate_request(
    approval_id: UUID,
    action: EscalateAction,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    result = service.decide(
        approval_id,
        current_user.id,
        "escalate",
        action.comments,
        escalated_to=action.escalated_to,
        reason=action.reason,
    )
    db.commit()
    return result


@router.post("/{approval_id}/cancel", response_model=ApprovalResponse)
@require_permission("approvals:create")
async def cancel_request(
    approval_id: UUID,
    action: ApprovalAction,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    """Withdraw an open approval. Requester only."""
    result = service.cancel(approval_id, current_user.id, action.comments)
    db.commit()
    return result


@router.patch("/{approval_id}/requirements", response_model=ApprovalResponse)
@require_permission("approvals:read")
async def update_requirement(
    approval_id: UUID,
    update: RequirementUpdate,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    result = service.update_requirement(
        approval_id, update.requirement_index, update.completed, current_user.id
    )
    db.commit()
    return result


@router.post("/{approval_id}/comments", response_model=ApprovalResponse)
@require_permission("approvals:read")
async def add_comment(
    approval_id: UUID,
    comment: CommentIn,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
    current_user: User = Depends(get_current_user),
):
    result = service.add_comment(approval_id, current_user.id, comment.comments)
    db.commit()
    return result
