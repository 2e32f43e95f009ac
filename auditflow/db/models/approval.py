"""Approval workflow database models.

An approval targets one business entity (entity_type + entity_id), carries an
ordered requirements checklist and an append-only review history.
"""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
    text,
)
from sqlalchemy.orm import relationship

from auditflow.db.base import Base


_OPEN_STATUS_PREDICATE = "approval_status IN ('pending', 'in-review', 'escalated')"


class Approval(Base):
    """
    A formal decision request against a business entity.

    At most one open approval (pending, in-review or escalated) may exist per
    (entity_type, entity_id); the partial unique index backs the service check.
    """
    __tablename__ = "approvals"
    __table_args__ = (
        Index(
            "uq_approvals_open_entity",
            "entity_type",
            "entity_id",
            unique=True,
            postgresql_where=text(_OPEN_STATUS_PREDICATE),
            sqlite_where=text(_OPEN_STATUS_PREDICATE),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Subject
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Uuid, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)

    # Workflow state
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    priority = Column(String(20), nullable=False, default="medium")

    # Parties; approver may be empty (unassigned pool)
    approver_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    requested_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    # Decision
    decision = Column(String(20), nullable=True)
    decision_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    decision_at = Column(DateTime, nullable=True)
    decision_comments = Column(Text, nullable=True)
    escalation_reason = Column(Text, nullable=True)
    escalated_to_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Timeline
    requested_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    deadline = Column(DateTime, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    sla_status = Column(String(20), nullable=False, default="on-time")

    # Notifications
    notification_sent = Column(Boolean, nullable=False, default=False)
    reminder_count = Column(Integer, nullable=False, default=0)
    last_reminder_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    approver = relationship("User", foreign_keys=[approver_id])
    requested_by = relationship("User", foreign_keys=[requested_by_id])
    decision_by = relationship("User", foreign_keys=[decision_by_id])
    escalated_to = relationship("User", foreign_keys=[escalated_to_id])
    requirements = relationship(
        "ApprovalRequirement",
        back_populates="approval",
        order_by="ApprovalRequirement.position",
        cascade="all, delete-orphan",
    )
    reviews = relationship(
        "ApprovalReview",
        back_populates="approval",
        order_by="ApprovalReview.sequence",
    )

    @property
    def unmet_requirements(self) -> List[str]:
        return [r.description for r in self.requirements if not r.completed]

    @property
    def is_open(self) -> bool:
        return self.approval_status in ("pending", "in-review", "escalated")

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """True when the deadline has passed while the approval is still open."""
        if self.deadline is None or not self.is_open:
            return False
        return (now or datetime.utcnow()) > self.deadline

    def refresh_sla_status(self, warning_hours: int = 24, now: Optional[datetime] = None) -> str:
        """Recompute sla_status from the deadline. Descriptive only."""
        now = now or datetime.utcnow()
        if self.deadline is None or not self.is_open:
            status = "on-time"
        elif now > self.deadline:
            status = "overdue"
        elif self.deadline - now <= timedelta(hours=warning_hours):
            status = "warning"
        else:
            status = "on-time"
        self.sla_status = status
        return status

    def __repr__(self) -> str:
        return f"<Approval {self.entity_type}:{self.entity_id} [{self.approval_status}]>"


class ApprovalRequirement(Base):
    """One checklist item. Addressed by position through the API, by id internally."""
    __tablename__ = "approval_requirements"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    approval_id = Column(Uuid, ForeignKey("approvals.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    completed_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    approval = relationship("Approval", back_populates="requirements")
    completed_by = relationship("User")


class ApprovalReview(Base):
    """
    Review history entry. Rows are written once and never updated or deleted.
    """
    __tablename__ = "approval_reviews"
    __table_args__ = (
        UniqueConstraint("approval_id", "sequence", name="uq_approval_reviews_sequence"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    approval_id = Column(Uuid, ForeignKey("approvals.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    reviewed_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    action = Column(String(20), nullable=False)
    comments = Column(Text, nullable=True)

    approval = relationship("Approval", back_populates="reviews")
    reviewed_by = relationship("User")

    def __repr__(self) -> str:
        return f"<ApprovalReview #{self.sequence} {self.action}>"


@event.listens_for(ApprovalReview, "before_update")
def _reject_review_update(mapper, connection, target):
    raise RuntimeError("Approval review history is append-only")


@event.listens_for(ApprovalReview, "before_delete")
def _reject_review_delete(mapper, connection, target):
    raise RuntimeError("Approval review history is append-only")
