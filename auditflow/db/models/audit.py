"""Audit planning and execution records: templates, schedules, sessions."""

import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from auditflow.db.base import Base, CommonFieldsMixin


WORKFLOW_STATUSES = ("planned", "in-progress", "completed", "cancelled")


class Template(CommonFieldsMixin, Base):
    __tablename__ = "templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=True, index=True)

    scope_columns = {"company": "company_id"}


class Schedule(CommonFieldsMixin, Base):
    __tablename__ = "schedules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False, index=True)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=True, index=True)
    template_id = Column(Uuid, ForeignKey("templates.id", ondelete="SET NULL"), nullable=True)

    # Lead auditor
    assigned_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    scope_columns = {"company": "company_id", "site": "site_id"}

    # Relationships
    company = relationship("Company")
    site = relationship("Site")
    template = relationship("Template")
    assigned_user = relationship("User", foreign_keys=[assigned_user_id])
    sessions = relationship("AuditSession", back_populates="schedule")

    def __repr__(self) -> str:
        return f"<Schedule {self.title}>"


class AuditSession(CommonFieldsMixin, Base):
    __tablename__ = "audit_sessions"
    __table_args__ = (
        UniqueConstraint("schedule_id", "site_id", name="uq_audit_sessions_schedule_site"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(150), nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    workflow_status = Column(String(20), nullable=False, default="planned")
    is_locked = Column(Boolean, nullable=False, default=False)
    template_id = Column(Uuid, ForeignKey("templates.id"), nullable=True)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=False, index=True)
    schedule_id = Column(Uuid, ForeignKey("schedules.id"), nullable=False, index=True)

    scope_columns = {"site": "site_id"}

    # Relationships
    schedule = relationship("Schedule", back_populates="sessions")
    site = relationship("Site")
    template = relationship("Template")

    @property
    def is_closed(self) -> bool:
        return bool(self.is_locked) or self.workflow_status == "completed"

    def __repr__(self) -> str:
        return f"<AuditSession {self.id} [{self.workflow_status}]>"
