"""Audit outcomes that can be put up for approval."""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from auditflow.db.base import Base, CommonFieldsMixin


class Report(CommonFieldsMixin, Base):
    __tablename__ = "reports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    summary = Column(Text, nullable=True)
    audit_session_id = Column(Uuid, ForeignKey("audit_sessions.id", ondelete="SET NULL"), nullable=True)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=True, index=True)

    scope_columns = {"site": "site_id"}


class Problem(CommonFieldsMixin, Base):
    __tablename__ = "problems"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    problem_status = Column(String(30), nullable=False, default="Open")
    audit_session_id = Column(Uuid, ForeignKey("audit_sessions.id", ondelete="SET NULL"), nullable=True)
    site_id = Column(Uuid, ForeignKey("sites.id"), nullable=True, index=True)

    scope_columns = {"site": "site_id"}

    fix_actions = relationship("FixAction", back_populates="problem")


class FixAction(CommonFieldsMixin, Base):
    __tablename__ = "fix_actions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    action_text = Column(Text, nullable=False)
    action_status = Column(String(30), nullable=False, default="Pending")
    problem_id = Column(Uuid, ForeignKey("problems.id"), nullable=True, index=True)

    # Verification, filled in when the fix action's approval is granted
    verified_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    verification_result = Column(String(50), nullable=True)

    problem = relationship("Problem", back_populates="fix_actions")
