"""Declarative base and the columns every business entity carries."""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import declarative_base, declared_attr


Base = declarative_base()


ENTITY_STATUSES = ("active", "inactive")


class CommonFieldsMixin:
    """status / createdBy / updatedBy plus timestamps."""

    status = Column(String(20), nullable=False, default="active", index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def created_by_id(cls):
        return Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @declared_attr
    def updated_by_id(cls):
        return Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Maps the organisational levels ("group", "company", "site") onto this
    # model's columns; see auditflow.core.rbac.scope.
    scope_columns = {}
