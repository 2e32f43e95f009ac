import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from auditflow.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255))
    role = Column(String(50), nullable=False, default="auditor", index=True)

    # Organisational scope; only the field matching scope_level is the anchor.
    # use_alter: the org tables reference users through created_by_id.
    scope_level = Column(String(20), nullable=False, default="site")
    assigned_group_id = Column(Uuid, ForeignKey("groups.id", ondelete="SET NULL", use_alter=True), nullable=True, index=True)
    assigned_company_id = Column(Uuid, ForeignKey("companies.id", ondelete="SET NULL", use_alter=True), nullable=True, index=True)
    assigned_site_id = Column(Uuid, ForeignKey("sites.id", ondelete="SET NULL", use_alter=True), nullable=True, index=True)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    scope_columns = {
        "group": "assigned_group_id",
        "company": "assigned_company_id",
        "site": "assigned_site_id",
    }

    # Relationships
    assigned_group = relationship("Group", foreign_keys=[assigned_group_id])
    assigned_company = relationship("Company", foreign_keys=[assigned_company_id])
    assigned_site = relationship("Site", foreign_keys=[assigned_site_id])

    @property
    def anchor_id(self):
        """The assigned_* id selected by scope_level (None for system scope)."""
        return {
            "group": self.assigned_group_id,
            "company": self.assigned_company_id,
            "site": self.assigned_site_id,
        }.get(self.scope_level)

    def __repr__(self) -> str:
        return f"<User {self.email} [{self.role}]>"
