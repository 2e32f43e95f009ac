"""Organisational hierarchy: Group owns Companies, Company owns Sites."""

import uuid
from sqlalchemy import Column, String, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from auditflow.db.base import Base, CommonFieldsMixin


class Group(CommonFieldsMixin, Base):
    __tablename__ = "groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)

    scope_columns = {"group": "id"}

    # Relationships
    companies = relationship("Company", back_populates="group")

    def __repr__(self) -> str:
        return f"<Group {self.name}>"


class Company(CommonFieldsMixin, Base):
    __tablename__ = "companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    group_id = Column(Uuid, ForeignKey("groups.id"), nullable=False, index=True)
    sector = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)

    scope_columns = {"group": "group_id", "company": "id"}

    # Relationships
    group = relationship("Group", back_populates="companies")
    sites = relationship("Site", back_populates="company")

    def __repr__(self) -> str:
        return f"<Company {self.name}>"


class Site(CommonFieldsMixin, Base):
    __tablename__ = "sites"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False, index=True)

    scope_columns = {"company": "company_id", "site": "id"}

    # Relationships
    company = relationship("Company", back_populates="sites")

    def __repr__(self) -> str:
        return f"<Site {self.name}>"
