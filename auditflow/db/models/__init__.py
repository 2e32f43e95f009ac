"""Database models for AuditFlow."""

from auditflow.db.models.org import Group, Company, Site
from auditflow.db.models.user import User
from auditflow.db.models.audit import Template, Schedule, AuditSession, WORKFLOW_STATUSES
from auditflow.db.models.findings import Report, Problem, FixAction
from auditflow.db.models.approval import Approval, ApprovalRequirement, ApprovalReview

__all__ = [
    "Group",
    "Company",
    "Site",
    "User",
    "Template",
    "Schedule",
    "AuditSession",
    "WORKFLOW_STATUSES",
    "Report",
    "Problem",
    "FixAction",
    "Approval",
    "ApprovalRequirement",
    "ApprovalReview",
]
