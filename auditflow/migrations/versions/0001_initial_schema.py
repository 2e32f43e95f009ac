"""Initial schema: users, org hierarchy, audits, findings, approvals

Revision ID: 0001
Revises: None
Create Date: 2026-09-28

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


OPEN_APPROVAL_PREDICATE = "approval_status IN ('pending', 'in-review', 'escalated')"


def _common_columns():
    """status / created_by / updated_by / timestamps carried by business tables."""
    return [
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    ]


def upgrade() -> None:
    """Create all core tables."""

    # --- users (org FKs added once the org tables exist) ---
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("role", sa.String(50), nullable=False, server_default="auditor"),
        sa.Column("scope_level", sa.String(20), nullable=False, server_default="site"),
        sa.Column("assigned_group_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_company_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_site_id", sa.Uuid(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_assigned_group_id", "users", ["assigned_group_id"])
    op.create_index("ix_users_assigned_company_id", "users", ["assigned_company_id"])
    op.create_index("ix_users_assigned_site_id", "users", ["assigned_site_id"])

    # --- groups / companies / sites ---
    op.create_table(
        "groups",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
    )
    op.create_index("ix_groups_status", "groups", ["status"])

    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("group_id", sa.Uuid(), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("sector", sa.String(255), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_companies"),
    )
    op.create_index("ix_companies_group_id", "companies", ["group_id"])
    op.create_index("ix_companies_status", "companies", ["status"])

    op.create_table(
        "sites",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id"), nullable=False),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_sites"),
    )
    op.create_index("ix_sites_company_id", "sites", ["company_id"])
    op.create_index("ix_sites_status", "sites", ["status"])

    with op.batch_alter_table("users") as batch:
        batch.create_foreign_key(
            "fk_users_assigned_group_id_groups", "groups",
            ["assigned_group_id"], ["id"], ondelete="SET NULL",
        )
        batch.create_foreign_key(
            "fk_users_assigned_company_id_companies", "companies",
            ["assigned_company_id"], ["id"], ondelete="SET NULL",
        )
        batch.create_foreign_key(
            "fk_users_assigned_site_id_sites", "sites",
            ["assigned_site_id"], ["id"], ondelete="SET NULL",
        )

    # --- templates / schedules / audit_sessions ---
    op.create_table(
        "templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id"), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_templates"),
    )
    op.create_index("ix_templates_company_id", "templates", ["company_id"])
    op.create_index("ix_templates_status", "templates", ["status"])

    op.create_table(
        "schedules",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("site_id", sa.Uuid(), sa.ForeignKey("sites.id"), nullable=True),
        sa.Column("template_id", sa.Uuid(), sa.ForeignKey("templates.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_schedules"),
    )
    op.create_index("ix_schedules_company_id", "schedules", ["company_id"])
    op.create_index("ix_schedules_site_id", "schedules", ["site_id"])
    op.create_index("ix_schedules_assigned_user_id", "schedules", ["assigned_user_id"])
    op.create_index("ix_schedules_status", "schedules", ["status"])

    op.create_table(
        "audit_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(150), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("workflow_status", sa.String(20), nullable=False, server_default="planned"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("template_id", sa.Uuid(), sa.ForeignKey("templates.id"), nullable=True),
        sa.Column("site_id", sa.Uuid(), sa.ForeignKey("sites.id"), nullable=False),
        sa.Column("schedule_id", sa.Uuid(), sa.ForeignKey("schedules.id"), nullable=False),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_audit_sessions"),
        sa.UniqueConstraint("schedule_id", "site_id", name="uq_audit_sessions_schedule_site"),
    )
    op.create_index("ix_audit_sessions_site_id", "audit_sessions", ["site_id"])
    op.create_index("ix_audit_sessions_schedule_id", "audit_sessions", ["schedule_id"])
    op.create_index("ix_audit_sessions_status", "audit_sessions", ["status"])

    # --- reports / problems / fix_actions ---
    op.create_table(
        "reports",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("audit_session_id", sa.Uuid(), sa.ForeignKey("audit_sessions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("site_id", sa.Uuid(), sa.ForeignKey("sites.id"), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_reports"),
    )
    op.create_index("ix_reports_site_id", "reports", ["site_id"])
    op.create_index("ix_reports_status", "reports", ["status"])

    op.create_table(
        "problems",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("problem_status", sa.String(30), nullable=False, server_default="Open"),
        sa.Column("audit_session_id", sa.Uuid(), sa.ForeignKey("audit_sessions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("site_id", sa.Uuid(), sa.ForeignKey("sites.id"), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_problems"),
    )
    op.create_index("ix_problems_site_id", "problems", ["site_id"])
    op.create_index("ix_problems_status", "problems", ["status"])

    op.create_table(
        "fix_actions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("action_text", sa.Text(), nullable=False),
        sa.Column("action_status", sa.String(30), nullable=False, server_default="Pending"),
        sa.Column("problem_id", sa.Uuid(), sa.ForeignKey("problems.id"), nullable=True),
        sa.Column("verified_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("verification_result", sa.String(50), nullable=True),
        *_common_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_fix_actions"),
    )
    op.create_index("ix_fix_actions_problem_id", "fix_actions", ["problem_id"])
    op.create_index("ix_fix_actions_status", "fix_actions", ["status"])

    # --- approvals ---
    op.create_table(
        "approvals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("approval_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("approver_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("requested_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("decision", sa.String(20), nullable=True),
        sa.Column("decision_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("decision_at", sa.DateTime(), nullable=True),
        sa.Column("decision_comments", sa.Text(), nullable=True),
        sa.Column("escalation_reason", sa.Text(), nullable=True),
        sa.Column("escalated_to_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("deadline", sa.DateTime(), nullable=True),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("sla_status", sa.String(20), nullable=False, server_default="on-time"),
        sa.Column("notification_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reminder_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_approvals"),
    )
    op.create_index("ix_approvals_entity_type", "approvals", ["entity_type"])
    op.create_index("ix_approvals_entity_id", "approvals", ["entity_id"])
    op.create_index("ix_approvals_approval_status", "approvals", ["approval_status"])
    op.create_index("ix_approvals_approver_id", "approvals", ["approver_id"])
    op.create_index("ix_approvals_requested_by_id", "approvals", ["requested_by_id"])
    op.create_index("ix_approvals_created_at", "approvals", ["created_at"])
    op.create_index(
        "uq_approvals_open_entity",
        "approvals",
        ["entity_type", "entity_id"],
        unique=True,
        postgresql_where=sa.text(OPEN_APPROVAL_PREDICATE),
        sqlite_where=sa.text(OPEN_APPROVAL_PREDICATE),
    )

    op.create_table(
        "approval_requirements",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("approval_id", sa.Uuid(), sa.ForeignKey("approvals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_approval_requirements"),
    )
    op.create_index("ix_approval_requirements_approval_id", "approval_requirements", ["approval_id"])

    op.create_table(
        "approval_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("approval_id", sa.Uuid(), sa.ForeignKey("approvals.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("reviewed_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_approval_reviews"),
        sa.UniqueConstraint("approval_id", "sequence", name="uq_approval_reviews_sequence"),
    )
    op.create_index("ix_approval_reviews_approval_id", "approval_reviews", ["approval_id"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("approval_reviews")
    op.drop_table("approval_requirements")
    op.drop_index("uq_approvals_open_entity", table_name="approvals")
    op.drop_table("approvals")
    op.drop_table("fix_actions")
    op.drop_table("problems")
    op.drop_table("reports")
    op.drop_table("audit_sessions")
    op.drop_table("schedules")
    op.drop_table("templates")

    with op.batch_alter_table("users") as batch:
        batch.drop_constraint("fk_users_assigned_site_id_sites", type_="foreignkey")
        batch.drop_constraint("fk_users_assigned_company_id_companies", type_="foreignkey")
        batch.drop_constraint("fk_users_assigned_group_id_groups", type_="foreignkey")

    op.drop_table("sites")
    op.drop_table("companies")
    op.drop_table("groups")
    op.drop_table("users")
