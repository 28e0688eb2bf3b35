"""initial_evidence_schema

Create users, archived tickets (with evidences, steps and blockage
exhibits) and bug reports (with attachments).

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001a2b3c4d5"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("acronym", sa.String(length=10), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("role", sa.String(length=10), nullable=True, server_default="USER"),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_acronym", "users", ["acronym"], unique=True)

    if "tickets" not in existing_tables:
        op.create_table(
            "tickets",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("external_id", sa.String(length=100), nullable=True),
            sa.Column("title", sa.String(length=500), nullable=True),
            sa.Column("summary", sa.String(length=500), nullable=True),
            sa.Column("sprint", sa.String(length=100), nullable=True),
            sa.Column("client_system", sa.String(length=200), nullable=True),
            sa.Column("requester", sa.String(length=100), nullable=True),
            sa.Column("analyst", sa.String(length=100), nullable=True),
            sa.Column("request_date", sa.Date(), nullable=True),
            sa.Column("evidence_date", sa.Date(), nullable=True),
            sa.Column("environment", sa.Text(), nullable=True),
            sa.Column("environment_version", sa.String(length=100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("solution", sa.Text(), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=True, server_default="MEDIUM"),
            sa.Column("ticket_status", sa.String(length=20), nullable=True, server_default="PENDING"),
            sa.Column("blockage_reason", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=20), nullable=True),
            sa.Column("archived_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tickets_created_by", "tickets", ["created_by"])

    if "evidences" not in existing_tables:
        op.create_table(
            "evidences",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("ticket_pk", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=500), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("image_url", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=10), nullable=True),
            sa.Column("severity", sa.String(length=10), nullable=True),
            sa.Column("created_by", sa.String(length=20), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("scenario_number", sa.Integer(), nullable=True),
            sa.Column("case_number", sa.Integer(), nullable=True),
            sa.Column("case_id", sa.String(length=20), nullable=True),
            sa.Column("screen", sa.String(length=200), nullable=True),
            sa.Column("objective", sa.Text(), nullable=True),
            sa.Column("pre_requisites", sa.Text(), nullable=True),
            sa.Column("condition", sa.Text(), nullable=True),
            sa.Column("expected_result", sa.Text(), nullable=True),
            sa.Column("result", sa.String(length=10), nullable=True),
            sa.Column("failure_reason", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["ticket_pk"], ["tickets.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("ticket_pk", "scenario_number", "case_number", name="uq_evidence_case_slot"),
        )
        op.create_index("ix_evidences_ticket_pk", "evidences", ["ticket_pk"])
        op.create_index("ix_evidences_case_id", "evidences", ["case_id"])

    if "evidence_steps" not in existing_tables:
        op.create_table(
            "evidence_steps",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("evidence_id", sa.String(length=36), nullable=False),
            sa.Column("step_number", sa.Integer(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("image_url", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["evidence_id"], ["evidences.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_evidence_steps_evidence_id", "evidence_steps", ["evidence_id"])

    if "ticket_blockage_images" not in existing_tables:
        op.create_table(
            "ticket_blockage_images",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("ticket_pk", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=True),
            sa.Column("image_url", sa.Text(), nullable=False),
            sa.ForeignKeyConstraint(["ticket_pk"], ["tickets.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_ticket_blockage_images_ticket_pk", "ticket_blockage_images", ["ticket_pk"])

    if "bug_reports" not in existing_tables:
        op.create_table(
            "bug_reports",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("summary", sa.String(length=500), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=True, server_default="PENDING"),
            sa.Column("priority", sa.String(length=10), nullable=True, server_default="MEDIUM"),
            sa.Column("screen", sa.String(length=200), nullable=True),
            sa.Column("module", sa.String(length=200), nullable=True),
            sa.Column("environment", sa.String(length=200), nullable=True),
            sa.Column("bug_date", sa.Date(), nullable=True),
            sa.Column("developer", sa.String(length=100), nullable=True),
            sa.Column("analyst", sa.String(length=100), nullable=True),
            sa.Column("pre_requisites", sa.Text(), nullable=True),
            sa.Column("scenario_description", sa.Text(), nullable=True),
            sa.Column("expected_result", sa.Text(), nullable=True),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("dev_feedback", sa.Text(), nullable=True),
            sa.Column("observation", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=20), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_bug_reports_created_by", "bug_reports", ["created_by"])

    if "bug_attachments" not in existing_tables:
        op.create_table(
            "bug_attachments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("bug_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=True),
            sa.Column("image_url", sa.Text(), nullable=False),
            sa.ForeignKeyConstraint(["bug_id"], ["bug_reports.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_bug_attachments_bug_id", "bug_attachments", ["bug_id"])


def downgrade():
    for table in (
        "bug_attachments", "bug_reports", "ticket_blockage_images",
        "evidence_steps", "evidences", "tickets", "users",
    ):
        op.drop_table(table)
