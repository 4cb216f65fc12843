"""Initial schema — organizations, staff, customers, appointments, invoices, analytics.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Tenants ────────────────────────────────────────────────────────

    op.create_table(
        "organizations",
        sa.Column("name", sa.String(200), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_organizations"),
    )

    op.create_table(
        "analytics_events",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event", sa.String(100), nullable=False),
        sa.Column("properties", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_analytics_events"),
    )
    op.create_index("ix_analytics_events_organization_id", "analytics_events", ["organization_id"])
    op.create_index("ix_analytics_events_event", "analytics_events", ["event"])

    # ── Tables with FK to organizations ────────────────────────────────

    op.create_table(
        "staff_users",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("role", sa.String(20), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_staff_users"),
        sa.UniqueConstraint("email", name="uq_staff_users_email"),
    )
    op.create_index("ix_staff_users_organization_id", "staff_users", ["organization_id"])

    op.create_table(
        "customers",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(20)),
        sa.Column("address", sa.String(500)),
        sa.Column("preferences", postgresql.JSONB(astext_type=sa.Text())),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_customers"),
    )
    op.create_index("ix_customers_organization_id", "customers", ["organization_id"])

    # ── Appointments ───────────────────────────────────────────────────

    op.create_table(
        "appointments",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_users.id"), nullable=False),
        sa.Column("assigned_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_users.id")),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("location", sa.String(500), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("tags", postgresql.ARRAY(sa.String(50)), nullable=False),
        sa.Column("custom_fields", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_duration", sa.Integer(), nullable=False, comment="Minutes"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("price", sa.Numeric(12, 2)),
        sa.Column("send_reminder", sa.Boolean(), nullable=False),
        sa.Column("reminder_time", sa.Integer(), nullable=False, comment="Hours before"),
        sa.Column("notes", sa.Text()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("actual_duration", sa.Integer(), comment="Minutes"),
        sa.Column("completion_notes", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_appointments"),
    )
    op.create_index("ix_appointments_organization_id", "appointments", ["organization_id"])
    op.create_index("ix_appointments_customer_id", "appointments", ["customer_id"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index(
        "ix_appointments_org_assignee_start",
        "appointments",
        ["organization_id", "assigned_user_id", "start_time"],
    )

    op.create_table(
        "invoices",
        sa.Column("organization_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("appointments.id")),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_invoices"),
        sa.UniqueConstraint("appointment_id", name="uq_invoices_appointment_id"),
    )
    op.create_index("ix_invoices_organization_id", "invoices", ["organization_id"])


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("invoices")
    op.drop_table("appointments")
    op.drop_table("customers")
    op.drop_table("staff_users")
    op.drop_table("analytics_events")
    op.drop_table("organizations")
