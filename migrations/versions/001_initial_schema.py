"""Initial schema: activities, appointments, availability, email settings, templates and logs.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(), nullable=False, server_default="#3b82f6"),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("require_phone", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("require_address", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("require_custom_field", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("custom_field_label", sa.String(), nullable=True),
        sa.Column("reminder_enabled", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("reminder_hours_before", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("minimum_booking_notice_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("activity_name", sa.String(), nullable=False),
        sa.Column("activity_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("client_email", sa.String(), nullable=False),
        sa.Column("client_phone", sa.String(), nullable=True),
        sa.Column("client_address", sa.String(), nullable=True),
        sa.Column("client_custom_field", sa.String(), nullable=True),
        sa.Column("date_time", sa.DateTime(), nullable=False),
        sa.Column("end_date_time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["activity_id"], ["activities.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_activity_id"), "appointments", ["activity_id"], unique=False)
    op.create_index(op.f("ix_appointments_date_time"), "appointments", ["date_time"], unique=False)
    op.create_index(op.f("ix_appointments_end_date_time"), "appointments", ["end_date_time"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(
        "uq_appointments_active_start",
        "appointments",
        ["date_time"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "availability",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("weekly_slots", sa.JSON(), nullable=False),
        sa.Column("exceptions", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "email_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("smtp_host", sa.String(), nullable=False, server_default=""),
        sa.Column("smtp_port", sa.Integer(), nullable=False, server_default="587"),
        sa.Column("smtp_username", sa.String(), nullable=False, server_default=""),
        sa.Column("smtp_password", sa.String(), nullable=False, server_default=""),
        sa.Column("smtp_encryption", sa.String(), nullable=False, server_default="tls"),
        sa.Column("administrator_email", sa.String(), nullable=False, server_default=""),
        sa.Column("from_name", sa.String(), nullable=False, server_default=""),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "email_templates",
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("body", sa.String(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("type"),
    )

    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=True),
        sa.Column("template_type", sa.String(), nullable=False),
        sa.Column("recipient", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_email_logs_appointment_id"), "email_logs", ["appointment_id"], unique=False)
    op.create_index(op.f("ix_email_logs_sent_at"), "email_logs", ["sent_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_email_logs_sent_at"), table_name="email_logs")
    op.drop_index(op.f("ix_email_logs_appointment_id"), table_name="email_logs")
    op.drop_table("email_logs")
    op.drop_table("email_templates")
    op.drop_table("email_settings")
    op.drop_table("availability")
    op.drop_index("uq_appointments_active_start", table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_end_date_time"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_date_time"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_activity_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("activities")
