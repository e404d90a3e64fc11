"""Create scheduling tables

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy Enum columns store member names
EXCEPTION_KINDS = ("BLOCKED", "MODIFIED", "HOLIDAY")
APPOINTMENT_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW", "RESCHEDULED")
PAYMENT_STATUSES = ("PENDING", "PAID", "REFUNDED", "FAILED")
PAYMENT_METHODS = ("INSURANCE", "CASH", "CARD", "EWALLET")


def upgrade() -> None:
    op.create_table(
        "clinics",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("timezone", sa.String, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "providers",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("clinic_id", sa.String, sa.ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("specialty", sa.String, nullable=True),
        sa.Column("base_rate", sa.Numeric(12, 2), nullable=False, server_default="150000"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "appointment_types",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("duration_minutes", sa.Integer, nullable=False),
        sa.Column("price_min", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("price_max", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_emergency", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("allows_online", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("requires_preparation", sa.Boolean, nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "schedule_templates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("provider_id", sa.String, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("weekday", sa.Integer, nullable=False),
        sa.Column("is_working_day", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("working_hours_start", sa.String, nullable=False),
        sa.Column("working_hours_end", sa.String, nullable=False),
        sa.Column("break_times", sa.JSON, nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer, nullable=False),
        sa.Column("allowed_appointment_type_ids", sa.JSON, nullable=False),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("provider_id", "weekday", name="uq_schedule_templates_provider_weekday"),
    )

    op.create_table(
        "calendar_exceptions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("provider_id", sa.String, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("date", sa.Date, nullable=False, index=True),
        sa.Column("kind", sa.Enum(*EXCEPTION_KINDS, name="exception_kind_enum"), nullable=False),
        sa.Column("reason", sa.Text, nullable=False, server_default=""),
        sa.Column("override_template", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("provider_id", "date", name="uq_calendar_exceptions_provider_date"),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date, nullable=False, index=True),
        sa.Column("name", sa.String, nullable=False),
        sa.Column("is_fixed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("affects_schedule", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "appointments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("patient_id", sa.String, nullable=False, index=True),
        sa.Column("provider_id", sa.String, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("clinic_id", sa.String, nullable=True),
        sa.Column("appointment_type_id", sa.String, sa.ForeignKey("appointment_types.id"), nullable=False),
        sa.Column("slot_id", sa.String, nullable=False, index=True),
        sa.Column("scheduled_date", sa.Date, nullable=False, index=True),
        sa.Column("scheduled_time", sa.Time, nullable=False),
        sa.Column("duration_minutes", sa.Integer, nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.Enum(*APPOINTMENT_STATUSES, name="appointment_status_enum"), nullable=False, index=True),
        sa.Column("payment_status", sa.Enum(*PAYMENT_STATUSES, name="payment_status_enum"), nullable=False),
        sa.Column("payment_method", sa.Enum(*PAYMENT_METHODS, name="payment_method_enum"), nullable=False),
        sa.Column("insurance_provider", sa.String, nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("symptoms", sa.JSON, nullable=True),
        sa.Column("is_first_visit", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("cancellation_allowed_until", sa.DateTime, nullable=False),
        sa.Column("cancellation_fee_percentage", sa.Integer, nullable=False, server_default="0"),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("cancelled_at", sa.DateTime, nullable=True),
        sa.Column("requires_reschedule", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("booking_time", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "slot_reservations",
        sa.Column("slot_id", sa.String, primary_key=True),
        sa.Column("provider_id", sa.String, sa.ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("date", sa.Date, nullable=False, index=True),
        sa.Column("start_time", sa.String, nullable=False),
        sa.Column("end_time", sa.String, nullable=False),
        sa.Column("booked_by", sa.String, nullable=False),
        sa.Column("appointment_id", UUID(as_uuid=True), sa.ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "booking_sessions",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("patient_id", sa.String, nullable=True, index=True),
        sa.Column("snapshot", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("booking_sessions")
    op.drop_table("slot_reservations")
    op.drop_table("appointments")
    op.drop_table("holidays")
    op.drop_table("calendar_exceptions")
    op.drop_table("schedule_templates")
    op.drop_table("appointment_types")
    op.drop_table("providers")
    op.drop_table("clinics")
    op.execute("DROP TYPE IF EXISTS exception_kind_enum")
    op.execute("DROP TYPE IF EXISTS appointment_status_enum")
    op.execute("DROP TYPE IF EXISTS payment_status_enum")
    op.execute("DROP TYPE IF EXISTS payment_method_enum")
