"""Appointment bookings and the slot reservations they hold."""

from sqlalchemy import (
    Column, String, DateTime, Integer, Date, Time, Boolean, Numeric, ForeignKey, Text,
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.types import JSON
import uuid
from datetime import datetime
import enum
from medbook.core.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"
    RESCHEDULED = "rescheduled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    INSURANCE = "insurance"
    CASH = "cash"
    CARD = "card"
    EWALLET = "ewallet"


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(String, nullable=False, index=True)
    provider_id = Column(String, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    clinic_id = Column(String, nullable=True)
    appointment_type_id = Column(String, ForeignKey("appointment_types.id"), nullable=False)
    slot_id = Column(String, nullable=False, index=True)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    status = Column(SQLEnum(AppointmentStatus, name="appointment_status_enum"), default=AppointmentStatus.PENDING, nullable=False, index=True)
    payment_status = Column(SQLEnum(PaymentStatus, name="payment_status_enum"), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod, name="payment_method_enum"), nullable=False)
    insurance_provider = Column(String, nullable=True)

    notes = Column(Text, nullable=True)  # chief complaint
    symptoms = Column(JSON, nullable=True)
    is_first_visit = Column(Boolean, default=True, nullable=False)

    # Cancellation policy
    cancellation_allowed_until = Column(DateTime, nullable=False)
    cancellation_fee_percentage = Column(Integer, default=0, nullable=False)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Set when a template/exception change removed the booked time range
    requires_reschedule = Column(Boolean, default=False, nullable=False, index=True)

    booking_time = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SlotReservation(Base):
    """Reservation state for one generated slot.

    The primary key on ``slot_id`` is the cross-process compare-and-swap:
    a second insert for the same slot fails with an IntegrityError.
    Cancelling the appointment deletes the row and frees the slot.
    """
    __tablename__ = "slot_reservations"

    slot_id = Column(String, primary_key=True)
    provider_id = Column(String, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String, nullable=False)  # "HH:MM"
    end_time = Column(String, nullable=False)
    booked_by = Column(String, nullable=False)
    appointment_id = Column(UUID(as_uuid=True), ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, unique=True)

    created_at = Column(DateTime, default=datetime.utcnow)
