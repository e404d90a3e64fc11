"""Appointment lifecycle after commit: cancel, complete, no-show, payment."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import settings
from medbook.core.exceptions import NotFoundError, PaymentError, ValidationError
from medbook.models.appointment import Appointment, AppointmentStatus, PaymentStatus
from medbook.schemas.booking import AppointmentBooking, CancellationPolicy
from medbook.services import reservation_service

logger = logging.getLogger(__name__)


def to_booking(appointment: Appointment) -> AppointmentBooking:
    """Immutable hand-off record for an appointment row."""
    return AppointmentBooking(
        id=appointment.id,
        patient_id=appointment.patient_id,
        provider_id=appointment.provider_id,
        clinic_id=appointment.clinic_id,
        appointment_type_id=appointment.appointment_type_id,
        slot_id=appointment.slot_id,
        scheduled_date=appointment.scheduled_date,
        scheduled_time=appointment.scheduled_time,
        duration_minutes=appointment.duration_minutes,
        price=appointment.price,
        status=appointment.status,
        payment_status=appointment.payment_status,
        payment_method=appointment.payment_method,
        insurance_provider=appointment.insurance_provider,
        notes=appointment.notes,
        symptoms=appointment.symptoms or [],
        is_first_visit=appointment.is_first_visit,
        booking_time=appointment.booking_time,
        cancellation_policy=CancellationPolicy(
            allowed_until=appointment.cancellation_allowed_until,
            fee_percentage=appointment.cancellation_fee_percentage,
        ),
        requires_reschedule=appointment.requires_reschedule,
        cancellation_reason=appointment.cancellation_reason,
    )


async def get_appointment(db: AsyncSession, appointment_id: UUID) -> Appointment:
    result = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise NotFoundError("Appointment", appointment_id)
    return appointment


async def list_appointments(
    db: AsyncSession,
    patient_id: Optional[str] = None,
    provider_id: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Appointment]:
    query = select(Appointment)
    if patient_id:
        query = query.where(Appointment.patient_id == patient_id)
    if provider_id:
        query = query.where(Appointment.provider_id == provider_id)
    if status:
        query = query.where(Appointment.status == status)

    query = query.order_by(Appointment.scheduled_date, Appointment.scheduled_time)
    query = query.offset(offset).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def list_reschedule_required(
    db: AsyncSession, provider_id: Optional[str] = None
) -> list[Appointment]:
    """Active bookings whose time range vanished from the regenerated schedule."""
    query = select(Appointment).where(
        Appointment.requires_reschedule.is_(True),
        Appointment.status.in_([AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED]),
    )
    if provider_id:
        query = query.where(Appointment.provider_id == provider_id)
    query = query.order_by(Appointment.scheduled_date, Appointment.scheduled_time)

    result = await db.execute(query)
    return list(result.scalars().all())


def _require_status(appointment: Appointment, allowed: list[AppointmentStatus], action: str) -> None:
    if appointment.status not in allowed:
        raise ValidationError(
            f"Cannot {action} appointment",
            [{
                "field": "status",
                "message": f"Appointment is {appointment.status.value}; "
                           f"expected {' or '.join(s.value for s in allowed)}",
            }],
        )


async def cancel_appointment(
    db: AsyncSession,
    appointment_id: UUID,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Appointment:
    """Cancel a pending/confirmed booking and free its slot.

    Cancelling after the policy deadline records the late-cancellation fee.
    """
    appointment = await get_appointment(db, appointment_id)
    _require_status(appointment, [AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED], "cancel")

    now = now or datetime.now()
    if now > appointment.cancellation_allowed_until:
        appointment.cancellation_fee_percentage = settings.LATE_CANCELLATION_FEE_PERCENTAGE

    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancellation_reason = reason
    appointment.cancelled_at = now
    if appointment.payment_status == PaymentStatus.PAID and appointment.cancellation_fee_percentage == 0:
        appointment.payment_status = PaymentStatus.REFUNDED

    await reservation_service.release_slot(db, appointment.id)
    await db.commit()
    await db.refresh(appointment)

    logger.info(
        "Cancelled appointment %s (slot %s, fee %d%%)",
        appointment.id,
        appointment.slot_id,
        appointment.cancellation_fee_percentage,
    )
    return appointment


async def complete_appointment(db: AsyncSession, appointment_id: UUID) -> Appointment:
    appointment = await get_appointment(db, appointment_id)
    _require_status(appointment, [AppointmentStatus.CONFIRMED], "complete")

    appointment.status = AppointmentStatus.COMPLETED
    await db.commit()
    await db.refresh(appointment)

    logger.info("Completed appointment %s", appointment.id)
    return appointment


async def mark_no_show(db: AsyncSession, appointment_id: UUID) -> Appointment:
    appointment = await get_appointment(db, appointment_id)
    _require_status(appointment, [AppointmentStatus.CONFIRMED], "mark no-show for")

    appointment.status = AppointmentStatus.NO_SHOW
    await db.commit()
    await db.refresh(appointment)

    logger.info("Appointment %s marked no-show", appointment.id)
    return appointment


async def update_payment_status(
    db: AsyncSession,
    appointment_id: UUID,
    payment_status: PaymentStatus,
    message: Optional[str] = None,
) -> Appointment:
    """Apply a payment collaborator callback.

    - paid: settles the payment; a pending booking becomes confirmed
    - failed: recorded, booking stays pending, PaymentError raised
    - refunded: only after paid
    """
    appointment = await get_appointment(db, appointment_id)

    if appointment.status == AppointmentStatus.CANCELLED and payment_status != PaymentStatus.REFUNDED:
        raise ValidationError(
            "Cannot update payment of a cancelled appointment",
            [{"field": "payment_status", "message": "Only refunds apply to cancelled appointments"}],
        )

    if payment_status == PaymentStatus.PAID:
        appointment.payment_status = PaymentStatus.PAID
        if appointment.status == AppointmentStatus.PENDING:
            appointment.status = AppointmentStatus.CONFIRMED
        await db.commit()
        await db.refresh(appointment)
        logger.info("Payment settled for appointment %s", appointment.id)
        return appointment

    if payment_status == PaymentStatus.FAILED:
        appointment.payment_status = PaymentStatus.FAILED
        await db.commit()
        logger.warning(
            "Payment failed for appointment %s: %s", appointment.id, message or "no details"
        )
        raise PaymentError(message or "Payment failed", appointment_id=appointment.id)

    if payment_status == PaymentStatus.REFUNDED:
        if appointment.payment_status != PaymentStatus.PAID:
            raise ValidationError(
                "Cannot refund an unpaid appointment",
                [{"field": "payment_status", "message": "Refund requires a settled payment"}],
            )
        appointment.payment_status = PaymentStatus.REFUNDED
        await db.commit()
        await db.refresh(appointment)
        logger.info("Payment refunded for appointment %s", appointment.id)
        return appointment

    raise ValidationError(
        "Unsupported payment status",
        [{"field": "payment_status", "message": f"{payment_status.value} cannot be reported"}],
    )
