"""Appointment management endpoints (post-commit lifecycle)."""

from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.database import get_db
from medbook.models.appointment import AppointmentStatus
from medbook.schemas.appointment import CancelRequest, PaymentStatusUpdate
from medbook.schemas.booking import AppointmentBooking
from medbook.services import appointment_service
from medbook.services.appointment_service import to_booking

router = APIRouter()


@router.get("", response_model=list[AppointmentBooking])
async def list_appointments(
    patient_id: Optional[str] = None,
    provider_id: Optional[str] = None,
    status: Optional[AppointmentStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    appointments = await appointment_service.list_appointments(
        db, patient_id=patient_id, provider_id=provider_id, status=status, limit=limit, offset=offset
    )
    return [to_booking(a) for a in appointments]


@router.get("/reschedule-required", response_model=list[AppointmentBooking])
async def list_reschedule_required(provider_id: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    """Bookings whose slot disappeared after a schedule change."""
    appointments = await appointment_service.list_reschedule_required(db, provider_id=provider_id)
    return [to_booking(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentBooking)
async def get_appointment(appointment_id: UUID, db: AsyncSession = Depends(get_db)):
    return to_booking(await appointment_service.get_appointment(db, appointment_id))


@router.put("/{appointment_id}/cancel", response_model=AppointmentBooking)
async def cancel_appointment(
    appointment_id: UUID,
    data: Optional[CancelRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Cancel and free the slot. Late cancellations record the fee."""
    reason = data.reason if data else None
    return to_booking(await appointment_service.cancel_appointment(db, appointment_id, reason))


@router.put("/{appointment_id}/complete", response_model=AppointmentBooking)
async def complete_appointment(appointment_id: UUID, db: AsyncSession = Depends(get_db)):
    return to_booking(await appointment_service.complete_appointment(db, appointment_id))


@router.put("/{appointment_id}/no-show", response_model=AppointmentBooking)
async def mark_no_show(appointment_id: UUID, db: AsyncSession = Depends(get_db)):
    return to_booking(await appointment_service.mark_no_show(db, appointment_id))


@router.post("/{appointment_id}/payment-status", response_model=AppointmentBooking)
async def update_payment_status(
    appointment_id: UUID,
    data: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Payment collaborator callback."""
    appointment = await appointment_service.update_payment_status(
        db, appointment_id, data.payment_status, data.message
    )
    return to_booking(appointment)
