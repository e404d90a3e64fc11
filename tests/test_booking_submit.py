"""Tests for committing a booking: reservation, conflicts and races."""

import asyncio
from datetime import datetime, time
from unittest.mock import AsyncMock, patch
import pytest
from sqlalchemy import func, select

from medbook.core.exceptions import SlotConflictError, ValidationError
from medbook.models.appointment import (
    Appointment,
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
    SlotReservation,
)
from medbook.schemas.booking import BookingStep
from medbook.services import template_registry
from medbook.services.booking_workflow import BookingWorkflow
from medbook.services.schedule_generator import find_slot, generate_daily_schedule
from tests.factories import PROVIDER_ID, make_workflow, morning_template, next_weekday


async def _appointment_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(Appointment))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_submit_creates_confirmed_cash_booking(db, weekday_provider):
    monday = next_weekday(0)
    workflow = make_workflow(monday)
    workflow.go_to_step(BookingStep.BOOKING_CONFIRMATION)

    booking = await workflow.submit_booking(db)

    assert booking.status == AppointmentStatus.CONFIRMED
    assert booking.payment_status == PaymentStatus.PENDING
    assert booking.payment_method == PaymentMethod.CASH
    assert booking.slot_id == f"{PROVIDER_ID}-{monday.isoformat()}-09:00"
    assert booking.scheduled_time == time(9, 0)
    assert booking.cancellation_policy.allowed_until == datetime.combine(monday, time(7, 0))
    assert booking.notes == "Persistent cough"
    assert booking.symptoms == ["cough"]

    state = workflow.get_state()
    assert state.current_step == BookingStep.BOOKING_SUCCESS
    assert BookingStep.BOOKING_CONFIRMATION in state.completed_steps
    assert state.confirmed_booking == booking
    assert state.error is None

    schedule = await generate_daily_schedule(db, PROVIDER_ID, monday)
    slot = find_slot(schedule, booking.slot_id)
    assert slot.available is False
    assert slot.booked_by == "patient-1"


@pytest.mark.asyncio
async def test_card_payment_leaves_booking_pending(db, weekday_provider):
    workflow = make_workflow(payment_method=PaymentMethod.CARD)
    booking = await workflow.submit_booking(db)
    assert booking.status == AppointmentStatus.PENDING
    assert booking.payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_incomplete_booking_is_rejected(db, weekday_provider):
    workflow = BookingWorkflow(patient_id="patient-1")
    workflow.select_doctor(PROVIDER_ID)

    with pytest.raises(ValidationError) as exc_info:
        await workflow.submit_booking(db)

    fields = [e["field"] for e in exc_info.value.errors]
    assert "appointment_type" in fields
    assert "payment_method" in fields
    assert await _appointment_count(db) == 0


@pytest.mark.asyncio
async def test_second_submit_of_same_session_is_rejected(db, weekday_provider):
    workflow = make_workflow()
    await workflow.submit_booking(db)

    with pytest.raises(ValidationError):
        await workflow.submit_booking(db)
    assert await _appointment_count(db) == 1


@pytest.mark.asyncio
async def test_concurrent_submits_for_same_slot(db, weekday_provider, session_factory):
    """Two sessions race for one slot: exactly one wins."""
    monday = next_weekday(0)
    first = make_workflow(monday, patient_id="patient-a")
    second = make_workflow(monday, patient_id="patient-b")
    for workflow in (first, second):
        workflow.go_to_step(BookingStep.BOOKING_CONFIRMATION)

    async with session_factory() as db_a, session_factory() as db_b:
        results = await asyncio.gather(
            first.submit_booking(db_a),
            second.submit_booking(db_b),
            return_exceptions=True,
        )

    conflicts = [r for r in results if isinstance(r, SlotConflictError)]
    bookings = [r for r in results if not isinstance(r, Exception)]
    assert len(bookings) == 1
    assert len(conflicts) == 1

    loser = second if bookings[0].patient_id == "patient-a" else first
    loser_state = loser.get_state()
    assert loser_state.current_step == BookingStep.BOOKING_CONFIRMATION
    assert loser_state.confirmed_booking is None
    assert loser_state.error is not None
    assert loser_state.selected_time_slot is not None

    assert await _appointment_count(db) == 1
    result = await db.execute(select(SlotReservation))
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_conflict_offers_nearby_alternatives(db, weekday_provider):
    monday = next_weekday(0)
    await make_workflow(monday, patient_id="patient-a").submit_booking(db)

    late = make_workflow(monday, patient_id="patient-b")
    with pytest.raises(SlotConflictError) as exc_info:
        await late.submit_booking(db)

    alternatives = [a["start_time"] for a in exc_info.value.alternatives]
    assert alternatives == ["08:30", "09:30", "08:00"]


@pytest.mark.asyncio
async def test_unique_slot_constraint_rejects_stale_reservation(db, weekday_provider, session_factory):
    """A worker acting on a stale schedule still cannot double-book."""
    monday = next_weekday(0)
    stale = await generate_daily_schedule(db, PROVIDER_ID, monday)

    await make_workflow(monday, patient_id="patient-a").submit_booking(db)

    other_worker = make_workflow(monday, patient_id="patient-b")
    async with session_factory() as other_db:
        with patch(
            "medbook.services.reservation_service.generate_daily_schedule",
            new=AsyncMock(return_value=stale),
        ):
            with pytest.raises(SlotConflictError):
                await other_worker.submit_booking(other_db)

    assert await _appointment_count(db) == 1


@pytest.mark.asyncio
async def test_slot_removed_by_template_change(db, provider):
    monday = next_weekday(0)
    await template_registry.set_template(db, PROVIDER_ID, 0, morning_template())
    workflow = make_workflow(monday)

    await template_registry.set_template(db, PROVIDER_ID, 0, morning_template(slot_duration_minutes=45))

    with pytest.raises(SlotConflictError) as exc_info:
        await workflow.submit_booking(db)

    assert "no longer exists" in exc_info.value.message
    assert [a["start_time"] for a in exc_info.value.alternatives] == ["08:45", "09:30", "08:00"]
    assert workflow.state.confirmed_booking is None
    assert await _appointment_count(db) == 0
