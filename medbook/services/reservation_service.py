"""Slot reservation: the one shared-resource mutation in the system.

Reserving is a compare-and-swap on slot availability:
- an in-process asyncio.Lock keyed by slot id serializes check-then-insert
  for sessions in this worker
- the slot_reservations primary key rejects a second insert from any other
  worker (IntegrityError -> SlotConflictError)
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import Callable, Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.exceptions import SlotConflictError
from medbook.models.appointment import Appointment, SlotReservation
from medbook.schemas.schedule import DailySchedule, TimeSlot
from medbook.services.schedule_generator import (
    find_slot,
    generate_daily_schedule,
    nearest_available_slots,
)

logger = logging.getLogger(__name__)


class _SlotLock:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


_slot_locks: dict[str, _SlotLock] = {}


@asynccontextmanager
async def slot_lock(slot_id: str):
    """Hold the per-slot mutex; the entry is dropped once nobody uses it."""
    entry = _slot_locks.get(slot_id)
    if entry is None:
        entry = _SlotLock()
        _slot_locks[slot_id] = entry
    entry.users += 1
    try:
        async with entry.lock:
            yield
    finally:
        entry.users -= 1
        if entry.users == 0:
            _slot_locks.pop(slot_id, None)


def _alternatives(schedule: DailySchedule, start_time: Optional[str]) -> list[dict]:
    if not start_time:
        return []
    return [s.model_dump(mode="json") for s in nearest_available_slots(schedule, start_time)]


async def reserve_slot(
    db: AsyncSession,
    *,
    provider_id: str,
    target_date: date,
    slot_id: str,
    booked_by: str,
    build_appointment: Callable[[TimeSlot], Appointment],
    requested_start_time: Optional[str] = None,
) -> tuple[Appointment, TimeSlot]:
    """Atomically reserve ``slot_id`` and persist the appointment built for it.

    The schedule is regenerated under the slot lock, so availability is
    checked at commit time, not at selection time.

    Raises:
        SlotConflictError: slot taken, or no longer part of the schedule
            (template/exception change). Carries nearby alternatives.
    """
    async with slot_lock(slot_id):
        schedule = await generate_daily_schedule(db, provider_id, target_date)
        slot = find_slot(schedule, slot_id)

        if slot is None:
            logger.warning("Slot %s no longer exists for provider %s", slot_id, provider_id)
            raise SlotConflictError(
                slot_id,
                reason="Time slot no longer exists in the provider's schedule",
                alternatives=_alternatives(schedule, requested_start_time),
            )

        if not slot.available:
            logger.warning("Slot %s already booked (by %s)", slot_id, slot.booked_by)
            raise SlotConflictError(
                slot_id,
                alternatives=_alternatives(schedule, slot.start_time),
            )

        appointment = build_appointment(slot)
        if appointment.id is None:
            appointment.id = uuid.uuid4()

        try:
            db.add(appointment)
            await db.flush()
            db.add(
                SlotReservation(
                    slot_id=slot.id,
                    provider_id=provider_id,
                    date=target_date,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    booked_by=booked_by,
                    appointment_id=appointment.id,
                )
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Slot %s reserved concurrently by another worker", slot_id)
            raise SlotConflictError(slot_id)

        await db.refresh(appointment)

    logger.info(
        "Reserved slot %s for %s (appointment %s)",
        slot_id,
        booked_by,
        appointment.id,
    )
    return appointment, slot


async def release_slot(db: AsyncSession, appointment_id: uuid.UUID) -> bool:
    """Delete the reservation held by an appointment. Caller commits."""
    result = await db.execute(
        select(SlotReservation).where(SlotReservation.appointment_id == appointment_id)
    )
    reservation = result.scalar_one_or_none()
    if reservation is None:
        return False
    await db.delete(reservation)
    return True


async def flag_orphaned_reservations(
    db: AsyncSession, provider_id: str, from_date: Optional[date] = None
) -> list[uuid.UUID]:
    """Flag bookings whose slot vanished after a template/exception change.

    Bookings are marked ``requires_reschedule`` for manual follow-up; their
    reservation rows are kept so the time range stays blocked.
    """
    from_date = from_date or date.today()

    result = await db.execute(
        select(SlotReservation.date)
        .where(SlotReservation.provider_id == provider_id)
        .where(SlotReservation.date >= from_date)
        .distinct()
    )
    reserved_dates = sorted(result.scalars().all())

    flagged = []
    for reserved_date in reserved_dates:
        schedule = await generate_daily_schedule(db, provider_id, reserved_date)
        for orphan in schedule.orphaned_reservations:
            appointment = await db.get(Appointment, uuid.UUID(orphan.appointment_id))
            if appointment is not None and not appointment.requires_reschedule:
                appointment.requires_reschedule = True
                flagged.append(appointment.id)
                logger.warning(
                    "Appointment %s (%s %s-%s) flagged for reschedule after schedule change",
                    appointment.id,
                    reserved_date.isoformat(),
                    orphan.start_time,
                    orphan.end_time,
                )

    if flagged:
        await db.commit()
    return flagged


async def flag_holiday_reservations(
    db: AsyncSession, holiday_date: date, is_fixed: bool = False
) -> list[uuid.UUID]:
    """Flag bookings displaced by a clinic-wide holiday.

    Fixed holidays match every upcoming reservation on the same month/day.
    """
    today = date.today()
    result = await db.execute(
        select(SlotReservation.provider_id, SlotReservation.date)
        .where(SlotReservation.date >= today)
        .distinct()
    )

    provider_ids = set()
    for provider_id, reserved_date in result.all():
        if is_fixed:
            hit = (reserved_date.month, reserved_date.day) == (holiday_date.month, holiday_date.day)
        else:
            hit = reserved_date == holiday_date
        if hit:
            provider_ids.add(provider_id)

    flagged = []
    for provider_id in sorted(provider_ids):
        flagged.extend(await flag_orphaned_reservations(db, provider_id, from_date=today))
    return flagged
