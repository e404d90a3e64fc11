"""Schedule Generation Service

Expands a provider's weekly template plus calendar exceptions into a
concrete DailySchedule:
- Exceptions take precedence (blocked / modified / holiday)
- Clinic-wide holidays close the day when they affect schedules
- Slots walk working hours in slot_duration increments; slots touching a
  break are dropped entirely
- After-hours slots carry a price surcharge
- Reservation rows are merged back in by slot id, so regeneration never
  loses a booking
"""

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import settings
from medbook.core.exceptions import ConfigurationError
from medbook.models.appointment import SlotReservation
from medbook.models.schedule import ExceptionKind
from medbook.schemas.schedule import (
    CalendarExceptionOut,
    DailySchedule,
    HolidayOut,
    OrphanedReservation,
    TemplateOverride,
    TimeSlot,
    WeeklyScheduleTemplate,
)
from medbook.services import catalog_service, exception_store, template_registry
from medbook.utils.time_utils import minutes_to_time, ranges_overlap, time_to_minutes

logger = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.01")


def make_slot_id(provider_id: str, target_date: date, start_time: str) -> str:
    """Deterministic slot id: same provider/date/start always yields the same id."""
    return f"{provider_id}-{target_date.isoformat()}-{start_time}"


def slot_price(start_minutes: int, base_rate: Decimal) -> Decimal:
    """Base rate inside the core window, surcharged before/after it."""
    hour = start_minutes // 60
    if hour < settings.CORE_HOURS_START or hour >= settings.CORE_HOURS_END:
        multiplier = Decimal(str(settings.AFTER_HOURS_MULTIPLIER))
    else:
        multiplier = Decimal("1")
    return (Decimal(base_rate) * multiplier).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def apply_override(
    template: Optional[WeeklyScheduleTemplate],
    override: Optional[TemplateOverride],
) -> WeeklyScheduleTemplate:
    """Substitute the fields a "modified" exception sets."""
    changes = override.model_dump(exclude_none=True) if override else {}

    if template is None:
        # No weekly template for this weekday: the override must be complete
        if "working_hours" not in changes or "slot_duration_minutes" not in changes:
            raise ConfigurationError(
                "Modified exception on a day without a template must set working_hours and slot_duration_minutes"
            )
        return WeeklyScheduleTemplate(**changes)

    merged = template.model_dump()
    merged.update(changes)
    return WeeklyScheduleTemplate(**merged)


def generate_time_slots(
    provider_id: str,
    target_date: date,
    template: WeeklyScheduleTemplate,
    base_rate: Decimal,
) -> list[TimeSlot]:
    """Walk working hours in slot_duration steps, skipping break overlaps."""
    template_registry.validate_template(template)

    start_minutes = time_to_minutes(template.working_hours.start)
    end_minutes = time_to_minutes(template.working_hours.end, allow_end_of_day=True)
    duration = template.slot_duration_minutes

    breaks = [
        (time_to_minutes(b.start), time_to_minutes(b.end, allow_end_of_day=True))
        for b in template.break_times
    ]

    allowed = sorted(set(template.allowed_appointment_type_ids))
    appointment_type_id = allowed[0] if allowed else None

    slots = []
    current = start_minutes

    while current + duration <= end_minutes:
        slot_end = current + duration

        overlaps_break = any(
            ranges_overlap(current, slot_end, brk_start, brk_end)
            for brk_start, brk_end in breaks
        )
        if not overlaps_break:
            start_str = minutes_to_time(current)
            slots.append(
                TimeSlot(
                    id=make_slot_id(provider_id, target_date, start_str),
                    start_time=start_str,
                    end_time=minutes_to_time(slot_end),
                    duration_minutes=duration,
                    available=True,
                    price=slot_price(current, base_rate),
                    appointment_type_id=appointment_type_id,
                )
            )

        current += duration

    return slots


def merge_reservations(
    slots: list[TimeSlot], reservations: Sequence[SlotReservation]
) -> list[OrphanedReservation]:
    """Mark reserved slots unavailable in place; return reservations that no
    longer match a generated slot.

    A reservation matches only when id and boundaries are unchanged. Any
    generated slot overlapping an orphaned range is also made unavailable so
    the old booking can never be double-booked.
    """
    by_id = {r.slot_id: r for r in reservations}
    matched = set()

    for slot in slots:
        reservation = by_id.get(slot.id)
        if (
            reservation is not None
            and reservation.start_time == slot.start_time
            and reservation.end_time == slot.end_time
        ):
            slot.available = False
            slot.booked_by = reservation.booked_by
            matched.add(reservation.slot_id)

    orphaned = [
        OrphanedReservation(
            slot_id=r.slot_id,
            start_time=r.start_time,
            end_time=r.end_time,
            booked_by=r.booked_by,
            appointment_id=str(r.appointment_id),
        )
        for r in reservations
        if r.slot_id not in matched
    ]

    for orphan in orphaned:
        orphan_start = time_to_minutes(orphan.start_time)
        orphan_end = time_to_minutes(orphan.end_time, allow_end_of_day=True)
        for slot in slots:
            if slot.available and ranges_overlap(
                time_to_minutes(slot.start_time),
                time_to_minutes(slot.end_time, allow_end_of_day=True),
                orphan_start,
                orphan_end,
            ):
                slot.available = False

    return orphaned


def build_daily_schedule(
    provider_id: str,
    target_date: date,
    template: Optional[WeeklyScheduleTemplate],
    base_rate: Decimal,
    exception: Optional[CalendarExceptionOut] = None,
    holiday: Optional[HolidayOut] = None,
    reservations: Sequence[SlotReservation] = (),
) -> DailySchedule:
    """Pure schedule expansion. Same inputs always give the same schedule."""
    is_holiday = False
    holiday_name = None
    special_note = None
    closed = False
    effective = template

    if exception is not None:
        if exception.kind == ExceptionKind.BLOCKED:
            closed = True
            special_note = exception.reason or "Blocked"
        elif exception.kind == ExceptionKind.HOLIDAY:
            closed = True
            is_holiday = True
            holiday_name = exception.reason or "Holiday"
            special_note = f"Closed for {holiday_name}"
        elif exception.kind == ExceptionKind.MODIFIED:
            effective = apply_override(template, exception.override_template)
            special_note = exception.reason or None
            if holiday is not None:
                # Provider chose to work on a clinic holiday
                is_holiday = True
                holiday_name = holiday.name
    elif holiday is not None:
        is_holiday = True
        holiday_name = holiday.name
        if holiday.affects_schedule:
            closed = True
            special_note = f"Closed for {holiday.name}"

    is_working_day = effective is not None and effective.is_working_day and not closed

    time_slots = []
    if is_working_day:
        time_slots = generate_time_slots(provider_id, target_date, effective, base_rate)

    orphaned = merge_reservations(time_slots, reservations)

    return DailySchedule(
        provider_id=provider_id,
        date=target_date,
        day_of_week=target_date.weekday(),
        is_working_day=is_working_day,
        is_holiday=is_holiday,
        holiday_name=holiday_name,
        special_note=special_note,
        working_hours=effective.working_hours if effective else None,
        break_times=list(effective.break_times) if effective else [],
        time_slots=time_slots,
        orphaned_reservations=orphaned,
    )


async def get_reservations(
    db: AsyncSession, provider_id: str, target_date: date
) -> list[SlotReservation]:
    result = await db.execute(
        select(SlotReservation).where(
            and_(
                SlotReservation.provider_id == provider_id,
                SlotReservation.date == target_date,
            )
        )
    )
    return list(result.scalars().all())


async def generate_daily_schedule(
    db: AsyncSession, provider_id: str, target_date: date
) -> DailySchedule:
    """Generate the DailySchedule for (provider, date).

    Raises:
        NotFoundError: unknown or inactive provider
        ConfigurationError: malformed template or override
    """
    provider = await catalog_service.get_provider(db, provider_id)

    template = await template_registry.get_template(db, provider_id, target_date.weekday())
    exception = await exception_store.get_exception(db, provider_id, target_date)
    holiday = await exception_store.get_holiday(db, target_date)
    reservations = await get_reservations(db, provider_id, target_date)

    schedule = build_daily_schedule(
        provider_id=provider_id,
        target_date=target_date,
        template=template,
        base_rate=Decimal(provider.base_rate),
        exception=exception,
        holiday=holiday,
        reservations=reservations,
    )

    if schedule.orphaned_reservations:
        logger.warning(
            "Provider %s on %s has %d reservation(s) outside the current schedule",
            provider_id,
            target_date.isoformat(),
            len(schedule.orphaned_reservations),
        )
    return schedule


def find_slot(schedule: DailySchedule, slot_id: str) -> Optional[TimeSlot]:
    for slot in schedule.time_slots:
        if slot.id == slot_id:
            return slot
    return None


def nearest_available_slots(
    schedule: DailySchedule, start_time: str, limit: int = 3
) -> list[TimeSlot]:
    """Available slots ordered by distance from ``start_time``."""
    target = time_to_minutes(start_time)
    candidates = [s for s in schedule.time_slots if s.available]
    candidates.sort(key=lambda s: (abs(time_to_minutes(s.start_time) - target), s.start_time))
    return candidates[:limit]
