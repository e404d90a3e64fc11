"""Availability Service

Aggregates generated DailySchedules over a date range into per-date
AvailabilityStatus summaries, and groups a day's slots into time-of-day
ranges for display.
"""

import logging
from datetime import date, timedelta
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import settings
from medbook.core.exceptions import ConfigurationError, ValidationError
from medbook.schemas.availability import AvailabilityStatus
from medbook.schemas.schedule import DailySchedule, TimeRange, TimeSlot
from medbook.services import catalog_service
from medbook.services.schedule_generator import generate_daily_schedule

logger = logging.getLogger(__name__)

# (id, name, start hour, end hour); night wraps past midnight
TIME_RANGES = [
    ("morning", "Morning", 6, 12),
    ("afternoon", "Afternoon", 12, 17),
    ("evening", "Evening", 17, 21),
    ("night", "Night", 21, 6),
]


def classify_schedule(schedule: DailySchedule) -> AvailabilityStatus:
    """Summarize one DailySchedule."""
    available = [slot for slot in schedule.time_slots if slot.available]

    if not schedule.is_working_day:
        status = "blocked"
    elif not available:
        status = "busy"
    else:
        status = "available"

    next_available = min((slot.start_time for slot in available), default=None)

    return AvailabilityStatus(
        date=schedule.date,
        status=status,
        available_slots=len(available),
        total_slots=len(schedule.time_slots),
        next_available_time=next_available,
        working_hours=schedule.working_hours if schedule.is_working_day else None,
        break_times=schedule.break_times,
        is_holiday=schedule.is_holiday,
        holiday_name=schedule.holiday_name,
    )


def _range_for_hour(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def group_time_ranges(slots: list[TimeSlot]) -> list[TimeRange]:
    """Partition slots into morning/afternoon/evening/night buckets.

    Buckets without slots are omitted. Slot order inside a bucket follows
    the input order.
    """
    ranges = {
        range_id: TimeRange(
            id=range_id,
            name=name,
            start_time=f"{start:02d}:00",
            end_time=f"{end:02d}:00",
        )
        for range_id, name, start, end in TIME_RANGES
    }

    for slot in slots:
        hour = int(slot.start_time.split(":")[0])
        bucket = ranges[_range_for_hour(hour)]
        bucket.slots.append(slot)
        bucket.total_count += 1
        if slot.available:
            bucket.available_count += 1

    return [ranges[range_id] for range_id, *_ in TIME_RANGES if ranges[range_id].total_count > 0]


async def get_availability(
    db: AsyncSession,
    provider_id: str,
    start_date: date,
    end_date: date,
    today: Optional[date] = None,
) -> list[AvailabilityStatus]:
    """Per-date availability over the inclusive range, ascending.

    Dates outside the rolling generation horizon are reported as
    "unavailable". A failure while generating one date is logged and
    reported on that date only; the remaining dates still aggregate.
    """
    # Unknown provider fails the whole call
    await catalog_service.get_provider(db, provider_id)

    if start_date > end_date:
        start_date, end_date = end_date, start_date

    span = (end_date - start_date).days + 1
    if span > settings.MAX_AVAILABILITY_RANGE_DAYS:
        raise ValidationError(
            "Date range too long",
            [{
                "field": "end_date",
                "message": f"Range covers {span} days; maximum is {settings.MAX_AVAILABILITY_RANGE_DAYS}",
            }],
        )

    today = today or date.today()
    horizon_end = today + timedelta(days=settings.SCHEDULE_HORIZON_DAYS)

    results = []
    current = start_date

    while current <= end_date:
        if current < today or current > horizon_end:
            results.append(AvailabilityStatus(date=current, status="unavailable"))
        else:
            try:
                schedule = await generate_daily_schedule(db, provider_id, current)
                results.append(classify_schedule(schedule))
            except (ConfigurationError, SQLAlchemyError) as e:
                logger.exception(
                    "Availability generation failed for provider %s on %s",
                    provider_id,
                    current.isoformat(),
                )
                if isinstance(e, SQLAlchemyError):
                    await db.rollback()
                results.append(
                    AvailabilityStatus(date=current, status="unavailable", error=str(e))
                )
        current += timedelta(days=1)

    return results
