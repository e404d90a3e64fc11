"""Generated schedule and availability endpoints (read-only)."""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.database import get_db
from medbook.schemas.availability import AvailabilityStatus
from medbook.schemas.schedule import DailySchedule, TimeRange
from medbook.services.availability_service import get_availability, group_time_ranges
from medbook.services.schedule_generator import generate_daily_schedule

router = APIRouter()


@router.get("/{provider_id}/schedule/{target_date}", response_model=DailySchedule)
async def get_daily_schedule(provider_id: str, target_date: date, db: AsyncSession = Depends(get_db)):
    """Slots for one provider and date, with reservations merged in."""
    return await generate_daily_schedule(db, provider_id, target_date)


@router.get("/{provider_id}/schedule/{target_date}/time-ranges", response_model=list[TimeRange])
async def get_time_ranges(provider_id: str, target_date: date, db: AsyncSession = Depends(get_db)):
    """The day's slots grouped into morning / afternoon / evening / night."""
    schedule = await generate_daily_schedule(db, provider_id, target_date)
    return group_time_ranges(schedule.time_slots)


@router.get("/{provider_id}/availability", response_model=list[AvailabilityStatus])
async def get_provider_availability(
    provider_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Per-date availability summary over an inclusive date range."""
    return await get_availability(db, provider_id, start_date, end_date)
