"""Calendar exception store: per-provider exceptions and clinic-wide holidays.

Pure lookups keyed by date; precedence is applied by the schedule generator.
"""

import logging
from datetime import date
from typing import Optional
from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.exceptions import ConfigurationError, ValidationError
from medbook.models.schedule import CalendarException, ExceptionKind, Holiday
from medbook.schemas.schedule import (
    CalendarExceptionCreate,
    CalendarExceptionOut,
    HolidayCreate,
    HolidayOut,
    TemplateOverride,
)
from medbook.utils.time_utils import time_to_minutes

logger = logging.getLogger(__name__)


def validate_override(override: TemplateOverride) -> None:
    """Check the fields a "modified" exception sets, in isolation."""
    if override.slot_duration_minutes is not None and override.slot_duration_minutes <= 0:
        raise ConfigurationError(
            f"slot_duration_minutes must be > 0 (got {override.slot_duration_minutes})"
        )
    if override.working_hours is not None:
        start = time_to_minutes(override.working_hours.start)
        end = time_to_minutes(override.working_hours.end, allow_end_of_day=True)
        if start >= end:
            raise ConfigurationError("Override working hours start must be before end")
    for brk in override.break_times or []:
        if time_to_minutes(brk.start) >= time_to_minutes(brk.end, allow_end_of_day=True):
            raise ConfigurationError(f"Override break '{brk.label}' start must be before end")


def _row_to_out(row: CalendarException) -> CalendarExceptionOut:
    return CalendarExceptionOut(
        provider_id=row.provider_id,
        date=row.date,
        kind=row.kind,
        reason=row.reason or "",
        override_template=TemplateOverride(**row.override_template) if row.override_template else None,
    )


async def get_exception(
    db: AsyncSession, provider_id: str, target_date: date
) -> Optional[CalendarExceptionOut]:
    result = await db.execute(
        select(CalendarException).where(
            and_(
                CalendarException.provider_id == provider_id,
                CalendarException.date == target_date,
            )
        )
    )
    row = result.scalar_one_or_none()
    return _row_to_out(row) if row else None


async def list_exceptions(
    db: AsyncSession,
    provider_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[CalendarExceptionOut]:
    query = select(CalendarException).where(CalendarException.provider_id == provider_id)
    if start_date:
        query = query.where(CalendarException.date >= start_date)
    if end_date:
        query = query.where(CalendarException.date <= end_date)
    result = await db.execute(query.order_by(CalendarException.date))
    return [_row_to_out(row) for row in result.scalars().all()]


async def set_exception(
    db: AsyncSession, provider_id: str, data: CalendarExceptionCreate
) -> CalendarExceptionOut:
    """Create or replace the provider's exception for ``data.date``."""
    if data.kind == ExceptionKind.MODIFIED:
        if data.override_template is None:
            raise ValidationError(
                "A modified exception needs an override template",
                [{"field": "override_template", "message": "Required when kind is 'modified'"}],
            )
        validate_override(data.override_template)

    result = await db.execute(
        select(CalendarException).where(
            and_(
                CalendarException.provider_id == provider_id,
                CalendarException.date == data.date,
            )
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = CalendarException(provider_id=provider_id, date=data.date)
        db.add(row)

    row.kind = data.kind
    row.reason = data.reason
    row.override_template = (
        data.override_template.model_dump(exclude_none=True, mode="json")
        if data.override_template and data.kind == ExceptionKind.MODIFIED
        else None
    )

    await db.commit()
    await db.refresh(row)

    logger.info(
        "Calendar exception for provider %s on %s: %s (%s)",
        provider_id,
        data.date.isoformat(),
        data.kind.value,
        data.reason,
    )
    return _row_to_out(row)


async def delete_exception(db: AsyncSession, provider_id: str, target_date: date) -> bool:
    result = await db.execute(
        delete(CalendarException).where(
            and_(
                CalendarException.provider_id == provider_id,
                CalendarException.date == target_date,
            )
        )
    )
    await db.commit()
    return result.rowcount > 0


async def get_holiday(db: AsyncSession, target_date: date) -> Optional[HolidayOut]:
    """Holiday for ``target_date``: exact-date entries first, then fixed ones
    matching month/day in any year."""
    result = await db.execute(select(Holiday).where(Holiday.date == target_date))
    row = result.scalars().first()
    if row:
        return HolidayOut.model_validate(row)

    result = await db.execute(select(Holiday).where(Holiday.is_fixed.is_(True)))
    for row in result.scalars().all():
        if (row.date.month, row.date.day) == (target_date.month, target_date.day):
            return HolidayOut.model_validate(row)
    return None


async def list_holidays(db: AsyncSession) -> list[HolidayOut]:
    result = await db.execute(select(Holiday).order_by(Holiday.date))
    return [HolidayOut.model_validate(row) for row in result.scalars().all()]


async def add_holiday(db: AsyncSession, data: HolidayCreate) -> HolidayOut:
    row = Holiday(**data.model_dump())
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info("Holiday added: %s %s (fixed=%s)", row.date.isoformat(), row.name, row.is_fixed)
    return HolidayOut.model_validate(row)
