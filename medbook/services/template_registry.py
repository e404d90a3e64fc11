"""Weekly template registry: one template per provider per weekday."""

import logging
from typing import Optional
from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.exceptions import ConfigurationError
from medbook.models.schedule import ScheduleTemplate
from medbook.schemas.schedule import (
    BreakTime,
    TemplateOut,
    WeeklyScheduleTemplate,
    WorkingHours,
)
from medbook.utils.time_utils import time_to_minutes

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def validate_template(template: WeeklyScheduleTemplate) -> None:
    """Raise ConfigurationError if the template cannot produce slots."""
    if template.slot_duration_minutes <= 0:
        raise ConfigurationError(
            f"slot_duration_minutes must be > 0 (got {template.slot_duration_minutes})"
        )

    start = time_to_minutes(template.working_hours.start)
    end = time_to_minutes(template.working_hours.end, allow_end_of_day=True)
    if start >= end:
        raise ConfigurationError(
            f"Working hours start {template.working_hours.start} must be before end {template.working_hours.end}"
        )

    for brk in template.break_times:
        brk_start = time_to_minutes(brk.start)
        brk_end = time_to_minutes(brk.end, allow_end_of_day=True)
        if brk_start >= brk_end:
            raise ConfigurationError(f"Break '{brk.label}' start {brk.start} must be before end {brk.end}")


def validate_weekday(weekday: int) -> None:
    if weekday < 0 or weekday > 6:
        raise ConfigurationError(f"weekday must be 0 (Monday) .. 6 (Sunday), got {weekday}")


def row_to_template(row: ScheduleTemplate) -> WeeklyScheduleTemplate:
    return WeeklyScheduleTemplate(
        is_working_day=row.is_working_day,
        working_hours=WorkingHours(start=row.working_hours_start, end=row.working_hours_end),
        break_times=[BreakTime(**b) for b in (row.break_times or [])],
        slot_duration_minutes=row.slot_duration_minutes,
        allowed_appointment_type_ids=list(row.allowed_appointment_type_ids or []),
    )


def _row_to_out(row: ScheduleTemplate) -> TemplateOut:
    template = row_to_template(row)
    return TemplateOut(provider_id=row.provider_id, weekday=row.weekday, **template.model_dump())


async def get_template(
    db: AsyncSession, provider_id: str, weekday: int
) -> Optional[WeeklyScheduleTemplate]:
    """Template for (provider, weekday), or None when the provider has none."""
    result = await db.execute(
        select(ScheduleTemplate).where(
            and_(
                ScheduleTemplate.provider_id == provider_id,
                ScheduleTemplate.weekday == weekday,
            )
        )
    )
    row = result.scalar_one_or_none()
    return row_to_template(row) if row else None


async def list_templates(db: AsyncSession, provider_id: str) -> list[TemplateOut]:
    result = await db.execute(
        select(ScheduleTemplate)
        .where(ScheduleTemplate.provider_id == provider_id)
        .order_by(ScheduleTemplate.weekday)
    )
    return [_row_to_out(row) for row in result.scalars().all()]


async def set_template(
    db: AsyncSession,
    provider_id: str,
    weekday: int,
    template: WeeklyScheduleTemplate,
) -> TemplateOut:
    """Replace the (provider, weekday) template wholesale."""
    validate_weekday(weekday)
    validate_template(template)

    result = await db.execute(
        select(ScheduleTemplate).where(
            and_(
                ScheduleTemplate.provider_id == provider_id,
                ScheduleTemplate.weekday == weekday,
            )
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = ScheduleTemplate(provider_id=provider_id, weekday=weekday)
        db.add(row)

    row.is_working_day = template.is_working_day
    row.working_hours_start = template.working_hours.start
    row.working_hours_end = template.working_hours.end
    row.break_times = [b.model_dump() for b in template.break_times]
    row.slot_duration_minutes = template.slot_duration_minutes
    row.allowed_appointment_type_ids = sorted(set(template.allowed_appointment_type_ids))

    await db.commit()
    await db.refresh(row)

    logger.info(
        "Template set for provider %s on %s: %s-%s every %d min",
        provider_id,
        WEEKDAY_NAMES[weekday],
        template.working_hours.start,
        template.working_hours.end,
        template.slot_duration_minutes,
    )
    return _row_to_out(row)


async def delete_template(db: AsyncSession, provider_id: str, weekday: int) -> bool:
    """Remove a template; the weekday becomes a non-working day."""
    validate_weekday(weekday)
    result = await db.execute(
        delete(ScheduleTemplate).where(
            and_(
                ScheduleTemplate.provider_id == provider_id,
                ScheduleTemplate.weekday == weekday,
            )
        )
    )
    await db.commit()
    return result.rowcount > 0
