"""Weekly template and calendar exception endpoints.

Every write re-checks the provider's future reservations so bookings whose
time range disappeared are flagged for rescheduling.
"""

import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.database import get_db
from medbook.core.exceptions import NotFoundError
from medbook.schemas.schedule import (
    CalendarExceptionCreate,
    CalendarExceptionOut,
    TemplateOut,
    WeeklyScheduleTemplate,
)
from medbook.services import catalog_service, exception_store, template_registry
from medbook.services.reservation_service import flag_orphaned_reservations

router = APIRouter()
logger = logging.getLogger(__name__)


async def _reconcile(db: AsyncSession, provider_id: str) -> None:
    flagged = await flag_orphaned_reservations(db, provider_id)
    if flagged:
        logger.warning(
            "%d appointment(s) for provider %s need rescheduling", len(flagged), provider_id
        )


# ============================================================================
# WEEKLY TEMPLATES
# ============================================================================

@router.get("/{provider_id}/templates", response_model=list[TemplateOut])
async def list_templates(provider_id: str, db: AsyncSession = Depends(get_db)):
    await catalog_service.get_provider(db, provider_id)
    return await template_registry.list_templates(db, provider_id)


@router.get("/{provider_id}/templates/{weekday}", response_model=TemplateOut)
async def get_template(provider_id: str, weekday: int, db: AsyncSession = Depends(get_db)):
    await catalog_service.get_provider(db, provider_id)
    template_registry.validate_weekday(weekday)
    template = await template_registry.get_template(db, provider_id, weekday)
    if template is None:
        raise NotFoundError("Template", f"{provider_id}/{weekday}")
    return TemplateOut(provider_id=provider_id, weekday=weekday, **template.model_dump())


@router.put("/{provider_id}/templates/{weekday}", response_model=TemplateOut)
async def set_template(
    provider_id: str,
    weekday: int,
    template: WeeklyScheduleTemplate,
    db: AsyncSession = Depends(get_db),
):
    """Replace the provider's template for a weekday (0 = Monday)."""
    await catalog_service.get_provider(db, provider_id)
    result = await template_registry.set_template(db, provider_id, weekday, template)
    await _reconcile(db, provider_id)
    return result


@router.delete("/{provider_id}/templates/{weekday}", status_code=204)
async def delete_template(provider_id: str, weekday: int, db: AsyncSession = Depends(get_db)):
    await catalog_service.get_provider(db, provider_id)
    if not await template_registry.delete_template(db, provider_id, weekday):
        raise NotFoundError("Template", f"{provider_id}/{weekday}")
    await _reconcile(db, provider_id)
    return Response(status_code=204)


# ============================================================================
# CALENDAR EXCEPTIONS
# ============================================================================

@router.post("/{provider_id}/exceptions", response_model=CalendarExceptionOut, status_code=201)
async def set_exception(
    provider_id: str,
    data: CalendarExceptionCreate,
    db: AsyncSession = Depends(get_db),
):
    """Block, modify or mark a holiday on one date. Replaces any existing one."""
    await catalog_service.get_provider(db, provider_id)
    result = await exception_store.set_exception(db, provider_id, data)
    await _reconcile(db, provider_id)
    return result


@router.get("/{provider_id}/exceptions", response_model=list[CalendarExceptionOut])
async def list_exceptions(
    provider_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
):
    await catalog_service.get_provider(db, provider_id)
    return await exception_store.list_exceptions(db, provider_id, start_date, end_date)


@router.delete("/{provider_id}/exceptions/{target_date}", status_code=204)
async def delete_exception(provider_id: str, target_date: date, db: AsyncSession = Depends(get_db)):
    await catalog_service.get_provider(db, provider_id)
    if not await exception_store.delete_exception(db, provider_id, target_date):
        raise NotFoundError("Calendar exception", f"{provider_id}/{target_date.isoformat()}")
    await _reconcile(db, provider_id)
    return Response(status_code=204)
