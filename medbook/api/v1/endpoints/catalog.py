"""Clinic, provider, appointment-type and holiday endpoints."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.database import get_db
from medbook.schemas.catalog import (
    AppointmentTypeCreate,
    AppointmentTypeOut,
    ClinicCreate,
    ClinicOut,
    ProviderCreate,
    ProviderOut,
)
from medbook.schemas.schedule import HolidayCreate, HolidayOut
from medbook.services import catalog_service, exception_store
from medbook.services.reservation_service import flag_holiday_reservations

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/clinics", response_model=ClinicOut, status_code=201)
async def create_clinic(data: ClinicCreate, db: AsyncSession = Depends(get_db)):
    return await catalog_service.create_clinic(db, data)


@router.get("/clinics", response_model=list[ClinicOut])
async def list_clinics(db: AsyncSession = Depends(get_db)):
    return await catalog_service.list_clinics(db)


@router.post("/providers", response_model=ProviderOut, status_code=201)
async def create_provider(data: ProviderCreate, db: AsyncSession = Depends(get_db)):
    """Register a provider. Base rate defaults to the configured clinic rate."""
    return await catalog_service.create_provider(db, data)


@router.get("/providers", response_model=list[ProviderOut])
async def list_providers(clinic_id: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    return await catalog_service.list_providers(db, clinic_id=clinic_id)


@router.get("/providers/{provider_id}", response_model=ProviderOut)
async def get_provider(provider_id: str, db: AsyncSession = Depends(get_db)):
    return await catalog_service.get_provider(db, provider_id)


@router.post("/appointment-types", response_model=AppointmentTypeOut, status_code=201)
async def create_appointment_type(data: AppointmentTypeCreate, db: AsyncSession = Depends(get_db)):
    return await catalog_service.create_appointment_type(db, data)


@router.get("/appointment-types", response_model=list[AppointmentTypeOut])
async def list_appointment_types(db: AsyncSession = Depends(get_db)):
    return await catalog_service.list_appointment_types(db)


@router.post("/holidays", response_model=HolidayOut, status_code=201)
async def add_holiday(data: HolidayCreate, db: AsyncSession = Depends(get_db)):
    """Add a clinic-wide holiday. Fixed holidays recur every year.

    Bookings on a closing holiday are flagged for manual reschedule.
    """
    holiday = await exception_store.add_holiday(db, data)
    if holiday.affects_schedule:
        flagged = await flag_holiday_reservations(db, holiday.date, holiday.is_fixed)
        if flagged:
            logger.warning(
                "%d appointment(s) need rescheduling after holiday %s", len(flagged), holiday.name
            )
    return holiday


@router.get("/holidays", response_model=list[HolidayOut])
async def list_holidays(db: AsyncSession = Depends(get_db)):
    return await exception_store.list_holidays(db)
