"""Clinic, provider and appointment-type lookups."""

import logging
from decimal import Decimal
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import settings
from medbook.core.exceptions import NotFoundError, ValidationError
from medbook.models.catalog import AppointmentType, Clinic, Provider
from medbook.schemas.catalog import AppointmentTypeCreate, ClinicCreate, ProviderCreate

logger = logging.getLogger(__name__)


async def get_provider(db: AsyncSession, provider_id: str, active_only: bool = True) -> Provider:
    """Fetch a provider or raise NotFoundError.

    Inactive providers are treated as unknown unless ``active_only`` is off.
    """
    provider = await db.get(Provider, provider_id)
    if provider is None or (active_only and not provider.is_active):
        raise NotFoundError("Provider", provider_id)
    return provider


async def list_providers(db: AsyncSession, clinic_id: Optional[str] = None) -> list[Provider]:
    query = select(Provider).where(Provider.is_active.is_(True))
    if clinic_id:
        query = query.where(Provider.clinic_id == clinic_id)
    result = await db.execute(query.order_by(Provider.name))
    return list(result.scalars().all())


async def create_provider(db: AsyncSession, data: ProviderCreate) -> Provider:
    if await db.get(Provider, data.id) is not None:
        raise ValidationError(
            "Provider already exists",
            [{"field": "id", "message": f"Provider {data.id} already exists"}],
        )
    if data.clinic_id:
        await get_clinic(db, data.clinic_id)

    provider = Provider(
        id=data.id,
        name=data.name,
        clinic_id=data.clinic_id,
        specialty=data.specialty,
        base_rate=data.base_rate if data.base_rate is not None else Decimal(settings.DEFAULT_BASE_RATE),
        is_active=True,
    )
    db.add(provider)
    await db.commit()
    await db.refresh(provider)

    logger.info("Created provider %s (%s)", provider.id, provider.name)
    return provider


async def get_clinic(db: AsyncSession, clinic_id: str) -> Clinic:
    clinic = await db.get(Clinic, clinic_id)
    if clinic is None:
        raise NotFoundError("Clinic", clinic_id)
    return clinic


async def list_clinics(db: AsyncSession) -> list[Clinic]:
    result = await db.execute(select(Clinic).order_by(Clinic.name))
    return list(result.scalars().all())


async def create_clinic(db: AsyncSession, data: ClinicCreate) -> Clinic:
    if await db.get(Clinic, data.id) is not None:
        raise ValidationError(
            "Clinic already exists",
            [{"field": "id", "message": f"Clinic {data.id} already exists"}],
        )
    clinic = Clinic(**data.model_dump())
    db.add(clinic)
    await db.commit()
    await db.refresh(clinic)
    return clinic


async def get_appointment_type(db: AsyncSession, appointment_type_id: str) -> AppointmentType:
    appointment_type = await db.get(AppointmentType, appointment_type_id)
    if appointment_type is None:
        raise NotFoundError("Appointment type", appointment_type_id)
    return appointment_type


async def list_appointment_types(db: AsyncSession) -> list[AppointmentType]:
    result = await db.execute(select(AppointmentType).order_by(AppointmentType.name))
    return list(result.scalars().all())


async def create_appointment_type(db: AsyncSession, data: AppointmentTypeCreate) -> AppointmentType:
    if await db.get(AppointmentType, data.id) is not None:
        raise ValidationError(
            "Appointment type already exists",
            [{"field": "id", "message": f"Appointment type {data.id} already exists"}],
        )
    if data.price_max < data.price_min:
        raise ValidationError(
            "Invalid price range",
            [{"field": "price_max", "message": "price_max must be >= price_min"}],
        )
    appointment_type = AppointmentType(**data.model_dump())
    db.add(appointment_type)
    await db.commit()
    await db.refresh(appointment_type)
    return appointment_type
