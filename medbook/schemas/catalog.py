"""Pydantic schemas for clinics, providers and appointment types."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class ClinicCreate(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    timezone: Optional[str] = "Asia/Jakarta"


class ClinicOut(ClinicCreate):
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProviderCreate(BaseModel):
    id: str
    name: str
    clinic_id: Optional[str] = None
    specialty: Optional[str] = None
    base_rate: Optional[Decimal] = Field(default=None, gt=0)


class ProviderOut(BaseModel):
    id: str
    name: str
    clinic_id: Optional[str] = None
    specialty: Optional[str] = None
    base_rate: Decimal
    is_active: bool

    class Config:
        from_attributes = True


class AppointmentTypeCreate(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    duration_minutes: int = Field(gt=0)
    price_min: Decimal = Decimal("0")
    price_max: Decimal = Decimal("0")
    is_emergency: bool = False
    allows_online: bool = False
    requires_preparation: bool = False


class AppointmentTypeOut(AppointmentTypeCreate):

    class Config:
        from_attributes = True
