"""Catalog models: clinics, providers (doctors) and appointment types."""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Numeric, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from medbook.core.database import Base


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    address = Column(Text, nullable=True)
    timezone = Column(String, nullable=True, default="Asia/Jakarta")

    created_at = Column(DateTime, default=datetime.utcnow)

    providers = relationship("Provider", back_populates="clinic")


class Provider(Base):
    """A doctor whose weekly templates drive slot generation.

    ``base_rate`` is the interior-hours price of one slot; the after-hours
    multiplier is applied on top of it by the schedule generator.
    """
    __tablename__ = "providers"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    clinic_id = Column(String, ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True, index=True)
    specialty = Column(String, nullable=True)
    base_rate = Column(Numeric(12, 2), nullable=False, default=150000)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    clinic = relationship("Clinic", back_populates="providers")


class AppointmentType(Base):
    __tablename__ = "appointment_types"

    id = Column(String, primary_key=True)  # "consultation", "follow-up", ...
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    price_min = Column(Numeric(12, 2), nullable=False, default=0)
    price_max = Column(Numeric(12, 2), nullable=False, default=0)
    is_emergency = Column(Boolean, default=False, nullable=False)
    allows_online = Column(Boolean, default=False, nullable=False)
    requires_preparation = Column(Boolean, default=False, nullable=False)
