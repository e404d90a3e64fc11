"""Persisted snapshot of an in-progress booking workflow."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.types import JSON
from datetime import datetime
from medbook.core.database import Base


class BookingSession(Base):
    __tablename__ = "booking_sessions"

    id = Column(String, primary_key=True)
    patient_id = Column(String, nullable=True, index=True)
    # Allow-listed fields only; see BookingWorkflow.to_snapshot()
    snapshot = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
