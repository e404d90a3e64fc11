"""Schedule source-of-truth tables: weekly templates, exceptions, holidays.

Daily schedules and slots are never stored; they are regenerated from
these rows plus ``slot_reservations``.
"""

from sqlalchemy import (
    Column, String, DateTime, Boolean, Integer, Date, ForeignKey, Text,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.types import JSON
import enum
from datetime import datetime
from medbook.core.database import Base


class ExceptionKind(str, enum.Enum):
    BLOCKED = "blocked"
    MODIFIED = "modified"
    HOLIDAY = "holiday"


class ScheduleTemplate(Base):
    """Recurring template for one provider on one weekday (0=Monday)."""
    __tablename__ = "schedule_templates"
    __table_args__ = (
        UniqueConstraint("provider_id", "weekday", name="uq_schedule_templates_provider_weekday"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(String, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)

    is_working_day = Column(Boolean, default=True, nullable=False)
    working_hours_start = Column(String, nullable=False)  # "08:00"
    working_hours_end = Column(String, nullable=False)  # "17:00"
    break_times = Column(JSON, nullable=False, default=list)  # [{"start": "12:00", "end": "13:00", "label": "Lunch"}]
    slot_duration_minutes = Column(Integer, nullable=False)
    allowed_appointment_type_ids = Column(JSON, nullable=False, default=list)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CalendarException(Base):
    """Per-provider override for a single date. One per provider per date."""
    __tablename__ = "calendar_exceptions"
    __table_args__ = (
        UniqueConstraint("provider_id", "date", name="uq_calendar_exceptions_provider_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(String, ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    kind = Column(SQLEnum(ExceptionKind, name="exception_kind_enum"), nullable=False)
    reason = Column(Text, nullable=False, default="")
    override_template = Column(JSON, nullable=True)  # partial template fields for "modified"

    created_at = Column(DateTime, default=datetime.utcnow)


class Holiday(Base):
    """Clinic-wide holiday.

    Fixed holidays recur every year on the same month/day; floating ones
    (lunar calendar etc.) match their exact date only.
    """
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    name = Column(String, nullable=False)
    is_fixed = Column(Boolean, default=False, nullable=False)
    affects_schedule = Column(Boolean, default=True, nullable=False)
