"""Pydantic schemas for templates, exceptions, holidays and generated schedules."""

from datetime import date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from medbook.models.schedule import ExceptionKind


class WorkingHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str  # "08:00"
    end: str  # "17:00"


class BreakTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str
    label: str = "Break"


class WeeklyScheduleTemplate(BaseModel):
    """Recurring pattern for one weekday. Replaced wholesale, never patched."""
    model_config = ConfigDict(frozen=True)

    is_working_day: bool = True
    working_hours: WorkingHours
    break_times: list[BreakTime] = Field(default_factory=list)
    slot_duration_minutes: int
    allowed_appointment_type_ids: list[str] = Field(default_factory=list)


class TemplateOverride(BaseModel):
    """Partial template carried by a "modified" exception.

    Only fields that are set replace the weekly template's values.
    """
    is_working_day: Optional[bool] = None
    working_hours: Optional[WorkingHours] = None
    break_times: Optional[list[BreakTime]] = None
    slot_duration_minutes: Optional[int] = None
    allowed_appointment_type_ids: Optional[list[str]] = None


class TemplateOut(WeeklyScheduleTemplate):
    provider_id: str
    weekday: int


class CalendarExceptionCreate(BaseModel):
    date: date
    kind: ExceptionKind
    reason: str = ""
    override_template: Optional[TemplateOverride] = None


class CalendarExceptionOut(CalendarExceptionCreate):
    provider_id: str

    class Config:
        from_attributes = True


class HolidayCreate(BaseModel):
    date: date
    name: str
    is_fixed: bool = False
    affects_schedule: bool = True


class HolidayOut(HolidayCreate):
    id: int

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    id: str  # "{provider_id}-{YYYY-MM-DD}-{HH:MM}"
    start_time: str
    end_time: str
    duration_minutes: int
    available: bool = True
    price: Decimal
    appointment_type_id: Optional[str] = None
    booked_by: Optional[str] = None


class OrphanedReservation(BaseModel):
    """A reservation whose time range no longer exists in the schedule."""
    slot_id: str
    start_time: str
    end_time: str
    booked_by: str
    appointment_id: str


class DailySchedule(BaseModel):
    provider_id: str
    date: date
    day_of_week: int  # 0=Monday
    is_working_day: bool
    is_holiday: bool = False
    holiday_name: Optional[str] = None
    special_note: Optional[str] = None
    working_hours: Optional[WorkingHours] = None
    break_times: list[BreakTime] = Field(default_factory=list)
    time_slots: list[TimeSlot] = Field(default_factory=list)
    orphaned_reservations: list[OrphanedReservation] = Field(default_factory=list)


class TimeRange(BaseModel):
    id: str  # morning, afternoon, evening, night
    name: str
    start_time: str
    end_time: str
    slots: list[TimeSlot] = Field(default_factory=list)
    available_count: int = 0
    total_count: int = 0
