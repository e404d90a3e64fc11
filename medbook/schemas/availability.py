"""Pydantic schemas for availability summaries."""

from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field
from medbook.schemas.schedule import BreakTime, WorkingHours


class AvailabilityStatus(BaseModel):
    """Per-date summary derived from a DailySchedule. Never mutated directly."""
    date: date
    status: Literal["available", "busy", "blocked", "unavailable"]
    available_slots: int = 0
    total_slots: int = 0
    next_available_time: Optional[str] = None
    working_hours: Optional[WorkingHours] = None
    break_times: list[BreakTime] = Field(default_factory=list)
    is_holiday: bool = False
    holiday_name: Optional[str] = None
    error: Optional[str] = None  # set when this date failed to generate
