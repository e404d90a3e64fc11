"""Builders for test data shared across test modules."""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from medbook.models.appointment import PaymentMethod
from medbook.schemas.booking import (
    AppointmentInfo,
    Consents,
    EmergencyContact,
    PatientInformation,
    PaymentInformation,
    PersonalInfo,
)
from medbook.schemas.schedule import BreakTime, TimeSlot, WeeklyScheduleTemplate, WorkingHours
from medbook.services.booking_workflow import BookingWorkflow
from medbook.services.schedule_generator import make_slot_id

PROVIDER_ID = "dr-test"
CLINIC_ID = "clinic-test"
BASE_RATE = Decimal("150000")


def next_weekday(weekday: int, min_days_ahead: int = 1) -> date:
    """First date at least ``min_days_ahead`` days from today falling on ``weekday``."""
    day = date.today() + timedelta(days=min_days_ahead)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


def morning_template(**overrides) -> WeeklyScheduleTemplate:
    """08:00-12:00, 30 min slots, no breaks: eight slots."""
    values = dict(
        working_hours=WorkingHours(start="08:00", end="12:00"),
        break_times=[],
        slot_duration_minutes=30,
        allowed_appointment_type_ids=["consultation"],
    )
    values.update(overrides)
    return WeeklyScheduleTemplate(**values)


def clinic_day_template() -> WeeklyScheduleTemplate:
    """08:00-17:00 with a lunch break, 30 min slots."""
    return WeeklyScheduleTemplate(
        working_hours=WorkingHours(start="08:00", end="17:00"),
        break_times=[BreakTime(start="12:00", end="13:00", label="Lunch Break")],
        slot_duration_minutes=30,
        allowed_appointment_type_ids=["consultation", "follow-up"],
    )


def complete_patient_information(**overrides) -> PatientInformation:
    sections = dict(
        personal_info=PersonalInfo(
            full_name="Siti Rahma",
            phone_number="+628123456789",
            email="siti@example.com",
            address="Jl. Merdeka 10",
        ),
        emergency_contact=EmergencyContact(name="Budi", relationship="spouse", phone_number="+628111111111"),
        appointment_info=AppointmentInfo(chief_complaint="Persistent cough", symptoms=["cough"]),
        consents=Consents(treatment_consent=True, data_processing_consent=True),
    )
    sections.update(overrides)
    return PatientInformation(**sections)


def make_slot(day: date, start: str = "09:00", end: str = "09:30", price: str = "150000.00") -> TimeSlot:
    return TimeSlot(
        id=make_slot_id(PROVIDER_ID, day, start),
        start_time=start,
        end_time=end,
        duration_minutes=30,
        price=Decimal(price),
        appointment_type_id="consultation",
    )


def make_workflow(
    day: Optional[date] = None,
    start: str = "09:00",
    end: str = "09:30",
    payment_method: PaymentMethod = PaymentMethod.CASH,
    patient_id: str = "patient-1",
) -> BookingWorkflow:
    """Workflow with every step up to payment filled in."""
    day = day or next_weekday(0)
    workflow = BookingWorkflow(patient_id=patient_id)
    workflow.select_doctor(PROVIDER_ID, CLINIC_ID)
    workflow.select_appointment_type("consultation")
    workflow.select_date(day)
    workflow.select_time_slot(make_slot(day, start, end))
    workflow.update_patient_information(complete_patient_information())
    workflow.update_payment_information(PaymentInformation(payment_method=payment_method))
    return workflow
