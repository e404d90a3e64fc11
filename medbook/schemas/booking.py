"""Pydantic schemas for the booking workflow and its hand-off record."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from medbook.models.appointment import AppointmentStatus, PaymentMethod, PaymentStatus
from medbook.schemas.schedule import TimeSlot


class BookingStep(str, Enum):
    DOCTOR_SELECTION = "doctor-selection"
    APPOINTMENT_TYPE = "appointment-type"
    DATE_SELECTION = "date-selection"
    TIME_SELECTION = "time-selection"
    PATIENT_INFORMATION = "patient-information"
    INSURANCE_VERIFICATION = "insurance-verification"
    BOOKING_CONFIRMATION = "booking-confirmation"
    BOOKING_SUCCESS = "booking-success"


# ---------------------------------------------------------------------------
# Patient information (every field optional so partial saves are allowed;
# completeness is checked by the workflow's step validation)
# ---------------------------------------------------------------------------

class PersonalInfo(BaseModel):
    full_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female"]] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    id_number: Optional[str] = None


class Medication(BaseModel):
    name: str
    dosage: str
    frequency: str


class MedicalInfo(BaseModel):
    blood_type: Optional[str] = None
    allergies: list[str] = Field(default_factory=list)
    chronic_conditions: list[str] = Field(default_factory=list)
    current_medications: list[Medication] = Field(default_factory=list)


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None


class AppointmentInfo(BaseModel):
    chief_complaint: Optional[str] = None
    symptoms: list[str] = Field(default_factory=list)
    symptom_duration: Optional[str] = None
    pain_level: Optional[int] = Field(default=None, ge=0, le=10)
    is_first_visit: bool = True
    preferred_language: Literal["id", "en"] = "id"
    special_requests: Optional[str] = None


class Consents(BaseModel):
    treatment_consent: bool = False
    data_processing_consent: bool = False
    communication_consent: bool = False
    marketing_consent: bool = False


class PatientInformation(BaseModel):
    personal_info: Optional[PersonalInfo] = None
    medical_info: Optional[MedicalInfo] = None
    emergency_contact: Optional[EmergencyContact] = None
    appointment_info: Optional[AppointmentInfo] = None
    consents: Optional[Consents] = None


# ---------------------------------------------------------------------------
# Payment / insurance (never persisted beyond payment_method)
# ---------------------------------------------------------------------------

def _mask(value: Optional[str], visible: int = 4) -> Optional[str]:
    if not value:
        return value
    return "*" * max(len(value) - visible, 0) + value[-visible:]


class InsuranceDetails(BaseModel):
    provider_id: Optional[str] = None
    provider_name: Optional[str] = None
    policy_number: Optional[str] = None
    policy_holder_name: Optional[str] = None
    policy_holder_relation: Optional[Literal["self", "spouse", "parent", "child", "other"]] = None
    valid_until: Optional[date] = None
    pre_auth_required: bool = False


class CardDetails(BaseModel):
    card_number: Optional[str] = None
    card_holder_name: Optional[str] = None
    expiry_date: Optional[str] = None
    cvv: Optional[str] = None

    def masked(self) -> "CardDetails":
        """Copy safe to echo back: last four digits only, no CVV."""
        return self.model_copy(update={"card_number": _mask(self.card_number), "cvv": None})


class EwalletDetails(BaseModel):
    provider: Optional[str] = None
    phone_number: Optional[str] = None

    def masked(self) -> "EwalletDetails":
        return self.model_copy(update={"phone_number": _mask(self.phone_number)})


class PaymentInformation(BaseModel):
    payment_method: Optional[PaymentMethod] = None
    has_insurance: bool = False
    insurance_details: Optional[InsuranceDetails] = None
    card_details: Optional[CardDetails] = None
    ewallet_details: Optional[EwalletDetails] = None

    def masked(self) -> "PaymentInformation":
        return self.model_copy(update={
            "card_details": self.card_details.masked() if self.card_details else None,
            "ewallet_details": self.ewallet_details.masked() if self.ewallet_details else None,
        })


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationIssue(BaseModel):
    field: str
    message: str


class BookingValidation(BaseModel):
    is_valid: bool = True
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    def add_error(self, field: str, message: str) -> None:
        self.errors.append(ValidationIssue(field=field, message=message))
        self.is_valid = False

    def add_warning(self, field: str, message: str) -> None:
        self.warnings.append(ValidationIssue(field=field, message=message))


# ---------------------------------------------------------------------------
# Commit result
# ---------------------------------------------------------------------------

class CancellationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    allowed_until: datetime
    fee_percentage: int = 0


class AppointmentBooking(BaseModel):
    """Immutable hand-off record produced by a successful commit.

    Notification and payment collaborators receive it by value.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    patient_id: str
    provider_id: str
    clinic_id: Optional[str] = None
    appointment_type_id: str
    slot_id: str
    scheduled_date: date
    scheduled_time: time
    duration_minutes: int
    price: Decimal
    status: AppointmentStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    insurance_provider: Optional[str] = None
    notes: Optional[str] = None
    symptoms: list[str] = Field(default_factory=list)
    is_first_visit: bool = True
    booking_time: datetime
    cancellation_policy: CancellationPolicy
    requires_reschedule: bool = False
    cancellation_reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Workflow state
# ---------------------------------------------------------------------------

class BookingWorkflowState(BaseModel):
    session_id: str
    patient_id: str
    current_step: BookingStep = BookingStep.DOCTOR_SELECTION
    completed_steps: list[BookingStep] = Field(default_factory=list)

    selected_provider_id: Optional[str] = None
    selected_clinic_id: Optional[str] = None
    selected_appointment_type_id: Optional[str] = None
    selected_date: Optional[date] = None
    selected_time_slot: Optional[TimeSlot] = None

    patient_information: Optional[PatientInformation] = None
    payment_information: Optional[PaymentInformation] = None

    validation_result: BookingValidation = Field(default_factory=BookingValidation)
    confirmed_booking: Optional[AppointmentBooking] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class BookingSessionCreate(BaseModel):
    patient_id: Optional[str] = None


class DoctorSelection(BaseModel):
    provider_id: str
    clinic_id: Optional[str] = None


class AppointmentTypeSelection(BaseModel):
    appointment_type_id: str


class DateSelection(BaseModel):
    date: date


class TimeSlotSelection(BaseModel):
    slot_id: str


class StepChange(BaseModel):
    step: BookingStep
