"""Booking Workflow Engine

One BookingWorkflow per patient session. It walks the patient through the
booking steps, validates each one, and commits the booking through the
reservation service. Nothing here is shared between sessions.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import settings
from medbook.core.exceptions import SlotConflictError, ValidationError
from medbook.models.appointment import (
    Appointment,
    AppointmentStatus,
    PaymentMethod,
    PaymentStatus,
)
from medbook.schemas.booking import (
    AppointmentBooking,
    BookingStep,
    BookingValidation,
    BookingWorkflowState,
    PatientInformation,
    PaymentInformation,
)
from medbook.schemas.schedule import TimeSlot
from medbook.services import appointment_service, catalog_service, reservation_service
from medbook.services.schedule_generator import make_slot_id

logger = logging.getLogger(__name__)

STEP_FLOW = list(BookingStep)

# Persisted in booking_sessions. Payment details (card, e-wallet,
# insurance) are deliberately absent.
SNAPSHOT_FIELDS = (
    "session_id",
    "patient_id",
    "current_step",
    "completed_steps",
    "selected_provider_id",
    "selected_clinic_id",
    "selected_appointment_type_id",
    "selected_date",
    "selected_time_slot",
    "patient_information",
)

# Payment methods settled later by the payment collaborator
DEFERRED_PAYMENT_METHODS = (PaymentMethod.CARD, PaymentMethod.EWALLET)


def step_prerequisites(step: BookingStep) -> list[BookingStep]:
    return STEP_FLOW[:STEP_FLOW.index(step)]


class BookingWorkflow:
    """Session-scoped booking state machine."""

    def __init__(self, session_id: Optional[str] = None, patient_id: Optional[str] = None):
        session_id = session_id or uuid.uuid4().hex
        self.state = BookingWorkflowState(
            session_id=session_id,
            patient_id=patient_id or f"guest-{session_id[:8]}",
        )
        self._submit_lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def current_step(self) -> BookingStep:
        return self.state.current_step

    @property
    def completed_steps(self) -> list[BookingStep]:
        return list(self.state.completed_steps)

    def get_state(self) -> BookingWorkflowState:
        """Deep copy of the state with card and e-wallet details masked."""
        state = self.state.model_copy(deep=True)
        if state.payment_information is not None:
            state.payment_information = state.payment_information.masked()
        return state

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _mark_completed(self, step: BookingStep) -> None:
        if step not in self.state.completed_steps:
            self.state.completed_steps.append(step)

    def _unmark(self, step: BookingStep) -> None:
        if step in self.state.completed_steps:
            self.state.completed_steps.remove(step)

    def missing_prerequisites(self, step: BookingStep) -> list[BookingStep]:
        return [s for s in step_prerequisites(step) if s not in self.state.completed_steps]

    def can_go_to_step(self, step: BookingStep) -> bool:
        if self.state.current_step == BookingStep.BOOKING_SUCCESS and step != BookingStep.BOOKING_SUCCESS:
            return False
        return not self.missing_prerequisites(step)

    def go_to_step(self, step: BookingStep) -> BookingWorkflowState:
        if self.state.current_step == BookingStep.BOOKING_SUCCESS and step != BookingStep.BOOKING_SUCCESS:
            raise ValidationError(
                "Booking already completed",
                [{"field": "step", "message": "Start a new booking to change the selection"}],
            )

        missing = self.missing_prerequisites(step)
        if missing:
            raise ValidationError(
                f"Cannot go to {step.value}",
                [{"field": "step", "message": f"Complete {s.value} first"} for s in missing],
            )

        self.state.current_step = step
        return self.get_state()

    def go_to_next_step(self) -> BookingWorkflowState:
        index = STEP_FLOW.index(self.state.current_step)
        if index == len(STEP_FLOW) - 1:
            raise ValidationError(
                "Already at the last step",
                [{"field": "step", "message": "No step after booking-success"}],
            )
        return self.go_to_step(STEP_FLOW[index + 1])

    def go_to_previous_step(self) -> BookingWorkflowState:
        if self.state.current_step == BookingStep.BOOKING_SUCCESS:
            raise ValidationError(
                "Booking already completed",
                [{"field": "step", "message": "Cannot go back after the booking is confirmed"}],
            )

        index = STEP_FLOW.index(self.state.current_step)
        if index > 0:
            self.state.current_step = STEP_FLOW[index - 1]
        return self.get_state()

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def select_doctor(self, provider_id: str, clinic_id: Optional[str] = None) -> None:
        self.state.selected_provider_id = provider_id
        self.state.selected_clinic_id = clinic_id
        self._mark_completed(BookingStep.DOCTOR_SELECTION)

    def select_appointment_type(self, appointment_type_id: str) -> None:
        self.state.selected_appointment_type_id = appointment_type_id
        self._mark_completed(BookingStep.APPOINTMENT_TYPE)

    def select_date(self, selected_date: date) -> None:
        """Select a date; a different date invalidates the chosen time slot."""
        if self.state.selected_date is not None and selected_date != self.state.selected_date:
            self.state.selected_time_slot = None
            self._unmark(BookingStep.TIME_SELECTION)

        self.state.selected_date = selected_date
        self._mark_completed(BookingStep.DATE_SELECTION)

    def select_time_slot(self, slot: TimeSlot) -> None:
        self.state.selected_time_slot = slot
        self._mark_completed(BookingStep.TIME_SELECTION)

    def update_patient_information(self, info: PatientInformation) -> None:
        """Merge the sections present in ``info`` into the stored information."""
        current = self.state.patient_information or PatientInformation()
        updates = {name: getattr(info, name) for name in info.model_fields_set}
        self.state.patient_information = current.model_copy(update=updates)
        self._mark_completed(BookingStep.PATIENT_INFORMATION)

    def update_payment_information(self, info: PaymentInformation) -> None:
        current = self.state.payment_information or PaymentInformation()
        updates = {name: getattr(info, name) for name in info.model_fields_set}
        self.state.payment_information = current.model_copy(update=updates)
        self._mark_completed(BookingStep.INSURANCE_VERIFICATION)

    def clear_doctor(self) -> None:
        self.state.selected_provider_id = None
        self.state.selected_clinic_id = None
        self._unmark(BookingStep.DOCTOR_SELECTION)

    def clear_appointment_type(self) -> None:
        self.state.selected_appointment_type_id = None
        self._unmark(BookingStep.APPOINTMENT_TYPE)

    def clear_date(self) -> None:
        self.state.selected_date = None
        self._unmark(BookingStep.DATE_SELECTION)

    def clear_time_slot(self) -> None:
        self.state.selected_time_slot = None
        self._unmark(BookingStep.TIME_SELECTION)

    def clear_patient_information(self) -> None:
        self.state.patient_information = None
        self._unmark(BookingStep.PATIENT_INFORMATION)

    def clear_payment_information(self) -> None:
        self.state.payment_information = None
        self._unmark(BookingStep.INSURANCE_VERIFICATION)

    def reset_flow(self) -> BookingWorkflowState:
        """Discard every selection and return to doctor selection."""
        self.state = BookingWorkflowState(
            session_id=self.state.session_id,
            patient_id=self.state.patient_id,
        )
        return self.get_state()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check_doctor(self, v: BookingValidation) -> None:
        if not self.state.selected_provider_id:
            v.add_error("doctor", "Please select a doctor")

    def _check_appointment_type(self, v: BookingValidation) -> None:
        if not self.state.selected_appointment_type_id:
            v.add_error("appointment_type", "Please select an appointment type")

    def _check_date(self, v: BookingValidation) -> None:
        selected = self.state.selected_date
        if selected is None:
            v.add_error("date", "Please select a date")
            return
        if selected < date.today():
            v.add_error("date", "Selected date is in the past")
        elif selected.weekday() >= 5:
            v.add_warning("date", "Selected date falls on a weekend; fewer doctors are available")

    def _check_time_slot(self, v: BookingValidation) -> None:
        slot = self.state.selected_time_slot
        if slot is None:
            v.add_error("time_slot", "Please select a time slot")
            return
        if not self.state.selected_provider_id or self.state.selected_date is None:
            return
        expected = make_slot_id(
            self.state.selected_provider_id, self.state.selected_date, slot.start_time
        )
        if slot.id != expected:
            v.add_error("time_slot", "Selected time slot does not match the selected doctor and date")

    def _check_patient_information(self, v: BookingValidation) -> None:
        info = self.state.patient_information
        if info is None:
            v.add_error("patient_information", "Please complete patient information")
            return

        personal = info.personal_info
        if not personal or not (personal.full_name and personal.phone_number and personal.address):
            v.add_error("personal_info", "Please complete personal information (full name, phone number, address)")
        elif not personal.email:
            v.add_warning("email", "No email address provided; confirmation will be sent by SMS only")

        contact = info.emergency_contact
        if not contact or not (contact.name and contact.phone_number):
            v.add_error("emergency_contact", "Please provide an emergency contact name and phone number")

        appointment_info = info.appointment_info
        if not appointment_info or not (appointment_info.chief_complaint or "").strip():
            v.add_error("chief_complaint", "Please describe your chief complaint")

        consents = info.consents
        if not consents or not (consents.treatment_consent and consents.data_processing_consent):
            v.add_error("consents", "Please accept the treatment and data processing consents")

    def _check_payment(self, v: BookingValidation) -> None:
        payment = self.state.payment_information
        if payment is None or payment.payment_method is None:
            v.add_error("payment_method", "Please select a payment method")
            return

        if payment.payment_method == PaymentMethod.INSURANCE:
            details = payment.insurance_details
            if not details or not (details.provider_id and details.policy_number):
                v.add_error("insurance_details", "Please provide the insurance provider and policy number")

    def _step_checks(self, step: BookingStep) -> list:
        return {
            BookingStep.DOCTOR_SELECTION: [self._check_doctor],
            BookingStep.APPOINTMENT_TYPE: [self._check_appointment_type],
            BookingStep.DATE_SELECTION: [self._check_date],
            BookingStep.TIME_SELECTION: [self._check_time_slot],
            BookingStep.PATIENT_INFORMATION: [self._check_patient_information],
            BookingStep.INSURANCE_VERIFICATION: [self._check_payment],
        }.get(step, [])

    def validate_current_step(self) -> BookingValidation:
        """Validate the current step and store the result on the state."""
        if self.state.current_step == BookingStep.BOOKING_CONFIRMATION:
            return self.validate_complete_booking()

        validation = BookingValidation()
        for check in self._step_checks(self.state.current_step):
            check(validation)

        self.state.validation_result = validation
        return validation.model_copy(deep=True)

    def validate_complete_booking(self) -> BookingValidation:
        """Run every step's checks and aggregate the results."""
        validation = BookingValidation()
        for step in STEP_FLOW[:STEP_FLOW.index(BookingStep.BOOKING_CONFIRMATION)]:
            for check in self._step_checks(step):
                check(validation)

        self.state.validation_result = validation
        return validation.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _build_appointment(self, slot: TimeSlot, clinic_id: Optional[str]) -> Appointment:
        state = self.state
        payment = state.payment_information
        info = state.patient_information
        appointment_info = info.appointment_info

        start = datetime.combine(state.selected_date, time.fromisoformat(slot.start_time))
        deadline = start - timedelta(hours=settings.CANCELLATION_NOTICE_HOURS)

        if payment.payment_method in DEFERRED_PAYMENT_METHODS:
            status = AppointmentStatus.PENDING
        else:
            status = AppointmentStatus.CONFIRMED

        insurance_provider = None
        if payment.payment_method == PaymentMethod.INSURANCE and payment.insurance_details:
            insurance_provider = (
                payment.insurance_details.provider_name or payment.insurance_details.provider_id
            )

        return Appointment(
            id=uuid.uuid4(),
            patient_id=state.patient_id,
            provider_id=state.selected_provider_id,
            clinic_id=clinic_id,
            appointment_type_id=state.selected_appointment_type_id,
            slot_id=slot.id,
            scheduled_date=state.selected_date,
            scheduled_time=start.time(),
            duration_minutes=slot.duration_minutes,
            price=slot.price,
            status=status,
            payment_status=PaymentStatus.PENDING,
            payment_method=payment.payment_method,
            insurance_provider=insurance_provider,
            notes=appointment_info.chief_complaint,
            symptoms=list(appointment_info.symptoms),
            is_first_visit=appointment_info.is_first_visit,
            cancellation_allowed_until=deadline,
            cancellation_fee_percentage=0,
            requires_reschedule=False,
            booking_time=datetime.utcnow(),
        )

    async def submit_booking(self, db: AsyncSession) -> AppointmentBooking:
        """Validate everything and atomically reserve the slot.

        Raises:
            ValidationError: incomplete booking, already confirmed, or a
                submission already in flight for this session
            SlotConflictError: the slot was taken or vanished; the state
                is left as it was apart from ``error``
        """
        if self.state.confirmed_booking is not None:
            raise ValidationError(
                "Booking already confirmed",
                [{"field": "booking", "message": "This session has already been booked"}],
            )
        if self._submit_lock.locked():
            raise ValidationError(
                "Booking submission already in progress",
                [{"field": "booking", "message": "Wait for the current submission to finish"}],
            )

        async with self._submit_lock:
            validation = self.validate_complete_booking()
            if not validation.is_valid:
                self.state.error = "Please complete all required steps"
                raise ValidationError(
                    "Booking is incomplete",
                    [issue.model_dump() for issue in validation.errors],
                )

            state = self.state
            provider = await catalog_service.get_provider(db, state.selected_provider_id)
            await catalog_service.get_appointment_type(db, state.selected_appointment_type_id)
            clinic_id = state.selected_clinic_id or provider.clinic_id

            try:
                appointment, _ = await reservation_service.reserve_slot(
                    db,
                    provider_id=state.selected_provider_id,
                    target_date=state.selected_date,
                    slot_id=state.selected_time_slot.id,
                    booked_by=state.patient_id,
                    build_appointment=lambda slot: self._build_appointment(slot, clinic_id),
                    requested_start_time=state.selected_time_slot.start_time,
                )
            except SlotConflictError as e:
                self.state.error = e.message
                raise

            booking = appointment_service.to_booking(appointment)
            self.state.confirmed_booking = booking
            self.state.error = None
            self._mark_completed(BookingStep.BOOKING_CONFIRMATION)
            self.state.current_step = BookingStep.BOOKING_SUCCESS

        logger.info(
            "Session %s booked appointment %s (%s, %s)",
            self.session_id,
            booking.id,
            booking.status.value,
            booking.payment_method.value,
        )
        return booking

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-safe snapshot holding only the allow-listed fields."""
        data = self.state.model_dump(mode="json", include=set(SNAPSHOT_FIELDS))
        payment = self.state.payment_information
        data["payment_method"] = (
            payment.payment_method.value if payment and payment.payment_method else None
        )
        return data

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "BookingWorkflow":
        data = {key: snapshot[key] for key in SNAPSHOT_FIELDS if key in snapshot}
        workflow = cls(session_id=data.get("session_id"), patient_id=data.get("patient_id"))
        data["session_id"] = workflow.state.session_id
        data["patient_id"] = workflow.state.patient_id
        workflow.state = BookingWorkflowState.model_validate(data)

        if snapshot.get("payment_method"):
            workflow.state.payment_information = PaymentInformation(
                payment_method=PaymentMethod(snapshot["payment_method"])
            )
        return workflow
