"""Booking session endpoints: drive one BookingWorkflow per session."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.database import get_db
from medbook.core.deps import get_booking_sessions, get_workflow
from medbook.core.exceptions import NotFoundError, SlotConflictError, ValidationError
from medbook.schemas.booking import (
    AppointmentBooking,
    AppointmentTypeSelection,
    BookingSessionCreate,
    BookingValidation,
    BookingWorkflowState,
    DateSelection,
    DoctorSelection,
    PatientInformation,
    PaymentInformation,
    StepChange,
    TimeSlotSelection,
)
from medbook.services import catalog_service
from medbook.services.booking_session_store import BookingSessionManager
from medbook.services.booking_workflow import BookingWorkflow
from medbook.services.schedule_generator import (
    find_slot,
    generate_daily_schedule,
    nearest_available_slots,
)

router = APIRouter()


@router.post("", response_model=BookingWorkflowState, status_code=201)
async def create_session(
    data: BookingSessionCreate,
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    """Start a new booking session."""
    workflow = sessions.create(patient_id=data.patient_id)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.get("/{session_id}", response_model=BookingWorkflowState)
async def get_session(workflow: BookingWorkflow = Depends(get_workflow)):
    return workflow.get_state()


@router.delete("/{session_id}", status_code=204)
async def discard_session(
    session_id: str,
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    await sessions.discard(db, session_id)
    return Response(status_code=204)


# ============================================================================
# SELECTIONS
# ============================================================================

@router.put("/{session_id}/doctor", response_model=BookingWorkflowState)
async def select_doctor(
    data: DoctorSelection,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    provider = await catalog_service.get_provider(db, data.provider_id)
    workflow.select_doctor(provider.id, data.clinic_id or provider.clinic_id)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.put("/{session_id}/appointment-type", response_model=BookingWorkflowState)
async def select_appointment_type(
    data: AppointmentTypeSelection,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    appointment_type = await catalog_service.get_appointment_type(db, data.appointment_type_id)
    workflow.select_appointment_type(appointment_type.id)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.put("/{session_id}/date", response_model=BookingWorkflowState)
async def select_date(
    data: DateSelection,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    """Select a date. Changing the date clears the chosen time slot."""
    workflow.select_date(data.date)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.put("/{session_id}/time-slot", response_model=BookingWorkflowState)
async def select_time_slot(
    data: TimeSlotSelection,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    """Select a slot from the current schedule of the chosen doctor and date.

    Availability is only a hint here; it is re-checked at submit.
    """
    state = workflow.state
    if not state.selected_provider_id or state.selected_date is None:
        raise ValidationError(
            "Select a doctor and a date first",
            [{"field": "time_slot", "message": "Doctor and date are required before choosing a time"}],
        )

    schedule = await generate_daily_schedule(db, state.selected_provider_id, state.selected_date)
    slot = find_slot(schedule, data.slot_id)
    if slot is None:
        raise NotFoundError("Time slot", data.slot_id)
    if not slot.available:
        raise SlotConflictError(
            slot.id,
            alternatives=[
                s.model_dump(mode="json") for s in nearest_available_slots(schedule, slot.start_time)
            ],
        )

    workflow.select_time_slot(slot)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.put("/{session_id}/patient-information", response_model=BookingWorkflowState)
async def update_patient_information(
    data: PatientInformation,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    """Merge the sections present in the body into the patient information."""
    workflow.update_patient_information(data)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.put("/{session_id}/payment", response_model=BookingWorkflowState)
async def update_payment_information(
    data: PaymentInformation,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    workflow.update_payment_information(data)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


# ============================================================================
# NAVIGATION / VALIDATION / COMMIT
# ============================================================================

@router.post("/{session_id}/next", response_model=BookingWorkflowState)
async def go_to_next_step(
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    workflow.go_to_next_step()
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.post("/{session_id}/previous", response_model=BookingWorkflowState)
async def go_to_previous_step(
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    workflow.go_to_previous_step()
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.post("/{session_id}/step", response_model=BookingWorkflowState)
async def go_to_step(
    data: StepChange,
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    workflow.go_to_step(data.step)
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()


@router.post("/{session_id}/validate", response_model=BookingValidation)
async def validate_current_step(workflow: BookingWorkflow = Depends(get_workflow)):
    """Validate the current step; errors block, warnings do not."""
    return workflow.validate_current_step()


@router.post("/{session_id}/submit", response_model=AppointmentBooking, status_code=201)
async def submit_booking(
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    """Commit the booking: validate everything and reserve the slot atomically."""
    booking = await workflow.submit_booking(db)
    await sessions.after_mutation(db, workflow)
    return booking


@router.post("/{session_id}/reset", response_model=BookingWorkflowState)
async def reset_flow(
    workflow: BookingWorkflow = Depends(get_workflow),
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
):
    workflow.reset_flow()
    await sessions.after_mutation(db, workflow)
    return workflow.get_state()
