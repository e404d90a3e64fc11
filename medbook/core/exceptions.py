"""Domain error taxonomy.

Services raise these; the HTTP layer maps them to status codes in
``medbook.main``. Nothing below the API layer raises ``HTTPException``.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all scheduling and booking errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message}


class ConfigurationError(SchedulingError):
    """Malformed template, time string or slot duration. Never retried."""

    status_code = 422


class NotFoundError(SchedulingError):
    """Unknown provider, clinic, appointment type, session or appointment."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class ValidationError(SchedulingError):
    """Aggregate of field-level errors; the caller re-prompts the step."""

    status_code = 422

    def __init__(self, message: str, errors: Optional[list[dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "errors": self.errors}


class SlotConflictError(SchedulingError):
    """The selected slot was taken (or vanished) before commit."""

    status_code = 409

    def __init__(
        self,
        slot_id: str,
        reason: str = "Time slot is no longer available",
        alternatives: Optional[list[dict[str, Any]]] = None,
    ):
        super().__init__(f"{reason}: {slot_id}")
        self.slot_id = slot_id
        self.reason = reason
        self.alternatives = alternatives or []

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "slot_id": self.slot_id,
            "alternatives": self.alternatives,
        }


class PaymentError(SchedulingError):
    """Opaque failure reported by the payment collaborator."""

    status_code = 402

    def __init__(self, message: str, appointment_id: Any = None):
        super().__init__(message)
        self.appointment_id = appointment_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "appointment_id": str(self.appointment_id) if self.appointment_id else None,
        }
