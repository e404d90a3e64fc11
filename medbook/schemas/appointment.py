"""Pydantic schemas for post-commit appointment management."""

from typing import Optional
from pydantic import BaseModel
from medbook.models.appointment import PaymentStatus


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    """Opaque callback from the payment collaborator."""
    payment_status: PaymentStatus
    message: Optional[str] = None
