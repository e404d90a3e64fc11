"""FastAPI dependencies for booking sessions."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.database import get_db
from medbook.services.booking_session_store import BookingSessionManager
from medbook.services.booking_workflow import BookingWorkflow


def get_booking_sessions(request: Request) -> BookingSessionManager:
    return request.app.state.booking_sessions


async def get_workflow(
    session_id: str,
    sessions: BookingSessionManager = Depends(get_booking_sessions),
    db: AsyncSession = Depends(get_db),
) -> BookingWorkflow:
    """Resolve the live workflow for ``session_id`` (404 if unknown)."""
    return await sessions.get(db, session_id)
