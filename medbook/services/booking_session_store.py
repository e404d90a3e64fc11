"""Live booking workflows and their persisted snapshots."""

import logging
import time
from typing import Callable, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medbook.core.config import settings
from medbook.core.exceptions import NotFoundError
from medbook.models.booking_session import BookingSession
from medbook.services.booking_workflow import BookingWorkflow

logger = logging.getLogger(__name__)


class BookingSessionManager:
    """Holds one BookingWorkflow per session id.

    Workflows live in memory; snapshots in ``booking_sessions`` let a
    session survive a restart or move between workers. Confirmed sessions
    are dropped right after commit and idle ones on the next create/get.
    """

    def __init__(
        self,
        autosave: Optional[bool] = None,
        idle_minutes: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._workflows: dict[str, BookingWorkflow] = {}
        self._touched: dict[str, float] = {}
        self.autosave = settings.BOOKING_AUTOSAVE if autosave is None else autosave
        self.idle_seconds = 60 * (
            settings.BOOKING_SESSION_IDLE_MINUTES if idle_minutes is None else idle_minutes
        )
        self._clock = clock

    def __len__(self) -> int:
        return len(self._workflows)

    def _track(self, workflow: BookingWorkflow) -> None:
        self._workflows[workflow.session_id] = workflow
        self._touched[workflow.session_id] = self._clock()

    def _forget(self, session_id: str) -> bool:
        self._touched.pop(session_id, None)
        return self._workflows.pop(session_id, None) is not None

    def evict_idle(self) -> list[str]:
        """Drop workflows untouched for longer than the idle timeout."""
        cutoff = self._clock() - self.idle_seconds
        stale = [sid for sid, touched in self._touched.items() if touched < cutoff]
        for session_id in stale:
            self._forget(session_id)
        if stale:
            logger.info("Evicted %d idle booking session(s)", len(stale))
        return stale

    def create(self, patient_id: Optional[str] = None) -> BookingWorkflow:
        self.evict_idle()
        workflow = BookingWorkflow(patient_id=patient_id)
        self._track(workflow)
        logger.info("Started booking session %s for %s", workflow.session_id, workflow.state.patient_id)
        return workflow

    async def get(self, db: AsyncSession, session_id: str) -> BookingWorkflow:
        """Live workflow, falling back to the stored snapshot."""
        self.evict_idle()
        workflow = self._workflows.get(session_id)
        if workflow is None:
            workflow = await self.load(db, session_id)
            if workflow is None:
                raise NotFoundError("Booking session", session_id)
        self._track(workflow)
        return workflow

    async def discard(self, db: AsyncSession, session_id: str) -> None:
        existed = self._forget(session_id)
        deleted = await self.delete_snapshot(db, session_id)
        if not existed and not deleted:
            raise NotFoundError("Booking session", session_id)
        logger.info("Discarded booking session %s", session_id)

    async def save(self, db: AsyncSession, workflow: BookingWorkflow) -> None:
        snapshot = workflow.to_snapshot()
        row = await db.get(BookingSession, workflow.session_id)
        if row is None:
            row = BookingSession(
                id=workflow.session_id,
                patient_id=workflow.state.patient_id,
                snapshot=snapshot,
            )
            db.add(row)
        else:
            row.snapshot = snapshot
        await db.commit()

    async def load(self, db: AsyncSession, session_id: str) -> Optional[BookingWorkflow]:
        result = await db.execute(select(BookingSession).where(BookingSession.id == session_id))
        row = result.scalar_one_or_none()
        if row is None:
            return None
        logger.info("Restored booking session %s from snapshot", session_id)
        return BookingWorkflow.from_snapshot(row.snapshot)

    async def delete_snapshot(self, db: AsyncSession, session_id: str) -> bool:
        row = await db.get(BookingSession, session_id)
        if row is None:
            return False
        await db.delete(row)
        await db.commit()
        return True

    async def after_mutation(self, db: AsyncSession, workflow: BookingWorkflow) -> None:
        """Autosave hook; a confirmed booking ends the session instead."""
        if workflow.state.confirmed_booking is not None:
            self._forget(workflow.session_id)
            await self.delete_snapshot(db, workflow.session_id)
        elif self.autosave:
            await self.save(db, workflow)
