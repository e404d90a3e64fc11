from fastapi import APIRouter
from medbook.api.v1.endpoints import appointments, booking, calendar, catalog, schedules

api_router = APIRouter()
api_router.include_router(catalog.router, tags=["catalog"])
api_router.include_router(calendar.router, prefix="/providers", tags=["calendar"])
api_router.include_router(schedules.router, prefix="/providers", tags=["schedules"])
api_router.include_router(booking.router, prefix="/booking-sessions", tags=["booking"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
