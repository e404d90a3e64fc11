"""Seed a demo catalog on app startup (SEED_DEMO_DATA)."""

import logging
from datetime import date
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError
from medbook.core.database import async_session
from medbook.models.catalog import AppointmentType, Clinic, Provider
from medbook.models.schedule import Holiday
from medbook.schemas.schedule import BreakTime, WeeklyScheduleTemplate, WorkingHours
from medbook.services import template_registry

logger = logging.getLogger(__name__)

DEMO_CLINIC_ID = "medcore-central"
DEMO_PROVIDER_ID = "dr-sarah"

# (id, name, minutes, price_min, price_max, is_emergency, allows_online)
DEMO_APPOINTMENT_TYPES = [
    ("consultation", "General Consultation", 30, 150000, 300000, False, True),
    ("follow-up", "Follow-up Visit", 15, 100000, 200000, False, True),
    ("procedure", "Medical Procedure", 60, 500000, 2000000, False, False),
    ("specialist-consultation", "Specialist Consultation", 45, 300000, 600000, False, True),
    ("telemedicine", "Telemedicine", 20, 75000, 150000, False, True),
    ("emergency", "Emergency Consultation", 45, 400000, 800000, True, False),
    ("health-checkup", "Health Checkup", 90, 800000, 1500000, False, False),
    ("vaccination", "Vaccination", 20, 200000, 500000, False, False),
]

# Fixed-date holidays only; lunar ones have to be entered per year
DEMO_HOLIDAYS = [
    (date(2026, 1, 1), "New Year's Day"),
    (date(2026, 5, 1), "Labour Day"),
    (date(2026, 6, 1), "Pancasila Day"),
    (date(2026, 8, 17), "Independence Day"),
    (date(2026, 12, 25), "Christmas Day"),
]

WEEKDAY_TEMPLATE = WeeklyScheduleTemplate(
    working_hours=WorkingHours(start="08:00", end="17:00"),
    break_times=[BreakTime(start="12:00", end="13:00", label="Lunch Break")],
    slot_duration_minutes=30,
    allowed_appointment_type_ids=["consultation", "follow-up", "specialist-consultation"],
)


async def seed_demo_data():
    """Create the demo clinic, provider and catalog if they don't exist."""
    async with async_session() as db:
        try:
            if await db.get(Clinic, DEMO_CLINIC_ID):
                logger.info("Demo data already present (%s)", DEMO_CLINIC_ID)
                return

            db.add(Clinic(id=DEMO_CLINIC_ID, name="MedCore Central Clinic", address="Jl. Sudirman 1, Jakarta"))
            for type_id, name, minutes, price_min, price_max, emergency, online in DEMO_APPOINTMENT_TYPES:
                db.add(AppointmentType(
                    id=type_id,
                    name=name,
                    duration_minutes=minutes,
                    price_min=Decimal(price_min),
                    price_max=Decimal(price_max),
                    is_emergency=emergency,
                    allows_online=online,
                ))
            db.add(Provider(
                id=DEMO_PROVIDER_ID,
                name="Dr. Sarah Wijaya",
                clinic_id=DEMO_CLINIC_ID,
                specialty="General Practice",
                base_rate=Decimal(150000),
            ))
            for holiday_date, name in DEMO_HOLIDAYS:
                db.add(Holiday(date=holiday_date, name=name, is_fixed=True, affects_schedule=True))
            await db.commit()

            for weekday in range(5):
                await template_registry.set_template(db, DEMO_PROVIDER_ID, weekday, WEEKDAY_TEMPLATE)

            logger.info("Demo data seeded: clinic %s, provider %s", DEMO_CLINIC_ID, DEMO_PROVIDER_ID)

        except SQLAlchemyError:
            logger.exception("Failed to seed demo data")
            await db.rollback()
