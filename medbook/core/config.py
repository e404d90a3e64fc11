"""
Application configuration.

Values are read from environment variables / a local .env file. Scheduling
constants (pricing window, horizon, cancellation notice) live here so a
clinic can tune them without code changes.
"""
import logging
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str = "sqlite+aiosqlite:///./medbook.db"

    # Startup behaviour (local development only)
    AUTO_CREATE_TABLES: bool = False
    SEED_DEMO_DATA: bool = False

    # Availability
    SCHEDULE_HORIZON_DAYS: int = 60
    MAX_AVAILABILITY_RANGE_DAYS: int = 92

    # Pricing: slots starting before CORE_HOURS_START or at/after
    # CORE_HOURS_END are charged the after-hours multiplier.
    CORE_HOURS_START: int = 8
    CORE_HOURS_END: int = 18
    AFTER_HOURS_MULTIPLIER: float = 1.3
    DEFAULT_BASE_RATE: int = 150000

    # Booking
    CANCELLATION_NOTICE_HOURS: int = 2
    LATE_CANCELLATION_FEE_PERCENTAGE: int = 50
    BOOKING_AUTOSAVE: bool = True
    # Live sessions untouched this long are dropped from memory; autosaved
    # ones still restore from their snapshot.
    BOOKING_SESSION_IDLE_MINUTES: int = 30

    class Config:
        env_file = ".env"


settings = Settings()

if settings.AFTER_HOURS_MULTIPLIER < 1:
    raise ValueError(
        "AFTER_HOURS_MULTIPLIER must be >= 1 (got %s)" % settings.AFTER_HOURS_MULTIPLIER
    )
