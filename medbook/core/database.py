"""Async SQLAlchemy engine, session factory and declarative base."""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from medbook.core.config import settings

engine = create_async_engine(settings.DATABASE_URL, echo=False)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    """FastAPI dependency yielding one session per request."""
    async with async_session() as session:
        yield session


async def create_tables() -> None:
    """Create all tables (development / SQLite only; production uses Alembic)."""
    # Import models so they register with Base.metadata
    from medbook.models import appointment, booking_session, catalog, schedule  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
