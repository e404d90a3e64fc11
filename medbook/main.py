import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from medbook.api.v1.router import api_router
from medbook.core.config import settings
from medbook.core.database import create_tables
from medbook.core.exceptions import SchedulingError
from medbook.core.seed import seed_demo_data
from medbook.services.booking_session_store import BookingSessionManager

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    if settings.SEED_DEMO_DATA:
        await seed_demo_data()
    yield


app = FastAPI(
    title="MedBook Scheduling API",
    description="Provider schedules, availability and appointment booking",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# One workflow per booking session, shared by all requests of this worker
app.state.booking_sessions = BookingSessionManager()


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "medbook-scheduler", "version": "0.1.0"}
