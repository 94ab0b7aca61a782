from contextlib import asynccontextmanager
from datetime import timedelta
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from airman.api.routes import activity, health, notifications, scheduling, users
from airman.core.config import get_settings
from airman.core.exceptions import AppError
from airman.core.middleware import CorrelationIdMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from airman.db.bootstrap import ensure_runtime_schema_compatibility
from airman.db.session import SessionLocal
from airman.services.escalation import EscalationScheduler
from airman.services.locks import KeyedLockRegistry

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_runtime_schema_compatibility()
    scheduler: EscalationScheduler | None = None
    if settings.escalation_sweep_enabled:
        scheduler = EscalationScheduler(
            SessionLocal,
            interval_seconds=settings.escalation_sweep_interval_seconds,
            threshold=timedelta(hours=settings.booking_escalation_hours),
        )
        scheduler.start()
    else:
        logger.info("Escalation sweep disabled; use POST /scheduling/escalations/run to sweep on demand")
    app.state.escalation_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
        app.state.escalation_scheduler = None


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
app.state.assignment_locks = KeyedLockRegistry()
app.state.escalation_scheduler = None

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)
app.add_middleware(CorrelationIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(scheduling.router, prefix=f"{settings.api_prefix}/scheduling", tags=["scheduling"])
app.include_router(users.router, prefix=settings.api_prefix, tags=["users"])
app.include_router(activity.router, prefix=settings.api_prefix, tags=["activity"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])
