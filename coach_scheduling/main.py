import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coach_scheduling.api.routes import admin, appointments, slots
from coach_scheduling.core.config import _ENV_FILE, settings
from coach_scheduling.core.db import async_session_maker, init_db
from coach_scheduling.core.errors import SchedulingError
from coach_scheduling.services.scheduling_core import build_core

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    if settings.env == "development":
        await init_db()
    core = build_core(settings, async_session_maker)
    # Reminder state lives in memory: rebuild it from upcoming appointments before ticking
    await core.start(settings.reminder_tick_seconds)
    app.state.core = core
    logger.info(
        "Reminder processor: every %ds, grace %d min, catch-up on recovery %s",
        settings.reminder_tick_seconds,
        settings.reminder_grace_minutes,
        settings.reminder_catch_up_on_recovery,
    )
    yield
    await core.stop()
    app.state.core = None


app = FastAPI(
    title="Coach Scheduling API",
    description="Session booking, cancellation and reminders for SOS coaching",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(slots.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


def _error_response(request: Request, status_code: int, content: dict) -> JSONResponse:
    """JSON error with CORS headers so the browser does not hide it from the frontend."""
    origins = settings.cors_origins_list
    origin = request.headers.get("origin")
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin in origins:
        headers["Access-Control-Allow-Origin"] = origin
    elif origins:
        headers["Access-Control-Allow-Origin"] = origins[0]
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)
    return _error_response(request, exc.status_code, {"detail": exc.detail, "error": type(exc).__name__})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, HTTPException):
        return _error_response(request, exc.status_code, {"detail": exc.detail})
    logger.exception("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(request, 500, {"detail": f"{type(exc).__name__}: {exc}"})


@app.get("/health")
async def health(request: Request) -> dict:
    core = getattr(request.app.state, "core", None)
    return {
        "status": "ok",
        "reminders_running": bool(core and core.reminders.running),
    }
