"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.api import (
    health_router,
    progress_router,
    progress_logs_router,
    alerts_router,
    preferences_router,
)
from app.core.exceptions import ProgressError
from app.schemas.common import ErrorResponse
from app.services.events import event_bus
from app.tasks import register_event_handlers

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)

register_event_handlers(event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "🚀 Tutoring progress backend starting… (cache=%s, ttl=%ss)",
        settings.PROGRESS_CACHE_BACKEND,
        settings.PROGRESS_CACHE_TTL_SECONDS,
    )
    yield
    logger.info("✅ Tutoring progress backend shut down")


app = FastAPI(
    title="Tutoring Progress API",
    description="Progress metrics for a multi-tenant tutoring platform",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ─────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# ── Errors ────────────────────────────────────────────────────────────────────


@app.exception_handler(ProgressError)
async def progress_error_handler(request: Request, exc: ProgressError):
    logger.info("%s %s → %s: %s", request.method, request.url.path, exc.error_code, exc.message)
    body = ErrorResponse(error_code=exc.error_code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(health_router, tags=["Health"])
app.include_router(progress_router, prefix="/api/progress", tags=["Progress"])
app.include_router(progress_logs_router, prefix="/api/progress-logs", tags=["Progress logs"])
app.include_router(alerts_router, prefix="/api/alerts", tags=["Alerts"])
app.include_router(preferences_router, prefix="/api/preferences", tags=["Preferences"])


@app.get("/")
async def root():
    return {
        "name": "Tutoring Progress API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
