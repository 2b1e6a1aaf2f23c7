"""FastAPI application entry point for ReportDesk.

``app`` is the REST API; ``application`` wraps it together with the
Socket.IO server and is what uvicorn serves.
"""

from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from reportdesk import __version__
from reportdesk.api import register_exception_handlers
from reportdesk.api.middleware import setup_middleware
from reportdesk.config import get_settings
from reportdesk.db import close_all_connections, get_db_session
from reportdesk.logging import get_logger, setup_logging
from reportdesk.notifications.realtime import get_realtime_hub

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    from reportdesk.users.service import UserService

    settings = get_settings()
    logger.info(
        "Starting ReportDesk API",
        extra={
            "environment": settings.environment,
            "debug": settings.api_debug,
            "storage_backend": settings.storage_backend,
        },
    )

    try:
        async with get_db_session() as db:
            await UserService(db).ensure_initial_superadmin(
                settings.initial_superadmin_email,
                settings.initial_superadmin_password,
                settings.initial_superadmin_name,
            )
    except Exception as e:
        logger.warning(f"Failed to bootstrap initial superadmin: {e}")

    yield

    # Shutdown
    logger.info("Shutting down ReportDesk API")
    await close_all_connections()


# Create FastAPI application
settings = get_settings()

app = FastAPI(
    title="ReportDesk API",
    description="Report submission, review and notification service",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

setup_middleware(app)

# CORS last so it wraps everything else
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


# =========================
# Health Check Endpoints
# =========================


@app.get("/health", tags=["Health"])
@app.get("/api/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "reportdesk-api", "version": __version__}


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """Readiness check that verifies database connectivity."""
    checks = {"database": "unknown"}

    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    all_healthy = all(v == "healthy" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ready" if all_healthy else "not_ready",
            "checks": checks,
        },
    )


# =========================
# API Routers
# =========================

from reportdesk.api.accounts import router as accounts_router
from reportdesk.api.admin import router as admin_router
from reportdesk.api.notifications import router as notifications_router
from reportdesk.api.reports import router as reports_router
from reportdesk.api.stats import router as stats_router
from reportdesk.api.users import router as users_router

app.include_router(accounts_router, prefix="/api", tags=["Auth"])
app.include_router(reports_router, prefix="/api", tags=["Reports"])
app.include_router(admin_router, prefix="/api", tags=["Admin"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])
app.include_router(stats_router, prefix="/api", tags=["Stats"])


# =========================
# Root Endpoint
# =========================


@app.get("/", tags=["Root"])
async def root():
    """API root endpoint."""
    return {
        "name": "ReportDesk API",
        "version": __version__,
        "socket": "/socket.io",
        "docs": "/docs" if settings.is_development else None,
    }


# REST and Socket.IO under one ASGI app
application = socketio.ASGIApp(get_realtime_hub().sio, other_asgi_app=app)
