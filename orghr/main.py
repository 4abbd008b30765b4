"""orghr: FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from orghr import __version__
from orghr.common.exceptions import register_exception_handlers
from orghr.common.rate_limit import limiter
from orghr.comp_off.router import router as comp_off_router
from orghr.config import settings
from orghr.database import engine
from orghr.leave.router import router as leave_router
from orghr.logging_config import configure_logging
from orghr.notifications.router import router as notifications_router
from orghr.time_entries.router import router as time_entries_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("orghr %s starting (%s)", __version__, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("orghr stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="orghr",
        description="Leave policies, balances, requests, comp-off and time entries",
        version=__version__,
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(comp_off_router, prefix="/api/v1/comp-off", tags=["comp-off"])
    app.include_router(time_entries_router, prefix="/api/v1/time-entries", tags=["time-entries"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])

    return app


app = create_app()
