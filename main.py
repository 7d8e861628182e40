"""
PlanCal - Main Application Entry Point

Availability-constrained task placement for goal plans.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plancal.core.config import get_settings
from plancal.core.exceptions import PlanCalError, ValidationError
from plancal.core.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting PlanCal in {settings.ENVIRONMENT} mode...")

    if settings.is_local:
        from plancal.infrastructure.local.database import init_db

        await init_db()

    # Start background scheduler for periodic jobs
    from plancal.services.background_scheduler import (
        start_background_scheduler,
        stop_background_scheduler,
    )

    await start_background_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down PlanCal...")
    await stop_background_scheduler()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="PlanCal",
        description="Availability-constrained task placement for goal plans",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    @app.exception_handler(PlanCalError)
    async def plancal_error_handler(request: Request, exc: PlanCalError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(
            "Invalid request",
            details=jsonable_errors(exc),
        )
        return JSONResponse(status_code=error.status_code, content=error.to_payload())

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from plancal.api import calendar_events, plans, schedules, usage, workday_settings

    app.include_router(plans.router, prefix="/api/plans", tags=["plans"])
    app.include_router(schedules.router, prefix="/api/schedules", tags=["schedules"])
    app.include_router(workday_settings.router, prefix="/api", tags=["workday_settings"])
    app.include_router(usage.router, prefix="/api/usage", tags=["usage"])
    app.include_router(calendar_events.router, prefix="/api/calendar-events", tags=["calendar_events"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0"
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Field errors without the raw input (it may not be JSON serializable)."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
