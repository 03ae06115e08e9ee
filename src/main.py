"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn src.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import get_workout_store, reset_state
from .api.routes import health, workouts
from .api.routes import map as map_routes
from .config.settings import get_settings

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup the persisted workout log is restored, before any map
    exists, so the list is available immediately and markers wait for
    the position report.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info(
        "Mapty API starting",
        extra={
            "version": settings.api_version,
            "storage_backend": settings.storage_backend,
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    if get_workout_store not in app.dependency_overrides:
        get_workout_store(settings)

    yield

    logger.info("Mapty API shutting down")
    reset_state()


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Log running and cycling workouts on a map.

        ## Workflow

        1. **Report position**: `POST /api/v1/map/position`
           - Loads the map centered on the user and pins saved workouts

        2. **Log a workout**: `POST /api/v1/workouts`
           - Submit distance, duration and cadence or elevation gain
             for the clicked point

        3. **Browse**: `GET /api/v1/workouts`, `GET /api/v1/map`

        4. **Remove**: `DELETE /api/v1/workouts/{id}` or `DELETE /api/v1/workouts`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        workouts.router,
        prefix="/api/v1/workouts",
        tags=["Workouts"],
    )

    app.include_router(
        map_routes.router,
        prefix="/api/v1/map",
        tags=["Map"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": "Mapty Workout API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        Logs the full error server-side but returns a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error."}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
