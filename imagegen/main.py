"""Image generation job service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from imagegen.api.v1.router import api_router, health_root_router
from imagegen.config import Settings, settings as default_settings
from imagegen.errors import ValidationError
from imagegen.jobs.store import JobStore
from imagegen.models.registry import ModelRegistry
from imagegen.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[JobStore] = None,
    registry: Optional[ModelRegistry] = None,
    results: Optional[TempResultStore] = None,
) -> FastAPI:
    """Build the application with one job store and one registry per process.

    Services not passed in are constructed from ``settings``; tests pass
    their own to get an isolated store per app.
    """
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    results = results or TempResultStore(
        base_dir=settings.results_dir,
        ttl_hours=settings.job_retention_hours,
    )
    store = store or JobStore(
        retention=timedelta(hours=settings.job_retention_hours),
        cleanup_interval=timedelta(minutes=settings.job_cleanup_interval_minutes),
        on_sweep=results.cleanup_expired,
    )
    registry = registry or ModelRegistry(settings, store, results)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info("Starting image generation service (%s)", settings.environment)
        logger.info("Models: %s", ", ".join(e.id for e in registry.get_available_models()))
        logger.info("Results dir: %s", results.base_dir)
        await store.start()

        yield

        logger.info("Shutting down image generation service")
        await store.stop()
        await registry.shutdown()
        results.cleanup_expired()

    app = FastAPI(
        title="Image Generation Service",
        description="Provider-backed image generation and editing jobs with progressive previews",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.registry = registry
    app.state.results = results

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000", "*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_root_router)
    app.include_router(api_router)
    return app


def run() -> None:
    """Console entry point: serve with uvicorn."""
    import uvicorn

    uvicorn.run("imagegen.main:create_app", factory=True, host="0.0.0.0", port=default_settings.port)


if __name__ == "__main__":
    run()
