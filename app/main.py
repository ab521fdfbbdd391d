"""
FastAPI application entrypoint for the recipe AI job service.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies.clients import get_job_dispatcher


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Only drain a dispatcher that was actually built during this run.
    if get_job_dispatcher.cache_info().currsize:
        await get_job_dispatcher().shutdown(get_settings().shutdown_grace_seconds)


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)

    app = FastAPI(
        title="Recipe AI Job Service",
        version="0.1.0",
        description="Image analysis jobs and recipe recommendations backed by AI worker processes.",
        lifespan=_lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
