"""FastAPI application exposing the collector commands."""
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from .. import __version__
from ..collector import AcresCollector
from ..config import get_settings
from ..utils.logging import configure_logging, is_configured
from .routes import router

logger = structlog.get_logger(__name__)


def create_app(collector: Optional[AcresCollector] = None) -> FastAPI:
    """
    Build the API app. Without an explicit collector one is built from
    settings when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        if not is_configured():
            configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

        instance = collector or AcresCollector.from_settings(settings)
        await instance.start()
        app.state.collector = instance
        logger.info("application_started",
                    environment=settings.ENVIRONMENT,
                    properties=len(instance.engine))
        yield
        await instance.close()
        logger.info("application_stopped")

    app = FastAPI(
        title="Acres Collector",
        description="Courthouse sale comps enriched with cropland statistics",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(router)
    return app
