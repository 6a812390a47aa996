"""Main application entry point for the Vinyl Enrichment service."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from config.settings import get_settings
from core.dependencies import build_services, close_services, flush_posthog
from core.logging import setup_logging
from core.sentry import init_sentry
from discogs.router import router as discogs_router
from enrichment.router import router as enrichment_router
from routers.health import router as health_router

load_dotenv()

settings = get_settings()

init_sentry(
    dsn=settings.sentry_dsn,
    environment="production" if settings.log_level != "DEBUG" else "development",
    release=settings.app_version,
    rate_limit=settings.discogs_rate_limit,
)

setup_logging(level=settings.log_level, log_file=settings.log_file)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services on startup and tear them down on shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    services = build_services(get_settings())
    app.state.services = services

    yield

    logger.info("Shutting down application")
    await close_services(services)
    logger.info("All services shut down")


app = FastAPI(
    title=settings.app_name,
    description="Background Discogs enrichment for a vinyl record collection",
    version=settings.app_version,
    lifespan=lifespan,
)


@app.middleware("http")
async def posthog_flush_middleware(request: Request, call_next):
    """Flush PostHog events after each request to prevent data loss."""
    response = await call_next(request)
    flush_posthog(getattr(request.app.state, "services", None))
    return response


app.include_router(health_router, prefix="", tags=["health"])
app.include_router(enrichment_router, prefix="/api/v1", tags=["enrichment"])
app.include_router(discogs_router, prefix="/api/v1", tags=["discogs"])

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
