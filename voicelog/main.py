"""ASGI application for the VoiceLog journal API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .api.dependencies import shutdown_runtime
from .api.routers import achievements, analytics, entries, health, summaries, tags
from .config import load_settings
from .infra.logging import configure_logging, get_logger

logger = get_logger(__name__)

ROUTERS = (
    health.router,
    entries.router,
    tags.router,
    achievements.router,
    analytics.router,
    summaries.router,
)


@asynccontextmanager
async def lifespan(application: FastAPI):
    yield
    # Queued enrichment, achievement and summary jobs finish before exit.
    shutdown_runtime()
    logger.info("voicelog_api_stopped")


def create_app() -> FastAPI:
    settings = load_settings()
    configure_logging(settings.logging)
    application = FastAPI(title="VoiceLog API", version=__version__, lifespan=lifespan)
    for router in ROUTERS:
        application.include_router(router)
    logger.info(
        "voicelog_api_created",
        extra={"environment": settings.environment, "routes": len(application.routes)},
    )
    return application


app = create_app()
