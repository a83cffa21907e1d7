"""FastAPI app factory for the voice micropayment agent."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from micropay.api.health import router as health_router
from micropay.api.voice import router as voice_router
from micropay.api.voice import shutdown_services


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    shutdown_services()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance.
    """
    app = FastAPI(title="Voice Micropayment Agent", version="0.1", lifespan=_lifespan)
    app.include_router(health_router)
    app.include_router(voice_router)
    return app


# For uvicorn, expose `app` at module level
app = create_app()

__all__ = ["app", "create_app"]
