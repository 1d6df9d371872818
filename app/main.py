"""Main FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.core.dependencies import get_recording_orchestrator
from app.core.logging import setup_logging
from app.api import health, webhooks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging(settings.log_level)
    yield
    # Shutdown
    await get_recording_orchestrator().shutdown()


app = FastAPI(
    title="Yello Voice Agent",
    description="Twilio voice webhooks bridging phone calls to an OpenAI assistant",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(webhooks.voice.router, tags=["webhooks"])
