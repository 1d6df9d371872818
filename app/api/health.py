"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends, Request

from app.core.dependencies import get_turn_controller
from app.services.call_session.controller import TurnController

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(
    request: Request,
    controller: TurnController = Depends(get_turn_controller),
):
    """Liveness plus which outbound integrations are configured."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    return {
        "status": "healthy",
        "ai_configured": controller.agent.is_configured,
        "recording_configured": controller.recording_enabled,
        "knowledge_loaded": controller.knowledge_loader.is_loaded,
    }
