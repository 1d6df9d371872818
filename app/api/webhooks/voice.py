"""Twilio voice webhook endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import Response

from app.core.dependencies import get_composer, get_outcome_handler, get_turn_controller
from app.services.agent.constants import ERROR_MESSAGE
from app.services.call_session.controller import TurnController
from app.services.call_session.models import RecordingEvent, TransferEvent, VoiceEvent
from app.services.call_session.outcomes import OutcomeHandler
from app.services.speech.twiml import VoiceResponseComposer

router = APIRouter()
logger = logging.getLogger(__name__)


def twiml_response(twiml: str) -> Response:
    return Response(content=twiml, media_type="application/xml")


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/voice-handler")
async def voice_handler(
    request: Request,
    CallSid: Optional[str] = Form(None),
    CallStatus: Optional[str] = Form(None),
    SpeechResult: Optional[str] = Form(None),
    Confidence: Optional[str] = Form(None),
    Digits: Optional[str] = Form(None),
    DialCallStatus: Optional[str] = Form(None),
    controller: TurnController = Depends(get_turn_controller),
    composer: VoiceResponseComposer = Depends(get_composer),
):
    """
    Handle a voice webhook from Twilio.

    Called when a call connects and again every time a <Gather> completes.
    Always answers with TwiML so Twilio never retries or drops the call.
    """
    logger.info(
        f"[VOICE HANDLER] Received webhook - CallSid: {CallSid}, CallStatus: {CallStatus}, "
        f"SpeechResult length: {len(SpeechResult) if SpeechResult else 0}, "
        f"Client: {_client_host(request)}"
    )
    event = VoiceEvent(
        call_sid=CallSid,
        call_status=CallStatus,
        speech_result=SpeechResult,
        confidence=Confidence,
        digits=Digits,
        dial_call_status=DialCallStatus,
    )
    try:
        twiml = await controller.handle(event)
    except Exception as e:
        logger.error(
            f"[VOICE HANDLER] Unhandled error - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = composer.say(ERROR_MESSAGE)
    return twiml_response(twiml)


@router.post("/start-recording-and-continue")
async def start_recording_and_continue(
    CallSid: Optional[str] = Form(None),
    controller: TurnController = Depends(get_turn_controller),
    composer: VoiceResponseComposer = Depends(get_composer),
):
    """Start recording once the call is established, then listen for the caller."""
    try:
        twiml = await controller.start_recording_and_continue(VoiceEvent(call_sid=CallSid))
    except Exception as e:
        logger.error(
            f"[START RECORDING] Unhandled error - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = composer.say(ERROR_MESSAGE)
    return twiml_response(twiml)


@router.post("/recording-handler")
async def recording_handler(
    RecordingSid: Optional[str] = Form(None),
    RecordingStatus: Optional[str] = Form(None),
    CallSid: Optional[str] = Form(None),
    RecordingDuration: Optional[str] = Form(None),
    RecordingUrl: Optional[str] = Form(None),
    outcomes: OutcomeHandler = Depends(get_outcome_handler),
    composer: VoiceResponseComposer = Depends(get_composer),
):
    """Recording status callback. Observed only."""
    event = RecordingEvent(
        recording_sid=RecordingSid,
        recording_status=RecordingStatus,
        call_sid=CallSid,
        recording_duration=RecordingDuration,
        recording_url=RecordingUrl,
    )
    try:
        twiml = outcomes.recording_status(event)
    except Exception as e:
        logger.error(
            f"[RECORDING STATUS] Error handling recording status - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = composer.empty()
    return twiml_response(twiml)


@router.post("/transfer-status")
async def transfer_status(
    CallSid: Optional[str] = Form(None),
    DialCallStatus: Optional[str] = Form(None),
    DialCallDuration: Optional[str] = Form(None),
    RecordingUrl: Optional[str] = Form(None),
    outcomes: OutcomeHandler = Depends(get_outcome_handler),
    composer: VoiceResponseComposer = Depends(get_composer),
):
    """Dial action callback after a transfer attempt. Always terminal."""
    event = TransferEvent(
        call_sid=CallSid,
        dial_call_status=DialCallStatus,
        dial_call_duration=DialCallDuration,
        recording_url=RecordingUrl,
    )
    try:
        twiml = outcomes.transfer_status(event)
    except Exception as e:
        logger.error(
            f"[TRANSFER STATUS] Error handling transfer status - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        twiml = composer.say(ERROR_MESSAGE)
    return twiml_response(twiml)
