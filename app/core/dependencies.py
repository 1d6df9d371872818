"""FastAPI dependencies."""
from functools import lru_cache

from app.core.config import settings
from app.services.agent.agent import AgentService
from app.services.call_session.controller import TurnController
from app.services.call_session.outcomes import OutcomeHandler
from app.services.call_session.store import ConversationStore
from app.services.knowledge.loader import KnowledgeLoader
from app.services.recording.orchestrator import RecordingOrchestrator
from app.services.speech.twiml import VoiceResponseComposer
from app.services.telephony.call_control import (
    RECORDING_CALLBACK_PATH,
    TwilioCallControl,
)


@lru_cache
def get_conversation_store() -> ConversationStore:
    """Process-lifetime conversation store."""
    return ConversationStore(
        max_turns=settings.max_turns,
        max_sessions=settings.max_sessions,
        reset_on_call_switch=settings.reset_on_call_switch,
    )


@lru_cache
def get_knowledge_loader() -> KnowledgeLoader:
    return KnowledgeLoader(
        domain=settings.knowledge_domain,
        directory=settings.knowledge_dir,
        timeout=settings.knowledge_fetch_timeout,
    )


@lru_cache
def get_recording_orchestrator() -> RecordingOrchestrator:
    call_control = TwilioCallControl(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        recording_callback_url=settings.callback_url(RECORDING_CALLBACK_PATH),
        http_timeout=settings.twilio_http_timeout,
    )
    return RecordingOrchestrator(
        call_control,
        store=get_conversation_store(),
        max_attempts=settings.recording_max_attempts,
        backoff_seconds=settings.recording_backoff_seconds,
        first_attempt_timeout=settings.recording_first_attempt_timeout,
    )


def get_composer() -> VoiceResponseComposer:
    return VoiceResponseComposer(
        voice=settings.voice,
        language=settings.language,
        speech_timeout=settings.speech_timeout,
        speech_end_timeout=settings.speech_end_timeout,
        transfer_number=settings.transfer_number,
        transfer_display_number=settings.transfer_display_number,
        transfer_timeout=settings.transfer_timeout,
    )


@lru_cache
def get_agent_service() -> AgentService:
    return AgentService(api_key=settings.openai_api_key, model=settings.openai_model)


def get_turn_controller() -> TurnController:
    """Turn controller over the shared store, loader and recorder."""
    return TurnController(
        store=get_conversation_store(),
        knowledge_loader=get_knowledge_loader(),
        agent=get_agent_service(),
        composer=get_composer(),
        recorder=get_recording_orchestrator(),
    )


def get_outcome_handler() -> OutcomeHandler:
    return OutcomeHandler(get_composer())
