"""Turn controller: decides what each voice webhook answers."""
import logging
from typing import Optional

from app.services.agent.agent import AgentService, is_transfer_request
from app.services.agent.constants import ERROR_MESSAGE, NOT_CONFIGURED_MESSAGE
from app.services.call_session.models import VoiceEvent
from app.services.call_session.stages import TurnKind, classify
from app.services.call_session.store import ConversationStore
from app.services.knowledge.loader import KnowledgeLoader
from app.services.recording.orchestrator import RecordingOrchestrator
from app.services.speech.twiml import VoiceResponseComposer

logger = logging.getLogger(__name__)


class TurnController:
    """
    Reconstructs the conversation for a call and produces one TwiML document
    per webhook.

    All state lives in the injected store and orchestrator; the controller
    itself holds none.
    """

    def __init__(
        self,
        store: ConversationStore,
        knowledge_loader: KnowledgeLoader,
        agent: AgentService,
        composer: VoiceResponseComposer,
        recorder: Optional[RecordingOrchestrator] = None,
    ):
        self.store = store
        self.knowledge_loader = knowledge_loader
        self.agent = agent
        self.composer = composer
        self.recorder = recorder

    @property
    def recording_enabled(self) -> bool:
        return self.recorder is not None and self.recorder.call_control.is_configured

    async def handle(self, event: VoiceEvent) -> str:
        """
        Handle one /voice-handler webhook.

        Returns:
            TwiML XML response; never raises
        """
        try:
            if not self.agent.is_configured:
                logger.error("[VOICE HANDLER] OpenAI API key not found in configuration")
                return self.composer.say(NOT_CONFIGURED_MESSAGE)

            kind = classify(event)
            logger.info(
                f"[VOICE HANDLER] Processing call - CallSid: {event.call_sid}, "
                f"CallStatus: {event.call_status}, Turn: {kind}"
            )

            if kind is TurnKind.SPEECH:
                return await self._handle_speech(event)
            if kind is TurnKind.INITIAL:
                return await self._handle_initial(event)
            return self._handle_continuation(event)

        except Exception as e:
            logger.error(
                f"[VOICE HANDLER] Error handling turn - CallSid: {event.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return self.composer.say(ERROR_MESSAGE)

    async def start_recording_and_continue(self, event: VoiceEvent) -> str:
        """Delayed-recording entry: start recording, then listen for the caller."""
        try:
            logger.info(
                f"[START RECORDING] Start recording and continue - CallSid: {event.call_sid}"
            )
            await self._prime_recording(event.call_sid)
            return self.composer.listen_with_prompt()
        except Exception as e:
            logger.error(
                f"[START RECORDING] Error in delayed recording handler - CallSid: {event.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return self.composer.say(ERROR_MESSAGE)

    async def _handle_speech(self, event: VoiceEvent) -> str:
        call_sid = event.call_sid or ""
        speech = event.speech_result.strip()
        logger.info(
            f"[VOICE HANDLER] User input received (Confidence: {event.confidence}) - CallSid: {call_sid}"
        )

        knowledge = await self.knowledge_loader.ensure_loaded()

        if await self.store.begin_turn(call_sid):
            logger.info(f"[VOICE HANDLER] New conversation - CallSid: {call_sid}")

        history = await self.store.history(call_sid)
        reply = await self.agent.generate_reply(knowledge, history, speech)

        stored = await self.store.append_exchange(call_sid, speech, reply)
        logger.info(
            f"[VOICE HANDLER] AI response generated ({stored // 2} exchanges remembered) - "
            f"CallSid: {call_sid}"
        )

        if is_transfer_request(reply):
            logger.info(f"[VOICE HANDLER] Transfer request detected - CallSid: {call_sid}")
            return self.composer.transfer()
        return self.composer.continue_conversation(reply)

    async def _handle_initial(self, event: VoiceEvent) -> str:
        logger.info(f"[VOICE HANDLER] Initial call - starting welcome sequence - CallSid: {event.call_sid}")
        if event.call_sid:
            await self._prime_recording(event.call_sid)
            await self.store.mark_welcome_played(event.call_sid)
        return self.composer.welcome()

    def _handle_continuation(self, event: VoiceEvent) -> str:
        logger.info(f"[VOICE HANDLER] Continuing conversation flow - CallSid: {event.call_sid}")
        return self.composer.reprompt()

    async def _prime_recording(self, call_sid: Optional[str]) -> None:
        """Best-effort; waits for the first attempt only and never raises."""
        if not call_sid or not self.recording_enabled:
            return
        try:
            await self.recorder.prime(call_sid)
        except Exception as e:
            logger.warning(
                f"[VOICE HANDLER] Recording not available - CallSid: {call_sid}, "
                f"Error: {type(e).__name__}: {e}. Continuing without recording"
            )
