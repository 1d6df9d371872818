"""Terminal webhooks: recording completion and transfer outcome."""
import logging

from app.services.agent.constants import (
    TRANSFER_BUSY_MESSAGE,
    TRANSFER_DEFAULT_MESSAGE,
    TRANSFER_NO_ANSWER_MESSAGE,
    TRANSFER_UNABLE_MESSAGE,
)
from app.services.call_session.models import RecordingEvent, TransferEvent
from app.services.speech.twiml import VoiceResponseComposer

logger = logging.getLogger(__name__)


class OutcomeHandler:
    """Observes post-hoc notifications; never starts a new listen."""

    def __init__(self, composer: VoiceResponseComposer):
        self.composer = composer

    def recording_status(self, event: RecordingEvent) -> str:
        logger.info(
            f"[RECORDING STATUS] RecordingSid: {event.recording_sid}, "
            f"Status: {event.recording_status}, CallSid: {event.call_sid}, "
            f"Duration: {event.recording_duration}"
        )
        if event.recording_status == "completed":
            logger.info(
                f"[RECORDING STATUS] Recording completed - CallSid: {event.call_sid}, "
                f"URL: {event.recording_url}, Duration: {event.recording_duration} seconds"
            )
        return self.composer.empty()

    def transfer_status(self, event: TransferEvent) -> str:
        """Map the dial outcome to a final spoken message."""
        status = event.dial_call_status
        number = self.composer.transfer_display_number
        logger.info(
            f"[TRANSFER STATUS] CallSid: {event.call_sid}, DialCallStatus: {status}, "
            f"Duration: {event.dial_call_duration}, RecordingUrl: {event.recording_url}"
        )

        if status == "completed":
            logger.info(
                f"[TRANSFER STATUS] Transfer completed. Duration: {event.dial_call_duration} seconds"
            )
            return self.composer.empty()

        if status == "busy":
            message = TRANSFER_BUSY_MESSAGE
        elif status == "no-answer":
            message = TRANSFER_NO_ANSWER_MESSAGE
        elif status in ("failed", "canceled"):
            message = TRANSFER_UNABLE_MESSAGE
        else:
            logger.warning(f"[TRANSFER STATUS] Unexpected transfer status: {status}")
            message = TRANSFER_DEFAULT_MESSAGE
        return self.composer.say(message.format(number=number))
