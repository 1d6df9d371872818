"""TwiML voice-response composition."""
from twilio.twiml.voice_response import Gather, VoiceResponse

from app.services.agent.constants import (
    GOODBYE_MESSAGE,
    LISTEN_PROMPT,
    NO_INPUT_GOODBYE,
    REENGAGE_PROMPT,
    TRANSFER_FAILED_MESSAGE,
    TRANSFER_NOTICE,
    WELCOME_MESSAGE,
)

VOICE_HANDLER_PATH = "/voice-handler"
TRANSFER_STATUS_PATH = "/transfer-status"


class VoiceResponseComposer:
    """Builds the TwiML documents returned to Twilio."""

    def __init__(
        self,
        voice: str = "Google.en-AU-Neural2-C",
        language: str = "en-AU",
        speech_timeout: int = 60,
        speech_end_timeout: int = 1,
        transfer_number: str = "+18655516860",
        transfer_display_number: str = "865-551-6860",
        transfer_timeout: int = 30,
        voice_handler_url: str = VOICE_HANDLER_PATH,
        transfer_status_url: str = TRANSFER_STATUS_PATH,
    ):
        self.voice = voice
        self.language = language
        self.speech_timeout = speech_timeout
        self.speech_end_timeout = speech_end_timeout
        self.transfer_number = transfer_number
        self.transfer_display_number = transfer_display_number
        self.transfer_timeout = transfer_timeout
        self.voice_handler_url = voice_handler_url
        self.transfer_status_url = transfer_status_url

    def _say(self, verb, text: str) -> None:
        verb.say(text, voice=self.voice, language=self.language)

    def _gather(self) -> Gather:
        """Listen directive with bounded timeouts, posting back to the voice handler."""
        return Gather(
            input="speech",
            timeout=self.speech_timeout,
            speech_timeout=self.speech_end_timeout,
            action=self.voice_handler_url,
            method="POST",
        )

    def empty(self) -> str:
        return str(VoiceResponse())

    def say(self, text: str) -> str:
        """A single spoken line, then the call ends."""
        response = VoiceResponse()
        self._say(response, text)
        return str(response)

    def welcome(self) -> str:
        """Welcome line, short pause, then listen with a nested prompt."""
        response = VoiceResponse()
        self._say(response, WELCOME_MESSAGE)
        response.pause(length=1)
        self._append_listen(response, LISTEN_PROMPT)
        return str(response)

    def listen_with_prompt(self, prompt: str = LISTEN_PROMPT) -> str:
        response = VoiceResponse()
        self._append_listen(response, prompt)
        return str(response)

    def reprompt(self) -> str:
        """Re-engage the caller without replaying the welcome."""
        return self.listen_with_prompt(REENGAGE_PROMPT)

    def continue_conversation(self, reply: str) -> str:
        """Speak the reply, listen again, say goodbye if nothing more is heard."""
        response = VoiceResponse()
        self._say(response, reply)
        response.append(self._gather())
        self._say(response, GOODBYE_MESSAGE)
        return str(response)

    def transfer(self) -> str:
        """Notice, bridge to customer service, fallback if the bridge fails."""
        response = VoiceResponse()
        self._say(response, TRANSFER_NOTICE)
        response.dial(
            self.transfer_number,
            timeout=self.transfer_timeout,
            record="record-from-ringing-dual",
            action=self.transfer_status_url,
            method="POST",
        )
        self._say(
            response,
            TRANSFER_FAILED_MESSAGE.format(number=self.transfer_display_number),
        )
        return str(response)

    def _append_listen(self, response: VoiceResponse, prompt: str) -> None:
        gather = self._gather()
        self._say(gather, prompt)
        response.append(gather)
        self._say(response, NO_INPUT_GOODBYE)
