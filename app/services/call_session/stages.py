"""Turn classification."""
from enum import Enum

from app.services.call_session.models import VoiceEvent


class TurnKind(str, Enum):
    """What a /voice-handler invocation represents."""

    SPEECH = "speech"  # Caller said something
    INITIAL = "initial"  # First webhook of a call
    CONTINUATION = "continuation"  # Anything else: listen again, no welcome

    def __str__(self) -> str:
        """Return the string value of the kind."""
        return self.value


def classify(event: VoiceEvent) -> TurnKind:
    """
    Classify a voice webhook, in precedence order.

    A call is initial only when it carries no speech, no digits and no
    dial-call status. CallStatus is deliberately not consulted.
    """
    if event.speech_result and event.speech_result.strip():
        return TurnKind.SPEECH
    if not event.digits and not event.dial_call_status:
        return TurnKind.INITIAL
    return TurnKind.CONTINUATION
