"""Call session models."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class TurnRole(str, Enum):
    """Who produced a turn."""

    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class RecordingState(str, Enum):
    """Recording lifecycle for a call."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    PERMANENTLY_FAILED = "permanently_failed"

    def __str__(self) -> str:
        return self.value


class Turn(BaseModel):
    """One user utterance or one assistant reply."""

    role: TurnRole
    content: str

    def as_message(self) -> dict:
        """Chat-completion message form of this turn."""
        return {"role": self.role.value, "content": self.content}


class CallSession(BaseModel):
    """Conversation state for one call."""

    call_sid: str
    turns: List[Turn] = []
    recording_state: RecordingState = RecordingState.NOT_STARTED
    welcome_played: bool = False


class VoiceEvent(BaseModel):
    """Inbound /voice-handler webhook fields."""

    call_sid: Optional[str] = None
    call_status: Optional[str] = None
    speech_result: Optional[str] = None
    confidence: Optional[str] = None
    digits: Optional[str] = None
    dial_call_status: Optional[str] = None


class RecordingEvent(BaseModel):
    """Inbound /recording-handler webhook fields."""

    recording_sid: Optional[str] = None
    recording_status: Optional[str] = None
    call_sid: Optional[str] = None
    recording_duration: Optional[str] = None
    recording_url: Optional[str] = None


class TransferEvent(BaseModel):
    """Inbound /transfer-status webhook fields."""

    call_sid: Optional[str] = None
    dial_call_status: Optional[str] = None
    dial_call_duration: Optional[str] = None
    recording_url: Optional[str] = None
