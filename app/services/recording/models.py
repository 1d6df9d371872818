"""Recording attempt models."""
from dataclasses import dataclass
from enum import Enum


class ErrorClass(str, Enum):
    """Classification of the last recording failure."""

    NONE = "none"
    TRANSIENT = "transient"
    PERMANENT = "permanent"

    def __str__(self) -> str:
        return self.value


@dataclass
class RecordingAttempt:
    """In-flight recording start for one call."""

    call_sid: str
    attempts: int = 0
    last_error: ErrorClass = ErrorClass.NONE
