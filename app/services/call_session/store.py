"""In-memory conversation store keyed by call SID."""
import asyncio
import logging
from collections import OrderedDict
from typing import List, Optional

from app.services.call_session.models import (
    CallSession,
    RecordingState,
    Turn,
    TurnRole,
)

logger = logging.getLogger(__name__)

MAX_TURNS = 20
MAX_SESSIONS = 1000


class ConversationStore:
    """
    Process-lifetime mapping from call SID to conversation history.

    Every public method takes the store lock for its whole body, so each
    operation is seen by other invocations as a single atomic step. State is
    lost on restart; a multi-process deployment would back this with a
    shared store keyed by call SID.
    """

    def __init__(
        self,
        max_turns: int = MAX_TURNS,
        max_sessions: int = MAX_SESSIONS,
        reset_on_call_switch: bool = True,
    ):
        if max_turns < 2 or max_turns % 2:
            raise ValueError("max_turns must be a positive even number")
        self.max_turns = max_turns
        self.max_sessions = max_sessions
        self.reset_on_call_switch = reset_on_call_switch
        self._sessions: "OrderedDict[str, CallSession]" = OrderedDict()
        self._last_call_sid: Optional[str] = None
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def last_call_sid(self) -> Optional[str]:
        return self._last_call_sid

    def _touch(self, call_sid: str) -> CallSession:
        session = self._sessions.get(call_sid)
        if session is None:
            session = CallSession(call_sid=call_sid)
            self._sessions[call_sid] = session
            logger.debug(f"[STORE] Created session - CallSid: {call_sid}")
            while len(self._sessions) > self.max_sessions:
                evicted_sid, _ = self._sessions.popitem(last=False)
                logger.info(f"[STORE] Evicted idle session - CallSid: {evicted_sid}")
        else:
            self._sessions.move_to_end(call_sid)
        return session

    async def get(self, call_sid: str) -> Optional[CallSession]:
        """Return a copy of the session, or None if unknown."""
        async with self._lock:
            session = self._sessions.get(call_sid)
            return session.model_copy(deep=True) if session else None

    async def get_or_create(self, call_sid: str) -> CallSession:
        """Return a copy of the session, creating it on first observation."""
        async with self._lock:
            return self._touch(call_sid).model_copy(deep=True)

    async def reset(self, call_sid: str) -> None:
        """Replace the session with a fresh one."""
        async with self._lock:
            self._sessions.pop(call_sid, None)
            self._touch(call_sid)

    async def end(self, call_sid: str) -> None:
        """Forget a call entirely."""
        async with self._lock:
            self._sessions.pop(call_sid, None)
            if self._last_call_sid == call_sid:
                self._last_call_sid = None

    async def begin_turn(self, call_sid: str) -> bool:
        """
        Register call_sid as the call being processed.

        Returns True when the call differs from the most recently processed
        one and its history was discarded.
        """
        async with self._lock:
            switched = self._last_call_sid != call_sid
            self._last_call_sid = call_sid
            session = self._touch(call_sid)
            if switched and self.reset_on_call_switch:
                if session.turns:
                    logger.info(
                        f"[STORE] Call switch detected, discarding {len(session.turns)} turns - "
                        f"CallSid: {call_sid}"
                    )
                session.turns = []
                return True
            return False

    async def history(self, call_sid: str) -> List[Turn]:
        """Snapshot of the stored turns, oldest first."""
        async with self._lock:
            session = self._sessions.get(call_sid)
            if session is None:
                return []
            return [turn.model_copy() for turn in session.turns]

    async def append_exchange(
        self, call_sid: str, user_text: str, assistant_text: str
    ) -> int:
        """
        Append a user/assistant pair and evict the oldest pairs beyond max_turns.

        Returns the number of stored turns.
        """
        async with self._lock:
            session = self._touch(call_sid)
            session.turns.append(Turn(role=TurnRole.USER, content=user_text))
            session.turns.append(Turn(role=TurnRole.ASSISTANT, content=assistant_text))
            overflow = len(session.turns) - self.max_turns
            if overflow > 0:
                # Whole pairs only
                overflow += overflow % 2
                del session.turns[:overflow]
            return len(session.turns)

    async def mark_welcome_played(self, call_sid: str) -> None:
        async with self._lock:
            self._touch(call_sid).welcome_played = True

    async def set_recording_state(self, call_sid: str, state: RecordingState) -> None:
        async with self._lock:
            self._touch(call_sid).recording_state = state

    async def recording_state(self, call_sid: str) -> RecordingState:
        async with self._lock:
            session = self._sessions.get(call_sid)
            return session.recording_state if session else RecordingState.NOT_STARTED
