"""Starts call recordings with bounded retries."""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

from twilio.base.exceptions import TwilioRestException

from app.services.call_session.models import RecordingState
from app.services.call_session.store import ConversationStore
from app.services.recording.models import ErrorClass, RecordingAttempt
from app.services.telephony.call_control import (
    CallControlNotConfigured,
    TwilioCallControl,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 1.0
FIRST_ATTEMPT_TIMEOUT = 5.0

# Twilio errors after which the call can never be recorded:
# 20404 resource not found, 21220 call not in a recordable state
PERMANENT_ERROR_CODES = frozenset({20404, 21220})
PERMANENT_ERROR_MESSAGE = "not eligible for recording"


def classify_error(error: Exception) -> ErrorClass:
    """Decide whether a recording failure is worth retrying."""
    if isinstance(error, CallControlNotConfigured):
        return ErrorClass.PERMANENT
    if isinstance(error, TwilioRestException) and error.code in PERMANENT_ERROR_CODES:
        return ErrorClass.PERMANENT
    message = getattr(error, "msg", None) or str(error)
    if PERMANENT_ERROR_MESSAGE in message.lower():
        return ErrorClass.PERMANENT
    return ErrorClass.TRANSIENT


class RecordingOrchestrator:
    """
    Deduplicated, retrying recording starter.

    One RecordingAttempt is tracked per call while a start is in flight; a
    second request for the same call is a no-op. The entry is removed when
    the recording starts, fails permanently, or runs out of attempts.
    """

    def __init__(
        self,
        call_control: TwilioCallControl,
        store: Optional[ConversationStore] = None,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_seconds: float = BACKOFF_SECONDS,
        first_attempt_timeout: Optional[float] = FIRST_ATTEMPT_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.call_control = call_control
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.first_attempt_timeout = first_attempt_timeout
        self._sleep = sleep
        self._attempts: Dict[str, RecordingAttempt] = {}
        self._lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()

    def is_tracking(self, call_sid: str) -> bool:
        return call_sid in self._attempts

    def attempt(self, call_sid: str) -> Optional[RecordingAttempt]:
        return self._attempts.get(call_sid)

    def backoff_delay(self, attempts_made: int) -> float:
        """Delay before the next attempt: 1s, 2s, 4s, ..."""
        return self.backoff_seconds * (2 ** (attempts_made - 1))

    async def start_recording(self, call_sid: str) -> Optional[RecordingState]:
        """
        Run the full attempt loop for a call.

        Returns the resulting recording state, or None when the call is
        already being handled or already finished.
        """
        record = await self._claim(call_sid)
        if record is None:
            return None
        return await self._run(record)

    async def prime(self, call_sid: str) -> None:
        """
        Await the first attempt only; remaining retries run in the background.

        A first attempt slower than first_attempt_timeout is left running and
        settled by a background task, so callers are never held up by Twilio.

        Never raises.
        """
        record = await self._claim(call_sid)
        if record is None:
            return
        first = asyncio.ensure_future(self._attempt_once(record))
        try:
            outcome = await asyncio.wait_for(
                asyncio.shield(first), timeout=self.first_attempt_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[RECORDING] First attempt still pending after {self.first_attempt_timeout:g}s, "
                f"continuing in background - CallSid: {call_sid}"
            )
            self._spawn(self._resume(record, first))
            return
        except BaseException:
            first.cancel()
            await self._finish(record, RecordingState.NOT_STARTED)
            raise

        await self._settle(record, outcome)

    async def _resume(self, record: RecordingAttempt, pending: "asyncio.Future[ErrorClass]") -> None:
        """Wait out a slow first attempt, then settle it like any other."""
        try:
            outcome = await pending
        except BaseException:
            await self._finish(record, RecordingState.NOT_STARTED)
            raise
        await self._settle(record, outcome)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _settle(self, record: RecordingAttempt, outcome: ErrorClass) -> None:
        if outcome is ErrorClass.NONE:
            await self._finish(record, RecordingState.SUCCEEDED)
        elif outcome is ErrorClass.PERMANENT:
            await self._finish(record, RecordingState.PERMANENTLY_FAILED)
        elif record.attempts >= self.max_attempts:
            await self._finish(record, RecordingState.NOT_STARTED)
        else:
            self._spawn(self._run(record))

    async def drain(self) -> None:
        """Wait for background retries to complete."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel background retries."""
        for task in list(self._background):
            task.cancel()
        await self.drain()
        # Tasks cancelled before their first step never reach _finish
        async with self._lock:
            leftover = list(self._attempts.values())
            self._attempts.clear()
        for record in leftover:
            if self.store is not None:
                await self.store.set_recording_state(record.call_sid, RecordingState.NOT_STARTED)

    async def _claim(self, call_sid: str) -> Optional[RecordingAttempt]:
        async with self._lock:
            if call_sid in self._attempts:
                logger.info(f"[RECORDING] Start already in progress, skipping - CallSid: {call_sid}")
                return None
            if self.store is not None:
                state = await self.store.recording_state(call_sid)
                if state in (RecordingState.SUCCEEDED, RecordingState.PERMANENTLY_FAILED):
                    logger.info(
                        f"[RECORDING] Recording already {state}, skipping - CallSid: {call_sid}"
                    )
                    return None
            record = RecordingAttempt(call_sid=call_sid)
            self._attempts[call_sid] = record
        if self.store is not None:
            await self.store.set_recording_state(call_sid, RecordingState.IN_PROGRESS)
        return record

    async def _run(self, record: RecordingAttempt) -> RecordingState:
        state = RecordingState.NOT_STARTED
        try:
            while record.attempts < self.max_attempts:
                if record.attempts > 0:
                    delay = self.backoff_delay(record.attempts)
                    logger.info(
                        f"[RECORDING] Retrying in {delay:g}s "
                        f"(attempt {record.attempts + 1}/{self.max_attempts}) - CallSid: {record.call_sid}"
                    )
                    await self._sleep(delay)

                outcome = await self._attempt_once(record)
                if outcome is ErrorClass.NONE:
                    state = RecordingState.SUCCEEDED
                    break
                if outcome is ErrorClass.PERMANENT:
                    state = RecordingState.PERMANENTLY_FAILED
                    break
            else:
                logger.warning(
                    f"[RECORDING] Giving up after {record.attempts} attempts - "
                    f"CallSid: {record.call_sid}. Continuing without recording"
                )
        finally:
            await self._finish(record, state)
        return state

    async def _attempt_once(self, record: RecordingAttempt) -> ErrorClass:
        record.attempts += 1
        try:
            recording_sid = await self.call_control.start_recording(record.call_sid)
        except Exception as e:
            record.last_error = classify_error(e)
            logger.warning(
                f"[RECORDING] Attempt {record.attempts}/{self.max_attempts} failed "
                f"({record.last_error}) - CallSid: {record.call_sid}, "
                f"Error: {type(e).__name__}: {e}"
            )
            return record.last_error

        record.last_error = ErrorClass.NONE
        logger.info(
            f"[RECORDING] Recording started successfully - CallSid: {record.call_sid}, "
            f"RecordingSid: {recording_sid}, Attempt: {record.attempts}"
        )
        return ErrorClass.NONE

    async def _finish(self, record: RecordingAttempt, state: RecordingState) -> None:
        async with self._lock:
            self._attempts.pop(record.call_sid, None)
        if self.store is not None:
            await self.store.set_recording_state(record.call_sid, state)
