"""Twilio REST call control."""
import asyncio
import logging
from typing import Optional

from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

logger = logging.getLogger(__name__)

RECORDING_CALLBACK_PATH = "/recording-handler"


class CallControlNotConfigured(RuntimeError):
    """Raised when a Twilio operation is requested without credentials."""


class TwilioCallControl:
    """
    Thin wrapper over the Twilio REST client for in-call operations.

    Does NOT crash if Twilio is not configured; callers check is_configured.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        recording_callback_url: str = RECORDING_CALLBACK_PATH,
        client: Optional[TwilioClient] = None,
        http_timeout: Optional[float] = None,
    ):
        self.recording_callback_url = recording_callback_url
        self.client = client
        if self.client is None and account_sid and auth_token:
            self.client = TwilioClient(
                account_sid, auth_token, http_client=TwilioHttpClient(timeout=http_timeout)
            )
        if self.client is None:
            logger.warning("[CALL CONTROL] Twilio credentials not configured - recording disabled")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _create_recording(self, call_sid: str) -> str:
        recording = self.client.calls(call_sid).recordings.create(
            recording_channels="dual",
            recording_track="both",
            recording_status_callback=self.recording_callback_url,
        )
        return recording.sid

    async def start_recording(self, call_sid: str) -> str:
        """
        Start a dual-channel recording of an in-progress call.

        Returns:
            Recording SID

        Raises:
            CallControlNotConfigured: If Twilio is not configured
            TwilioRestException: If the Twilio API rejects the request
        """
        if not self.is_configured:
            raise CallControlNotConfigured("Twilio not configured")
        # The Twilio client is blocking; keep it off the event loop
        return await asyncio.to_thread(self._create_recording, call_sid)
