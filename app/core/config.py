"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"

    # Voice
    voice: str = "Google.en-AU-Neural2-C"
    language: str = "en-AU"
    speech_timeout: int = 60
    speech_end_timeout: int = 1

    # Static knowledge (system prompt + knowledge base)
    knowledge_domain: Optional[str] = None
    knowledge_dir: Optional[str] = None
    knowledge_fetch_timeout: float = 10.0

    # Twilio
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    base_url: Optional[str] = None

    # Transfer
    transfer_number: str = "+18655516860"
    transfer_display_number: str = "865-551-6860"
    transfer_timeout: int = 30

    # Recording
    recording_max_attempts: int = 3
    recording_backoff_seconds: float = 1.0
    recording_first_attempt_timeout: float = 5.0
    twilio_http_timeout: float = 10.0

    # Conversation store
    max_turns: int = 20
    max_sessions: int = 1000
    reset_on_call_switch: bool = True

    # Server
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def callback_url(self, path: str) -> str:
        """Absolute callback URL when BASE_URL is set, otherwise the bare path."""
        if self.base_url:
            return f"{self.base_url.rstrip('/')}{path}"
        return path


settings = Settings()
