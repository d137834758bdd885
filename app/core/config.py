"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str
    fraud_model: str = "gpt-4o-mini"
    transcription_model: str = "whisper-1"

    # Twilio
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_phone_number: Optional[str] = None

    # Database
    database_url: str

    # Fraud monitoring
    fraud_check_interval_seconds: float = 20.0
    fraud_warning_message: str = (
        "This call has been identified as fraudulent. It will now be disconnected."
    )

    # Call streaming
    transcription_chunk_seconds: float = 5.0
    capability_timeout_seconds: float = 15.0
    max_transcript_chars: Optional[int] = None  # None = unbounded
    max_audio_seconds: int = 3600
    pre_start_media_limit: int = 500  # frames held while waiting for "start"

    # Storage containers
    audio_container: str = "call-audio"
    log_container: str = "call-logs"

    # Server
    base_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
