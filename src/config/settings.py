"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")

    # Wire audio format (mono float32)
    sample_rate: int = Field(default=24000, description="Sample rate of audio on the wire.")
    chunk_samples: int = Field(
        default=1024,
        gt=0,
        description="Number of samples per outbound binary frame.",
    )

    # Greeting / departure cues
    greeting_tone_hz: float = Field(default=440.0)
    departure_tone_hz: float = Field(default=180.0)
    tone_duration_seconds: float = Field(default=0.5, gt=0.0)

    # Session behaviour
    begin_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Pause between the greeting tone and the first RDY token.",
    )
    play_greeting_tone: bool = Field(default=True)
    outbound_queue_size: int = Field(
        default=256,
        gt=0,
        description="Maximum number of frames buffered for a slow client before senders wait.",
    )
    external_max_retries: int = Field(default=2, ge=0)
    external_retry_backoff_seconds: float = Field(default=0.25, ge=0.0)
    on_external_failure: Literal["end_call", "continue"] = Field(
        default="end_call",
        description="What to do once transcription, generation or synthesis keeps failing.",
    )

    # Assistant persona
    assistant_name: str = Field(default="assistant")
    system_prompt: str = Field(
        default=(
            "You are a friendly voice assistant on a phone call. "
            "Keep answers short and conversational. "
            "When the caller says goodbye or the conversation is over, call the endCall tool."
        )
    )
    speak_first: bool = Field(default=False)
    opening_message: str | None = Field(
        default=None,
        description="Literal opening line. When unset and speak_first is on, the LLM writes one.",
    )
    hangup_tool_name: str = Field(default="endCall")

    # Speech recognition
    stt_provider: Literal["faster_whisper", "openai"] = Field(default="openai")
    stt_model: str = Field(default="whisper-1", description="Model used by the OpenAI transcriber.")
    stt_language: str | None = Field(default=None)
    whisper_model_size: str = Field(default="Systran/faster-whisper-small")
    whisper_compute_type: str = Field(default="auto")  # e.g. float16, int8_float16
    whisper_device: str = Field(default="auto")

    # Text to speech
    tts_provider: Literal["openai", "azure", "coqui"] = Field(default="openai")
    tts_model: str = Field(default="tts-1")
    tts_voice: str = Field(default="alloy")
    azure_speech_key: str | None = Field(default=None)
    azure_speech_region: str | None = Field(default=None)

    # LLM connectivity
    llm_provider: Literal["openai", "self_hosted_vllm"] = Field(default="openai")
    llm_endpoint: str | None = Field(
        default=None, description="HTTP endpoint for the self-hosted inference server."
    )
    llm_api_key: str | None = Field(default=None)
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model identifier for the selected provider.",
    )
    llm_temperature: float = Field(default=0.4, ge=0.0, le=2.0)

    # Call log delivery
    call_log_webhook_url: str | None = Field(
        default=None,
        description="Optional endpoint that receives the final call log of every call.",
    )
    call_log_webhook_api_key: str | None = Field(default=None)

    @field_validator("opening_message")
    @classmethod
    def blank_opening_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
