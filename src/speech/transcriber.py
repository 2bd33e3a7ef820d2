"""Speech-to-text engines used to transcribe finished utterances."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from functools import lru_cache

import numpy as np

from agents.errors import TranscriptionFailedError
from config.settings import get_settings
from speech.audio import float_to_wav_bytes, resample

LOGGER = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


class SpeechToTextEngine(ABC):
    """One engine instance per call; released through `close()`."""

    @abstractmethod
    async def transcribe(self, samples: np.ndarray) -> str:
        """Transcribe mono float32 samples at the wire sample rate."""

    async def close(self) -> None:
        return None


@lru_cache(maxsize=1)
def _load_whisper_model(model_size: str, device: str, compute_type: str):
    # Model weights are loaded once per process and shared by every call.
    from faster_whisper import WhisperModel

    return WhisperModel(
        model_size_or_path=model_size,
        device=device,
        compute_type=compute_type,
    )


class WhisperTranscriber(SpeechToTextEngine):
    """Local transcription using faster-whisper."""

    def __init__(self, sample_rate: int | None = None) -> None:
        settings = get_settings()
        self._sample_rate = sample_rate or settings.sample_rate
        self._language = settings.stt_language
        self._model = _load_whisper_model(
            settings.whisper_model_size,
            settings.whisper_device,
            settings.whisper_compute_type,
        )

    async def transcribe(self, samples: np.ndarray) -> str:
        audio = resample(samples, self._sample_rate, WHISPER_SAMPLE_RATE)
        try:
            return await asyncio.to_thread(self._transcribe_sync, audio)
        except Exception as exc:
            raise TranscriptionFailedError(str(exc)) from exc

    def _transcribe_sync(self, audio: np.ndarray) -> str:
        segments, _info = self._model.transcribe(
            audio,
            beam_size=5,
            task="transcribe",
            language=self._language,
            condition_on_previous_text=False,
            temperature=0.0,
        )
        return " ".join(segment.text.strip() for segment in segments if segment.text.strip())

    async def close(self) -> None:
        self._model = None


class OpenAITranscriber(SpeechToTextEngine):
    """Hosted transcription through the OpenAI audio API."""

    def __init__(self, sample_rate: int | None = None) -> None:
        from openai import AsyncOpenAI

        settings = get_settings()
        if not settings.llm_api_key:
            raise ValueError("LLM API key must be configured for OpenAI transcription.")

        self._client = AsyncOpenAI(api_key=settings.llm_api_key)
        self._model = settings.stt_model
        self._language = settings.stt_language
        self._sample_rate = sample_rate or settings.sample_rate

    async def transcribe(self, samples: np.ndarray) -> str:
        wav = float_to_wav_bytes(samples, self._sample_rate)
        kwargs = {"model": self._model, "file": ("utterance.wav", wav, "audio/wav")}
        if self._language:
            kwargs["language"] = self._language
        try:
            result = await self._client.audio.transcriptions.create(**kwargs)
        except Exception as exc:
            raise TranscriptionFailedError(str(exc)) from exc
        return (result.text or "").strip()

    async def close(self) -> None:
        await self._client.close()


def build_transcriber() -> SpeechToTextEngine:
    """Factory returning a fresh engine for one call."""

    settings = get_settings()
    if settings.stt_provider == "faster_whisper":
        return WhisperTranscriber()
    if settings.stt_provider == "openai":
        return OpenAITranscriber()
    raise ValueError(f"Unsupported STT provider: {settings.stt_provider}")
