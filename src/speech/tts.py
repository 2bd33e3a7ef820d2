"""Text-to-speech synthesis producing wire-format samples."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from xml.sax.saxutils import escape

import numpy as np

from agents.errors import TTSFailedError
from config.settings import get_settings
from speech.audio import decode_audio_file, pcm16_bytes_to_float, resample

LOGGER = logging.getLogger(__name__)

# Both OpenAI "pcm" output and Azure Raw24Khz16BitMonoPcm are 24 kHz PCM16.
PCM_PROVIDER_RATE = 24000


class BaseSynthesizer(ABC):
    """Interface for all text-to-speech synthesizers."""

    @abstractmethod
    async def synthesize(self, text: str, voice: str | None = None) -> np.ndarray:
        """Return mono float32 samples at the configured wire sample rate."""

    async def aclose(self) -> None:
        return None


class OpenAISynthesizer(BaseSynthesizer):
    """Hosted speech synthesis through the OpenAI audio API."""

    def __init__(self) -> None:
        from openai import AsyncOpenAI

        settings = get_settings()
        if not settings.llm_api_key:
            raise ValueError("LLM API key must be configured for OpenAI speech.")

        self._client = AsyncOpenAI(api_key=settings.llm_api_key)
        self._model = settings.tts_model
        self._voice = settings.tts_voice
        self._sample_rate = settings.sample_rate

    async def synthesize(self, text: str, voice: str | None = None) -> np.ndarray:
        try:
            response = await self._client.audio.speech.create(
                model=self._model,
                voice=voice or self._voice,
                input=text,
                response_format="pcm",
            )
        except Exception as exc:
            raise TTSFailedError(str(exc)) from exc

        samples = pcm16_bytes_to_float(response.content)
        return resample(samples, PCM_PROVIDER_RATE, self._sample_rate)

    async def aclose(self) -> None:
        await self._client.close()


class AzureSynthesizer(BaseSynthesizer):
    """Wrapper around Azure Cognitive Services Speech SDK."""

    def __init__(self) -> None:
        try:
            import azure.cognitiveservices.speech as speechsdk
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "azure-cognitiveservices-speech is required for AzureSynthesizer."
            ) from exc

        settings = get_settings()
        if not settings.azure_speech_key or not settings.azure_speech_region:
            raise ValueError("Azure speech key and region must be configured.")

        speech_config = speechsdk.SpeechConfig(
            subscription=settings.azure_speech_key,
            region=settings.azure_speech_region,
        )
        speech_config.speech_synthesis_voice_name = settings.tts_voice
        speech_config.set_speech_synthesis_output_format(
            speechsdk.SpeechSynthesisOutputFormat.Raw24Khz16BitMonoPcm
        )

        self._speechsdk = speechsdk
        self._speech_config = speech_config
        self._voice = settings.tts_voice
        self._sample_rate = settings.sample_rate

    async def synthesize(self, text: str, voice: str | None = None) -> np.ndarray:
        voice_name = voice or self._voice
        synthesizer = self._speechsdk.SpeechSynthesizer(
            speech_config=self._speech_config,
            audio_config=None,  # allow retrieving audio data directly
        )
        ssml = (
            "<speak version='1.0' xml:lang='en-US'>"
            f"<voice name='{voice_name}'>{escape(text)}</voice>"
            "</speak>"
        )
        result = await asyncio.to_thread(lambda: synthesizer.speak_ssml_async(ssml).get())

        if result.reason == self._speechsdk.ResultReason.Canceled:
            cancellation = result.cancellation_details
            raise TTSFailedError(f"Azure TTS canceled: {cancellation.error_details}")

        samples = pcm16_bytes_to_float(result.audio_data)
        return resample(samples, PCM_PROVIDER_RATE, self._sample_rate)


class CoquiSynthesizer(BaseSynthesizer):
    """Offline TTS using Coqui TTS models."""

    def __init__(self) -> None:
        try:
            from TTS.api import TTS  # type: ignore[import]
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("TTS package required for CoquiSynthesizer.") from exc

        self._tts = TTS(model_name="tts_models/en/ljspeech/vits")
        self._sample_rate = get_settings().sample_rate

    async def synthesize(self, text: str, voice: str | None = None) -> np.ndarray:
        return await asyncio.to_thread(self._synthesize_sync, text)

    def _synthesize_sync(self, text: str) -> np.ndarray:
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as handle:
            wav_path = Path(handle.name)
        try:
            self._tts.tts_to_file(text=text, file_path=str(wav_path))
            return decode_audio_file(wav_path.read_bytes(), self._sample_rate)
        except Exception as exc:
            raise TTSFailedError(str(exc)) from exc
        finally:
            wav_path.unlink(missing_ok=True)


def build_synthesizer() -> BaseSynthesizer:
    """Factory returning the configured synthesizer."""

    settings = get_settings()
    if settings.tts_provider == "openai":
        return OpenAISynthesizer()
    if settings.tts_provider == "azure":
        return AzureSynthesizer()
    if settings.tts_provider == "coqui":
        return CoquiSynthesizer()
    raise ValueError(f"Unsupported TTS provider: {settings.tts_provider}")
