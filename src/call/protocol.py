"""Wire protocol shared by the call session and the orchestrator."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Final, Union

import numpy as np

SAMPLE_DTYPE: Final = np.dtype("<f4")
CHUNK_SAMPLES: Final[int] = 1024

INTERRUPTED_MESSAGE: Final[str] = "[Interrupted your last message]"
READY_BANNER: Final[str] = "--- Assistant Ready ---"
HANGUP_BANNER: Final[str] = "---- Assistant Hung Up ----"


class ControlToken(str, Enum):
    """Text frames that carry protocol meaning."""

    READY = "RDY"  # server -> client: start listening
    END_OF_SPEECH = "EOS"  # client -> server: utterance finished
    INTERRUPT = "INT"  # client -> server: user talked over playback
    CLEAR_BUFFER = "CLR"  # server -> client: drop queued playback


@dataclass(frozen=True, slots=True)
class UnknownText:
    """Any text frame that is not a control token (status lines, banners, ...)."""

    text: str


TextFrame = Union[ControlToken, UnknownText]


def classify_text(text: str) -> TextFrame:
    """Map a text frame onto the closed token set, or wrap it as unknown."""

    try:
        return ControlToken(text)
    except ValueError:
        return UnknownText(text)


# Events flowing from the session to the orchestrator.


@dataclass(frozen=True, slots=True)
class UtteranceReady:
    transcript: str


@dataclass(frozen=True, slots=True)
class ControlReceived:
    token: ControlToken


@dataclass(frozen=True, slots=True)
class UnknownMessage:
    text: str


@dataclass(frozen=True, slots=True)
class TranscriptionFailed:
    error: Exception


@dataclass(frozen=True, slots=True)
class CallHungUp:
    pass


SessionEvent = Union[UtteranceReady, ControlReceived, UnknownMessage, TranscriptionFailed, CallHungUp]


def decode_audio_frame(payload: bytes) -> np.ndarray:
    """Decode a binary frame into float32 samples.

    Trailing bytes that do not form a whole sample are dropped.
    """

    usable = len(payload) - (len(payload) % SAMPLE_DTYPE.itemsize)
    return np.frombuffer(payload[:usable], dtype=SAMPLE_DTYPE).astype(np.float32)


def encode_audio_frame(samples: np.ndarray) -> bytes:
    return np.asarray(samples, dtype=SAMPLE_DTYPE).tobytes()


def concat_chunks(chunks: Iterable[np.ndarray]) -> np.ndarray:
    """Join chunks in order. Chunk sizes may vary; only the total is preserved."""

    chunks = list(chunks)
    if not chunks:
        return np.zeros(0, dtype=np.float32)
    return np.concatenate(chunks).astype(np.float32, copy=False)


def iter_chunks(samples: np.ndarray, size: int = CHUNK_SAMPLES) -> Iterator[np.ndarray]:
    """Yield consecutive slices of at most `size` samples. The last may be short."""

    if size <= 0:
        raise ValueError("Chunk size must be positive.")
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    for i in range(0, samples.size, size):
        yield samples[i : i + size]


def profile_line(phase: str, duration_ms: int) -> str:
    return f"--- time.{phase} {duration_ms} ms"


def transcript_line(speaker: str, message: str) -> str:
    return f"{speaker}: {message}"
