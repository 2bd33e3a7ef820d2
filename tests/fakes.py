from __future__ import annotations

import asyncio
from collections.abc import Callable

import numpy as np

from agents.assistant import AssistantReply
from agents.errors import TransportClosed
from call.protocol import SAMPLE_DTYPE
from speech.transcriber import SpeechToTextEngine


class FakeTransport:
    """In-memory duplex connection. `None` in the inbound queue means the peer hung up."""

    def __init__(self, *frames) -> None:
        self.inbound: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.inbound.put_nowait(frame)
        self.sent: list[bytes | str] = []
        self.closed = False
        self.send_gate: asyncio.Event | None = None

    def feed(self, *frames) -> None:
        for frame in frames:
            self.inbound.put_nowait(frame)

    def hang_up(self) -> None:
        self.inbound.put_nowait(None)

    async def receive(self):
        frame = await self.inbound.get()
        if frame is None:
            raise TransportClosed()
        return frame

    async def send_bytes(self, data: bytes) -> None:
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.closed:
            raise TransportClosed()
        self.sent.append(data)

    async def send_text(self, text: str) -> None:
        if self.closed:
            raise TransportClosed()
        self.sent.append(text)

    async def close(self) -> None:
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [item for item in self.sent if isinstance(item, str)]

    @property
    def audio_frames(self) -> list[np.ndarray]:
        return [np.frombuffer(item, dtype=SAMPLE_DTYPE) for item in self.sent if isinstance(item, bytes)]


class FakeSTT(SpeechToTextEngine):
    def __init__(self, transcripts: list[str] | None = None, *, failures: int = 0) -> None:
        self.transcripts = list(transcripts or [])
        self.failures = failures
        self.inputs: list[np.ndarray] = []
        self.closed = False

    async def transcribe(self, samples: np.ndarray) -> str:
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("stt backend unavailable")
        self.inputs.append(np.array(samples, copy=True))
        if self.transcripts:
            return self.transcripts.pop(0)
        return f"utterance {len(self.inputs)}"

    async def close(self) -> None:
        self.closed = True


def speech_for(text: str) -> np.ndarray:
    """Deterministic fake synthesis: 2500 samples derived from the text."""

    seed = sum(ord(ch) for ch in text)
    return ((np.arange(2500, dtype=np.float32) + seed) % 200 / 200.0).astype(np.float32)


class FakeAssistant:
    def __init__(
        self,
        replies: list[AssistantReply | Exception] | None = None,
        *,
        speak_first: bool = False,
        opening_message: str | None = None,
        hangup_tool: str = "endCall",
    ) -> None:
        self.replies = list(replies or [])
        self.speak_first = speak_first
        self.opening_message = opening_message
        self.hangup_tool = hangup_tool
        self.histories: list[list[tuple[str, str]]] = []
        self.spoken: list[str] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    def describe(self) -> dict:
        return {"name": "fake", "speak_first": self.speak_first}

    async def create_response(self, history) -> AssistantReply:
        self.histories.append([(turn.role, turn.content) for turn in history])
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else AssistantReply(content="Okay.")
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def text_to_speech(self, text: str) -> np.ndarray:
        self.spoken.append(text)
        return speech_for(text)


def audio_frame(samples) -> bytes:
    return np.asarray(samples, dtype=SAMPLE_DTYPE).tobytes()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)
