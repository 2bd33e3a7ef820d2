"""Frame-level protocol handling for one call connection."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

import numpy as np

from agents.errors import TranscriptionFailedError, TransportClosed
from call.protocol import (
    CHUNK_SAMPLES,
    CallHungUp,
    ControlReceived,
    ControlToken,
    SessionEvent,
    TranscriptionFailed,
    UnknownMessage,
    UnknownText,
    UtteranceReady,
    classify_text,
    concat_chunks,
    decode_audio_frame,
    encode_audio_frame,
    iter_chunks,
    profile_line,
)
from call.retry import RetryPolicy
from call.tones import ToneGenerator
from call.transport import CallTransport, Frame
from speech.transcriber import SpeechToTextEngine

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class CallSession:
    """Wire protocol for a single connection.

    Inbound frames are handled strictly in arrival order by `run()`. Results are
    published on `events` for the orchestrator. Outbound frames pass through a
    bounded queue drained by one writer task, so a slow client makes senders wait
    instead of growing memory without limit.
    """

    def __init__(
        self,
        transport: CallTransport,
        stt: SpeechToTextEngine,
        *,
        tones: ToneGenerator | None = None,
        chunk_samples: int = CHUNK_SAMPLES,
        outbound_queue_size: int = 256,
        retry: RetryPolicy | None = None,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.transport = transport
        self.stt = stt
        self.events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self.pending_audio: list[np.ndarray] = []
        self.warnings: list[str] = []

        self.tones = tones or ToneGenerator()
        self._chunk_samples = chunk_samples
        self._retry = retry or RetryPolicy(max_retries=0)
        self._outbox: asyncio.Queue[Frame] = asyncio.Queue(maxsize=outbound_queue_size)
        self._writer: asyncio.Task | None = None
        self._closed = asyncio.Event()
        self._hung_up = False

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def hung_up(self) -> bool:
        return self._hung_up

    # --- inbound -------------------------------------------------------

    async def run(self) -> None:
        """Process frames until the connection closes, then clean up."""

        self.start()
        try:
            while not self.closed:
                frame = await self._next_frame()
                if frame is None:
                    break
                await self.on_frame(frame)
        finally:
            await self._on_connection_closed()

    async def _next_frame(self) -> Frame | None:
        receive = asyncio.ensure_future(self.transport.receive())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({receive, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (receive, closed):
                if not task.done():
                    task.cancel()

        if receive not in done:
            return None
        try:
            return receive.result()
        except TransportClosed:
            LOGGER.info("[%s] Connection closed by peer", self.session_id)
            return None

    async def on_frame(self, frame: Frame) -> None:
        if self.closed:
            LOGGER.debug("[%s] Ignoring frame received after close", self.session_id)
            return

        if isinstance(frame, (bytes, bytearray, memoryview)):
            self._on_audio(bytes(frame))
            return

        parsed = classify_text(frame)
        if parsed is ControlToken.END_OF_SPEECH:
            await self._on_end_of_speech()
        elif isinstance(parsed, UnknownText):
            LOGGER.info("[%s] Unknown message: %r", self.session_id, parsed.text)
            await self.events.put(UnknownMessage(parsed.text))
        else:
            await self.events.put(ControlReceived(parsed))

    def _on_audio(self, payload: bytes) -> None:
        samples = decode_audio_frame(payload)
        if samples.size:
            self.pending_audio.append(samples)

    async def _on_end_of_speech(self) -> None:
        if not self.pending_audio:
            message = "Got EOS but no audio"
            LOGGER.warning("[%s] %s", self.session_id, message)
            self.warnings.append(message)
            return

        # Swap the buffer out before awaiting so the next utterance starts clean.
        chunks, self.pending_audio = self.pending_audio, []
        audio = concat_chunks(chunks)

        try:
            transcript = await self.profile(
                "transcription",
                lambda: self._retry.run("transcription", lambda: self.stt.transcribe(audio)),
            )
        except Exception as exc:
            LOGGER.exception("[%s] Transcription failed", self.session_id)
            error = exc if isinstance(exc, TranscriptionFailedError) else TranscriptionFailedError(str(exc))
            await self.events.put(TranscriptionFailed(error))
            return

        await self.events.put(UtteranceReady(transcript))

    async def _on_connection_closed(self) -> None:
        self._closed.set()
        await self._stop_writer()

        if self._hung_up:
            return
        self._hung_up = True
        self.pending_audio = []
        await self.events.put(CallHungUp())

        try:
            await self.stt.close()
        except Exception:
            LOGGER.exception("[%s] Failed to release speech-to-text engine", self.session_id)

    # --- outbound ------------------------------------------------------

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    async def send_audio(self, samples: np.ndarray) -> None:
        for chunk in iter_chunks(samples, self._chunk_samples):
            await self._enqueue(encode_audio_frame(chunk))

    async def send_meta(self, text: str) -> None:
        await self._enqueue(text)

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the transport."""

        if self._writer is None or self.closed:
            return
        drained = asyncio.ensure_future(self._outbox.join())
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({drained, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (drained, closed):
                if not task.done():
                    task.cancel()

    async def end_call(self) -> None:
        await self.send_audio(self.tones.departure())
        await self.flush()
        await self.close()

    async def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        try:
            await self.transport.close()
        except TransportClosed:
            pass

    async def profile(self, phase: str, fn: Callable[[], Awaitable[T]]) -> T:
        started = time.perf_counter()
        result = await fn()
        duration_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.debug("[%s] %s took %d ms", self.session_id, phase, duration_ms)
        await self.send_meta(profile_line(phase, duration_ms))
        return result

    async def _enqueue(self, frame: Frame) -> None:
        if self.closed:
            LOGGER.debug("[%s] Dropping outbound frame, session closed", self.session_id)
            return
        await self._outbox.put(frame)
        if self.closed and (self._writer is None or self._writer.done()):
            # The writer is gone, so nothing else will consume this frame.
            self._discard_pending()

    async def _write_loop(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                if self.closed:
                    continue
                if isinstance(frame, str):
                    await self.transport.send_text(frame)
                else:
                    await self.transport.send_bytes(frame)
            except TransportClosed:
                LOGGER.info("[%s] Send failed, connection is gone", self.session_id)
                self._closed.set()
            finally:
                self._outbox.task_done()

    async def _stop_writer(self) -> None:
        if self._writer is None:
            return
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
        self._discard_pending()

    def _discard_pending(self) -> None:
        while not self._outbox.empty():
            self._outbox.get_nowait()
            self._outbox.task_done()
