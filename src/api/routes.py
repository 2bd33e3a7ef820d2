"""FastAPI routes exposing the voice call endpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, WebSocket

from agents.assistant import Assistant
from api.dependencies import CallLogSink, get_assistant, get_call_log_sink, get_transcriber_factory
from api.schemas import HealthResponse
from call.call_log import CallLogEntry
from call.orchestrator import ConversationOrchestrator
from call.retry import RetryPolicy
from call.session import CallSession
from call.tones import ToneGenerator
from call.transport import WebSocketTransport
from config.settings import get_settings
from speech.transcriber import SpeechToTextEngine

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        stt_provider=settings.stt_provider,
        tts_provider=settings.tts_provider,
        llm_provider=settings.llm_provider,
        llm_model=settings.llm_model,
    )


@router.websocket("/call")
async def call_endpoint(
    websocket: WebSocket,
    assistant: Assistant = Depends(get_assistant),
    transcriber_factory: Callable[[], SpeechToTextEngine] = Depends(get_transcriber_factory),
    sink: CallLogSink = Depends(get_call_log_sink),
) -> None:
    settings = get_settings()
    await websocket.accept()

    retry = RetryPolicy.from_settings(settings)
    session = CallSession(
        WebSocketTransport(websocket),
        transcriber_factory(),
        tones=ToneGenerator.from_settings(settings),
        chunk_samples=settings.chunk_samples,
        outbound_queue_size=settings.outbound_queue_size,
        retry=retry,
    )

    async def on_end(entries: list[CallLogEntry]) -> None:
        await sink(session.session_id, entries)

    orchestrator = ConversationOrchestrator(
        assistant,
        session,
        on_end=on_end,
        retry=retry,
        on_external_failure=settings.on_external_failure,
    )

    LOGGER.info("[%s] Call connected", session.session_id)
    await orchestrator.serve(
        delay=settings.begin_delay_seconds,
        play_greeting_tone=settings.play_greeting_tone,
    )
    LOGGER.info("[%s] Call finished in state %s", session.session_id, orchestrator.state.value)
