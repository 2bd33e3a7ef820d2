"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import TYPE_CHECKING

from call.call_log import CallLogEntry
from integrations.call_log_webhook import CallLogWebhook, build_call_log_webhook

if TYPE_CHECKING:  # pragma: no cover
    from agents.assistant import Assistant
    from speech.transcriber import SpeechToTextEngine

LOGGER = logging.getLogger(__name__)

CallLogSink = Callable[[str, list[CallLogEntry]], Awaitable[None]]


@lru_cache(maxsize=1)
def _assistant_factory() -> Assistant:
    # Lazy import to avoid importing heavy ML dependencies at module import time.
    from agents.assistant import Assistant

    return Assistant()


def get_assistant() -> Assistant:
    return _assistant_factory()


async def shutdown_assistant() -> None:
    """Release the shared assistant's provider clients, if one was built."""

    if _assistant_factory.cache_info().currsize == 0:
        return
    assistant = _assistant_factory()
    _assistant_factory.cache_clear()
    await assistant.aclose()


def get_transcriber_factory() -> Callable[[], SpeechToTextEngine]:
    from speech.transcriber import build_transcriber

    return build_transcriber


@lru_cache(maxsize=1)
def _webhook_factory() -> CallLogWebhook | None:
    return build_call_log_webhook()


def get_call_log_sink() -> CallLogSink:
    webhook = _webhook_factory()

    async def sink(session_id: str, entries: list[CallLogEntry]) -> None:
        LOGGER.info("Call %s finished with %d log entries", session_id, len(entries))
        if webhook is not None:
            await webhook.dispatch(session_id, entries)

    return sink
