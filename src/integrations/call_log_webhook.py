"""Deliver finished call logs to an external HTTP endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from call.call_log import CallLogEntry
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


class CallLogWebhook:
    """Simple HTTP bridge posting the final call log of each call."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        settings = get_settings()
        if not settings.call_log_webhook_url:
            raise ValueError("Call log webhook URL is not configured.")
        self._endpoint = settings.call_log_webhook_url.rstrip("/")
        self._api_key = settings.call_log_webhook_api_key
        self._transport = transport

    async def dispatch(self, session_id: str, entries: list[CallLogEntry]) -> None:
        payload: dict[str, Any] = {
            "session_id": session_id,
            "call_log": [entry.model_dump() for entry in entries],
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
            response = await client.post(
                self._endpoint,
                json=payload,
                headers=headers,
            )
        try:
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Call log delivery failed: %s", exc)
            raise


def build_call_log_webhook() -> CallLogWebhook | None:
    try:
        return CallLogWebhook()
    except ValueError:
        return None
