from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from call.call_log import CallLog, CallLogEvent
from integrations.call_log_webhook import CallLogWebhook, build_call_log_webhook


def _entries():
    log = CallLog()
    log.append(CallLogEvent.INIT, {"assistant": {"name": "fake"}})
    log.append(CallLogEvent.CALL_ENDED)
    return list(log.entries)


def test_dispatch_posts_serialized_call_log(settings_env):
    settings_env(call_log_webhook_url="http://hooks.local/calls", call_log_webhook_api_key="secret")
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["payload"] = json.loads(request.content)
        return httpx.Response(204)

    webhook = CallLogWebhook(transport=httpx.MockTransport(handler))
    asyncio.run(webhook.dispatch("abc123", _entries()))

    assert captured["url"] == "http://hooks.local/calls"
    assert captured["auth"] == "Bearer secret"
    assert captured["payload"]["session_id"] == "abc123"
    assert [entry["event"] for entry in captured["payload"]["call_log"]] == ["INIT", "CALL_ENDED"]


def test_dispatch_raises_on_http_error(settings_env):
    settings_env(call_log_webhook_url="http://hooks.local/calls")
    webhook = CallLogWebhook(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(webhook.dispatch("abc123", _entries()))


def test_unconfigured_webhook_is_disabled(settings_env):
    settings_env(call_log_webhook_url="")
    assert build_call_log_webhook() is None
