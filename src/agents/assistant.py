"""Conversational assistant backing a call: replies, tool choice and speech."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import numpy as np

from agents.errors import AssistantError, LLMFailedError, TTSFailedError
from call.call_log import Turn
from config.settings import get_settings
from llm.base import BaseLLMClient
from llm.factory import build_llm_client
from speech.tts import BaseSynthesizer, build_synthesizer

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssistantReply:
    content: str | None = None
    selected_tool: str | None = None


def hangup_tool_schema(name: str) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": "Hang up the phone call once the conversation is finished.",
            "parameters": {"type": "object", "properties": {}},
        },
    }


class Assistant:
    """LLM-backed assistant with a fixed persona and a hangup tool."""

    def __init__(
        self,
        llm: BaseLLMClient | None = None,
        synthesizer: BaseSynthesizer | None = None,
        *,
        system_prompt: str | None = None,
        speak_first: bool | None = None,
        opening_message: str | None = None,
        hangup_tool: str | None = None,
        name: str | None = None,
        temperature: float | None = None,
    ) -> None:
        settings = get_settings()
        self._llm = llm or build_llm_client()
        self._tts = synthesizer or build_synthesizer()
        self.name = name or settings.assistant_name
        self.system_prompt = system_prompt if system_prompt is not None else settings.system_prompt
        self.speak_first = settings.speak_first if speak_first is None else speak_first
        self.opening_message = opening_message if opening_message is not None else settings.opening_message
        self.hangup_tool = hangup_tool or settings.hangup_tool_name
        self._temperature = settings.llm_temperature if temperature is None else temperature

    @property
    def prompt(self) -> list[dict[str, str]]:
        if not self.system_prompt:
            return []
        return [{"role": "system", "content": self.system_prompt}]

    @property
    def tools(self) -> list[dict[str, Any]]:
        return [hangup_tool_schema(self.hangup_tool)]

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "speak_first": self.speak_first,
            "opening_message": self.opening_message,
            "tools": [self.hangup_tool],
        }

    async def create_response(self, history: Iterable[Turn]) -> AssistantReply:
        messages = self.prompt + [{"role": turn.role, "content": turn.content} for turn in history]
        try:
            reply = await self._llm.chat(messages, tools=self.tools, temperature=self._temperature)
        except AssistantError:
            raise
        except Exception as exc:
            raise LLMFailedError(str(exc)) from exc

        LOGGER.debug("Assistant reply content=%r tool=%r", reply.content, reply.tool)
        return AssistantReply(content=reply.content, selected_tool=reply.tool)

    async def text_to_speech(self, text: str) -> np.ndarray:
        try:
            return await self._tts.synthesize(text)
        except AssistantError:
            raise
        except Exception as exc:
            raise TTSFailedError(str(exc)) from exc

    async def aclose(self) -> None:
        await self._llm.aclose()
        await self._tts.aclose()
