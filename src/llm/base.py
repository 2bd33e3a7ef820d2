"""Shared abstractions for language model clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True, slots=True)
class LLMReply:
    """Assistant turn returned by a chat call: spoken text and/or a tool choice."""

    content: str | None = None
    tool: str | None = None


def parse_chat_message(message: dict[str, Any]) -> LLMReply:
    """Read an OpenAI-compatible `choices[0].message` payload."""

    content = (message.get("content") or "").strip() or None
    tool = None
    for call in message.get("tool_calls") or []:
        function = call.get("function") or {}
        if function.get("name"):
            tool = str(function["name"])
            break
    return LLMReply(content=content, tool=tool)


class BaseLLMClient(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def chat(
        self,
        messages: Iterable[dict[str, str]],
        *,
        tools: list[dict[str, Any]] | None = None,
        temperature: float = 0.1,
    ) -> LLMReply:
        """Return the assistant reply for a chat history."""

    async def aclose(self) -> None:
        return None
