"""Append-only conversation history and call audit log."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


class CallLogEvent(str, Enum):
    INIT = "INIT"
    READY = "READY"
    TRANSCRIPT = "TRANSCRIPT"
    TOOL_SELECTED = "TOOL_SELECTED"
    CALL_ENDED = "CALL_ENDED"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CallLogEntry(BaseModel):
    """One audit trail record, serialized as `{timestamp, event, meta}`."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    timestamp: str = Field(default_factory=_utc_timestamp)
    event: CallLogEvent
    meta: dict[str, Any] | None = None


class Turn(BaseModel):
    """A single history message handed to the assistant."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class CallLog:
    """Ordered audit trail. Entries can only be appended."""

    def __init__(self) -> None:
        self._entries: list[CallLogEntry] = []

    def append(self, event: CallLogEvent, meta: dict[str, Any] | None = None) -> CallLogEntry:
        entry = CallLogEntry(event=event, meta=meta)
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[CallLogEntry, ...]:
        return tuple(self._entries)

    def count(self, event: CallLogEvent) -> int:
        return sum(1 for entry in self._entries if entry.event == event)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.model_dump() for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CallLogEntry]:
        return iter(tuple(self._entries))


class ConversationHistory:
    """Ordered user/assistant turns driving future assistant prompts."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self._turns.append(turn)
        return turn

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def as_messages(self) -> list[dict[str, str]]:
        return [{"role": turn.role, "content": turn.content} for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))
