"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    stt_provider: str
    tts_provider: str
    llm_provider: str
    llm_model: str
