"""Domain-specific exceptions for call handling.

These exceptions are safe to import from API layers without triggering heavy ML imports.
"""

from __future__ import annotations


class AssistantError(Exception):
    default_detail: str = "Assistant error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class TranscriptionFailedError(AssistantError):
    default_detail = "Transcription failed."


class LLMFailedError(AssistantError):
    default_detail = "Response generation failed."


class TTSFailedError(AssistantError):
    default_detail = "Speech synthesis failed."


class InvalidTransitionError(AssistantError):
    default_detail = "Invalid call state transition."


class TransportClosed(Exception):
    """The underlying connection is gone. Normal call termination, not a failure."""
