from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry an external call with exponential backoff, then re-raise."""

    max_retries: int = 2
    backoff_seconds: float = 0.25

    async def run(self, phase: str, fn: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                return await fn()
            except asyncio.CancelledError:
                raise
            except Exception:
                if attempt >= self.max_retries:
                    raise
                delay = self.backoff_seconds * (2**attempt)
                attempt += 1
                LOGGER.warning(
                    "%s failed (attempt %d/%d); retrying in %.2fs",
                    phase,
                    attempt,
                    self.max_retries + 1,
                    delay,
                    exc_info=True,
                )
                await asyncio.sleep(delay)

    @classmethod
    def from_settings(cls, settings) -> RetryPolicy:
        return cls(
            max_retries=settings.external_max_retries,
            backoff_seconds=settings.external_retry_backoff_seconds,
        )
