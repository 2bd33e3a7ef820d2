from __future__ import annotations

from dataclasses import dataclass

import numpy as np


def generate_tone(frequency: float, duration: float, sample_rate: int, *, amplitude: float = 0.5) -> np.ndarray:
    """Return a mono float32 sine tone with a short fade to avoid clicks."""

    count = max(0, int(round(duration * sample_rate)))
    if count == 0:
        return np.zeros(0, dtype=np.float32)

    t = np.arange(count, dtype=np.float32) / float(sample_rate)
    tone = amplitude * np.sin(2.0 * np.pi * frequency * t)

    fade = min(count // 2, int(sample_rate * 0.005))
    if fade:
        ramp = np.linspace(0.0, 1.0, fade, dtype=np.float32)
        tone[:fade] *= ramp
        tone[-fade:] *= ramp[::-1]

    return tone.astype(np.float32)


@dataclass(frozen=True, slots=True)
class ToneGenerator:
    """Greeting and departure cues played around a call."""

    sample_rate: int = 24000
    greeting_hz: float = 440.0
    departure_hz: float = 180.0
    duration: float = 0.5

    def greeting(self) -> np.ndarray:
        return generate_tone(self.greeting_hz, self.duration, self.sample_rate)

    def departure(self) -> np.ndarray:
        return generate_tone(self.departure_hz, self.duration, self.sample_rate)

    @classmethod
    def from_settings(cls, settings) -> ToneGenerator:
        return cls(
            sample_rate=settings.sample_rate,
            greeting_hz=settings.greeting_tone_hz,
            departure_hz=settings.departure_tone_hz,
            duration=settings.tone_duration_seconds,
        )
