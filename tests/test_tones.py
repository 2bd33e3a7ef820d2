from __future__ import annotations

import numpy as np

from call.tones import ToneGenerator, generate_tone


def test_generate_tone_length_and_range():
    tone = generate_tone(440.0, 0.5, 24000)
    assert tone.dtype == np.float32
    assert tone.size == 12000
    assert float(np.max(np.abs(tone))) <= 0.5 + 1e-6
    # Faded in and out.
    assert abs(float(tone[0])) < 1e-6
    assert abs(float(tone[-1])) < 0.01


def test_zero_duration_tone_is_empty():
    assert generate_tone(440.0, 0.0, 24000).size == 0


def test_greeting_and_departure_differ():
    tones = ToneGenerator(sample_rate=24000, duration=0.1)
    greeting = tones.greeting()
    departure = tones.departure()
    assert greeting.size == departure.size == 2400
    assert not np.allclose(greeting, departure)
