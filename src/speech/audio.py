"""Sample-format helpers shared by the speech engines."""

from __future__ import annotations

import io

import numpy as np
import soundfile as sf


def resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Linear-interpolation resampling of mono float audio."""

    samples = np.asarray(samples, dtype=np.float32)
    if src_rate == dst_rate or samples.size == 0:
        return samples

    x_old = np.arange(samples.size, dtype=np.float32)
    x_new = np.linspace(0, samples.size - 1, int(samples.size * dst_rate / src_rate), dtype=np.float32)
    return np.interp(x_new, x_old, samples).astype(np.float32)


def pcm16_bytes_to_float(pcm_bytes: bytes) -> np.ndarray:
    usable = len(pcm_bytes) - (len(pcm_bytes) % 2)
    pcm = np.frombuffer(pcm_bytes[:usable], dtype="<i2")
    return (pcm.astype(np.float32) / 32768.0).astype(np.float32)


def float_to_wav_bytes(samples: np.ndarray, sample_rate: int) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, np.asarray(samples, dtype=np.float32), sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def decode_audio_file(data: bytes, sample_rate: int) -> np.ndarray:
    """Decode WAV/MP3/... bytes into mono float32 at `sample_rate`."""

    with sf.SoundFile(io.BytesIO(data), mode="r") as audio_file:
        audio = audio_file.read(dtype="float32")
        src_rate = int(audio_file.samplerate)

    if isinstance(audio, np.ndarray) and audio.ndim > 1:
        audio = np.mean(audio, axis=1)  # convert to mono
    return resample(np.asarray(audio, dtype=np.float32), src_rate, sample_rate)
