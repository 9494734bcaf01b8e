from __future__ import annotations

import io
import wave
from typing import Optional

import numpy as np


SAMPLE_RATE = 22050


def crackle_samples(seconds: float = 4.0, sample_rate: int = SAMPLE_RATE, seed: Optional[int] = None) -> np.ndarray:
    """Low-passed surface hiss with sparse pops, as float32 in [-1, 1].

    Meant to be looped; a few seconds is enough.
    """
    rng = np.random.default_rng(seed)
    n = max(1, int(seconds * sample_rate))

    hiss = rng.normal(0.0, 1.0, n).astype("float32")
    kernel = np.ones(8, dtype="float32") / 8
    hiss = np.convolve(hiss, kernel, mode="same") * 0.05

    # roughly 6 pops per second, each a short decaying click
    pops = np.zeros(n, dtype="float32")
    positions = rng.integers(0, n, size=max(1, int(seconds * 6)))
    pops[positions] = rng.uniform(-1.0, 1.0, size=positions.size)
    decay = np.exp(-np.arange(64, dtype="float32") / 6.0)
    pops = np.convolve(pops, decay, mode="same") * 0.4

    signal = hiss + pops
    peak = float(np.max(np.abs(signal))) or 1.0
    return (signal / peak * 0.5).astype("float32")


def render_crackle_wav(seconds: float = 4.0, sample_rate: int = SAMPLE_RATE, seed: Optional[int] = None) -> bytes:
    """Encode :func:`crackle_samples` as a mono 16-bit WAV."""
    pcm = (crackle_samples(seconds, sample_rate, seed) * 32767).astype("<i2")
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return buffer.getvalue()
