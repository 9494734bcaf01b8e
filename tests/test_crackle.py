import io
import wave

import numpy as np

from vinylplayer.crackle import SAMPLE_RATE, crackle_samples, render_crackle_wav


def test_samples_are_bounded_and_deterministic():
    first = crackle_samples(seconds=1.0, seed=7)
    second = crackle_samples(seconds=1.0, seed=7)

    assert first.shape == (SAMPLE_RATE,)
    assert np.array_equal(first, second)
    assert np.max(np.abs(first)) <= 0.5 + 1e-6


def test_wav_is_mono_16_bit():
    data = render_crackle_wav(seconds=0.5, seed=1)

    with wave.open(io.BytesIO(data), "rb") as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == SAMPLE_RATE
        assert wav.getnframes() == SAMPLE_RATE // 2
