from __future__ import annotations

import numpy as np

WHISPER_SAMPLE_RATE = 16000


def rms(samples: np.ndarray) -> float:
    """Return RMS energy of normalized float samples."""
    if samples.size == 0:
        return 0.0
    x = samples.astype(np.float64, copy=False)
    return float(np.sqrt(np.mean(x * x)))


def window_rms(samples: np.ndarray, sample_rate: int, window_sec: float = 0.1) -> np.ndarray:
    """RMS of consecutive non-overlapping windows; a trailing partial window is dropped."""
    size = max(1, int(round(sample_rate * window_sec)))
    count = samples.size // size
    if count == 0:
        return np.zeros(0, dtype=np.float64)
    frames = samples[: count * size].astype(np.float64, copy=False).reshape(count, size)
    return np.sqrt(np.mean(frames * frames, axis=1))


def energy_variation(samples: np.ndarray, sample_rate: int, window_sec: float = 0.1) -> float:
    """
    Coefficient of variation of window energies. Speech swings a lot between
    windows; a stuck or purely digital signal stays flat.
    """
    energies = window_rms(samples, sample_rate, window_sec)
    if energies.size < 2:
        return 0.0
    mean = float(energies.mean())
    if mean <= 0.0:
        return 0.0
    return float(energies.std() / mean)


def to_mono(samples: np.ndarray) -> np.ndarray:
    if samples.ndim == 1:
        return samples
    return samples.mean(axis=1)


def resample(samples: np.ndarray, src_rate: int, dst_rate: int = WHISPER_SAMPLE_RATE) -> np.ndarray:
    """Linear-interpolation resampler; good enough for speech going into ASR."""
    if src_rate <= 0:
        raise ValueError("src_rate must be > 0")
    if src_rate == dst_rate or samples.size == 0:
        return samples.astype(np.float32, copy=False)
    dst_len = int(round(samples.size * dst_rate / float(src_rate)))
    if dst_len <= 0:
        return np.zeros(0, dtype=np.float32)
    src_t = np.arange(samples.size, dtype=np.float64) / src_rate
    dst_t = np.arange(dst_len, dtype=np.float64) / dst_rate
    return np.interp(dst_t, src_t, samples.astype(np.float64)).astype(np.float32)
