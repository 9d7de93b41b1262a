"""Input level metering."""

import numpy as np


def audio_level(samples: np.ndarray) -> float:
    """RMS level scaled to 0..100 (full-scale RMS of 1.0 maps to 100)."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(samples ** 2)))
    return float(np.clip(rms * 100.0, 0.0, 100.0))
