"""Analysis layer - Per-frame signal analysis.

This layer turns raw sample buffers into per-frame estimates:
- Magnitude spectrum (radix-2 FFT)
- Pitch (nearest note, stabilized)
- Timbre (harmonic-profile match, stabilized)
- Audio level
"""

from .spectrum import SpectralAnalyzer, Spectrum, SpectrumConfig
from .pitch import PitchEstimator, PitchEstimate, PitchConfig
from .timbre import (
    TimbreClassifier,
    TimbreEstimate,
    TimbreConfig,
    InstrumentProfile,
    INSTRUMENT_PROFILES,
)
from .level import audio_level

__all__ = [
    "SpectralAnalyzer",
    "Spectrum",
    "SpectrumConfig",
    "PitchEstimator",
    "PitchEstimate",
    "PitchConfig",
    "TimbreClassifier",
    "TimbreEstimate",
    "TimbreConfig",
    "InstrumentProfile",
    "INSTRUMENT_PROFILES",
    "audio_level",
]
