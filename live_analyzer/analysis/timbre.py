"""Instrument timbre classification from harmonic profiles.

Each instrument is described by the expected amplitude of its first few
harmonics relative to the fundamental. A frame is scored against every
profile by comparing expected and measured magnitudes at the harmonic bins.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from ..core import ConfigurationError, DetectionHistory
from ..core.constants import QUIET_FLOOR
from .spectrum import Spectrum


class Attack(Enum):
    """Qualitative onset character (informational only)."""
    SOFT = "soft"
    MEDIUM = "medium"
    SHARP = "sharp"


class Sustain(Enum):
    """Qualitative decay character (informational only)."""
    MEDIUM = "medium"
    LONG = "long"
    VERY_LONG = "very_long"
    VARIABLE = "variable"


@dataclass(frozen=True)
class InstrumentProfile:
    """Harmonic fingerprint of one instrument."""

    name: str
    harmonics: Tuple[float, ...]  # amplitude ratio of harmonic h+1 to the fundamental
    frequency_range: Tuple[float, float]  # inclusive [min_hz, max_hz] for the fundamental
    attack: Attack = Attack.MEDIUM
    sustain: Sustain = Sustain.MEDIUM

    def __post_init__(self):
        low, high = self.frequency_range
        if not self.harmonics or low <= 0 or high <= low:
            raise ConfigurationError(f"Invalid instrument profile: {self.name}")


# Simplified profiles based on typical harmonic content
INSTRUMENT_PROFILES: Tuple[InstrumentProfile, ...] = (
    InstrumentProfile(
        "Piano", (1.0, 0.4, 0.3, 0.2, 0.15, 0.1, 0.08, 0.06), (80, 4000),
        Attack.SHARP, Sustain.MEDIUM,
    ),
    InstrumentProfile(
        "Guitar", (1.0, 0.6, 0.4, 0.25, 0.15, 0.1, 0.06, 0.04), (80, 3000),
        Attack.MEDIUM, Sustain.LONG,
    ),
    InstrumentProfile(
        "Violin", (1.0, 0.8, 0.6, 0.4, 0.3, 0.2, 0.15, 0.1), (200, 8000),
        Attack.SOFT, Sustain.VERY_LONG,
    ),
    InstrumentProfile(
        "Flute", (1.0, 0.2, 0.1, 0.05, 0.02, 0.01), (250, 4000),
        Attack.SOFT, Sustain.MEDIUM,
    ),
    InstrumentProfile(
        "Trumpet", (1.0, 0.7, 0.5, 0.3, 0.2, 0.15, 0.1, 0.08), (150, 5000),
        Attack.SHARP, Sustain.MEDIUM,
    ),
    InstrumentProfile(
        "Saxophone", (1.0, 0.5, 0.3, 0.4, 0.2, 0.15, 0.1, 0.05), (120, 3000),
        Attack.MEDIUM, Sustain.LONG,
    ),
    # Odd harmonics dominate (closed cylindrical bore)
    InstrumentProfile(
        "Clarinet", (1.0, 0.1, 0.8, 0.1, 0.6, 0.1, 0.4, 0.1), (150, 2000),
        Attack.SOFT, Sustain.LONG,
    ),
    InstrumentProfile(
        "Voice", (1.0, 0.6, 0.4, 0.3, 0.2, 0.15, 0.1, 0.08), (80, 2000),
        Attack.SOFT, Sustain.VARIABLE,
    ),
)


@dataclass
class TimbreConfig:
    """Configuration for the timbre classifier.

    Attributes:
        min_score: Minimum profile score to accept a match (default: 0.3)
        quiet_floor: Minimum fundamental magnitude (default: 0.01)
        history_size: Frames kept for the stability vote (default: 10)
        stability_ratio: Share of the history the winner must hold (default: 0.5)
        epsilon: Guard added to the expected magnitude (default: 0.001)
    """

    min_score: float = 0.3
    quiet_floor: float = QUIET_FLOOR
    history_size: int = 10
    stability_ratio: float = 0.5
    epsilon: float = 0.001


@dataclass(frozen=True)
class TimbreEstimate:
    """A stable instrument detection."""

    instrument: str
    confidence: float


class TimbreClassifier:
    """
    Classify the instrument playing in a frame by harmonic-profile matching.

    This is a lightweight template matcher, not a trained model: it works
    best on a single sustained note.
    """

    def __init__(
        self,
        profiles: Sequence[InstrumentProfile] = INSTRUMENT_PROFILES,
        config: Optional[TimbreConfig] = None,
    ):
        """
        Initialize TimbreClassifier.

        Args:
            profiles: Instrument catalog; earlier entries win score ties
            config: Optional TimbreConfig
        """
        if not profiles:
            raise ConfigurationError("At least one instrument profile is required")
        self.profiles = tuple(profiles)
        self.config = config or TimbreConfig()
        self.history = DetectionHistory(self.config.history_size)

    def score_profile(self, spectrum: Spectrum, profile: InstrumentProfile) -> float:
        """
        Score how well the frame matches one profile.

        The fundamental is the strongest bin inside the profile's frequency
        range. Each harmonic h is compared at bin ``fundamental * (h + 1)``:
        ``1 - |expected - actual| / (expected + eps)``, with
        ``expected = peak * weight[h]``. Scores are averaged with the
        profile weights. Harmonics beyond the spectrum are skipped.

        Returns:
            Weighted score (1.0 is a perfect match; can go negative when
            harmonics are far stronger than expected), 0.0 for silence
        """
        width = spectrum.bin_width
        low, high = profile.frequency_range
        start = int(math.floor(low / width))
        stop = int(math.floor(high / width)) + 1
        fundamental, peak = spectrum.peak(start, stop)

        if peak < self.config.quiet_floor or fundamental <= 0:
            return 0.0

        magnitudes = spectrum.magnitudes
        score = 0.0
        total_weight = 0.0
        for h, weight in enumerate(profile.harmonics):
            harmonic_bin = fundamental * (h + 1)
            if harmonic_bin >= len(magnitudes):
                break
            expected = peak * weight
            actual = float(magnitudes[harmonic_bin])
            score += (1 - abs(expected - actual) / (expected + self.config.epsilon)) * weight
            total_weight += weight

        return score / total_weight if total_weight > 0 else 0.0

    def score_all(self, spectrum: Spectrum) -> Dict[str, float]:
        """Score every profile, in catalog order."""
        return {p.name: self.score_profile(spectrum, p) for p in self.profiles}

    def best_match(self, spectrum: Spectrum) -> Optional[Tuple[str, float]]:
        """Best-scoring profile above ``min_score`` for this frame alone."""
        best_name = None
        best_score = self.config.min_score
        for name, score in self.score_all(spectrum).items():
            if score > best_score:
                best_name, best_score = name, score
        if best_name is None:
            return None
        return best_name, best_score

    def classify(self, spectrum: Spectrum, timestamp: float = 0.0) -> Optional[TimbreEstimate]:
        """
        Classify one frame and apply the stability filter.

        Returns:
            TimbreEstimate for the stable instrument, with the current
            frame's raw score as confidence, or None
        """
        match = self.best_match(spectrum)
        if match is None:
            return None

        name, score = match
        self.history.push(name, score, timestamp)
        stable = self.history.majority(self.config.stability_ratio)
        if stable is None:
            return None

        if stable.label != name:
            score = self.score_profile(spectrum, self._profile(stable.label))
        return TimbreEstimate(instrument=stable.label, confidence=score)

    def reset(self) -> None:
        self.history.clear()

    def _profile(self, name: str) -> InstrumentProfile:
        return next(p for p in self.profiles if p.name == name)
