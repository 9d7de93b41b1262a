"""Pitch estimation from a magnitude spectrum."""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from ..core import DetectionHistory, NoteFrequencyTable, pitch_class
from ..core.constants import DEFAULT_PITCH_BAND, NOTE_TOLERANCE_LOG2, QUIET_FLOOR
from .spectrum import Spectrum


@dataclass
class PitchConfig:
    """Configuration for the pitch estimator.

    Attributes:
        fmin: Lower edge of the search band in Hz, exclusive (default: 80)
        fmax: Upper edge of the search band in Hz, exclusive (default: 2000)
        quiet_floor: Peak magnitude below which a frame is silence (default: 0.01)
        tolerance: Max |log2(peak / note)| for a note match (default: 0.1)
        history_size: Frames kept for the stability vote (default: 5)
        stability_ratio: Share of the history the winner must hold (default: 0.6)
        confidence_scale: Peak magnitude multiplier for confidence (default: 10)
    """

    fmin: float = DEFAULT_PITCH_BAND[0]
    fmax: float = DEFAULT_PITCH_BAND[1]
    quiet_floor: float = QUIET_FLOOR
    tolerance: float = NOTE_TOLERANCE_LOG2
    history_size: int = 5
    stability_ratio: float = 0.6
    confidence_scale: float = 10.0


@dataclass(frozen=True)
class PitchEstimate:
    """A stable pitch detection."""

    note: str  # pitch class, e.g. "F#"
    confidence: float
    frequency: float  # peak frequency of the current frame
    full_name: str  # winning table entry with octave, e.g. "F#3"


class PitchEstimator:
    """Peak-picking pitch detector with a majority-vote stability filter.

    Every frame the strongest bin inside the band is matched to the nearest
    entry of the note table in log-frequency. Matches enter a short history;
    a note is reported only once it dominates that history.
    """

    def __init__(
        self,
        config: Optional[PitchConfig] = None,
        note_table: Optional[NoteFrequencyTable] = None,
    ):
        self.config = config or PitchConfig()
        self.note_table = note_table or NoteFrequencyTable()
        self.history = DetectionHistory(self.config.history_size)

    def find_peak(
        self,
        spectrum: Spectrum,
        band: Optional[Tuple[float, float]] = None,
    ) -> Tuple[float, float]:
        """
        Strongest bin strictly inside ``band``.

        Returns:
            Tuple of (frequency in Hz, magnitude)
        """
        fmin, fmax = band or (self.config.fmin, self.config.fmax)
        width = spectrum.bin_width
        start = max(int(math.floor(fmin / width)) + 1, 1)
        stop = int(math.ceil(fmax / width))
        index, magnitude = spectrum.peak(start, stop)
        return spectrum.bin_to_freq(index), magnitude

    def match_note(self, freq: float) -> Optional[str]:
        """Nearest table note (with octave) within tolerance, or None."""
        if freq <= 0:
            return None
        name, distance = self.note_table.nearest(freq)
        if distance < self.config.tolerance:
            return name
        return None

    def estimate(
        self,
        spectrum: Spectrum,
        band: Optional[Tuple[float, float]] = None,
        timestamp: float = 0.0,
    ) -> Optional[PitchEstimate]:
        """
        Estimate the stable note for one frame.

        Args:
            spectrum: Magnitude spectrum of the frame
            band: Optional (fmin, fmax) override in Hz
            timestamp: Frame time, kept in the history

        Returns:
            PitchEstimate, or None when the frame is quiet, matches no note,
            or no note dominates the recent history yet
        """
        freq, magnitude = self.find_peak(spectrum, band)
        if magnitude < self.config.quiet_floor:
            return None

        name = self.match_note(freq)
        if name is None:
            return None

        self.history.push(name, magnitude, timestamp)
        stable = self.history.majority(self.config.stability_ratio)
        if stable is None:
            return None

        return PitchEstimate(
            note=pitch_class(stable.label),
            confidence=min(magnitude * self.config.confidence_scale, 1.0),
            frequency=freq,
            full_name=stable.label,
        )

    def reset(self) -> None:
        self.history.clear()
