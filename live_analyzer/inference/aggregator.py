"""Temporal smoothing of raw per-frame detections.

Raw note and instrument detections are noisy frame to frame. The
aggregator keeps a short history per channel, takes a majority vote, and
reports a detection only when the winner changes or its confidence drifts
past a threshold.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from ..core import DetectionHistory, Signal, StableDetection
from .chords import ChordBuilder

logger = logging.getLogger(__name__)


@dataclass
class AggregatorConfig:
    """Configuration for detection aggregation.

    Attributes:
        history_size: Raw detections kept per channel (default: 8)
        min_entries: Entries required before voting (default: 3)
        majority_ratio: The winner must hold strictly more than this share
            of the history capacity (default: 0.5)
        note_change_threshold: Confidence drift that re-reports an
            unchanged note (default: 0.15)
        instrument_change_threshold: Same for instruments (default: 0.25)
    """

    history_size: int = 8
    min_entries: int = 3
    majority_ratio: float = 0.5
    note_change_threshold: float = 0.15
    instrument_change_threshold: float = 0.25


class DetectionChannel:
    """History, last report and change threshold for one detection stream."""

    def __init__(self, name: str, history_size: int, change_threshold: float):
        self.name = name
        self.history = DetectionHistory(history_size)
        self.change_threshold = change_threshold
        self.label: Optional[str] = None
        self.confidence = 0.0
        self.signal = Signal(f"{name}_detected")

    def update(
        self,
        label: str,
        confidence: float,
        timestamp: float,
        config: AggregatorConfig,
    ) -> Optional[StableDetection]:
        """Push a raw detection; return the stable detection if it must be reported."""
        self.history.push(label, confidence, timestamp)
        stable = self.history.majority(
            config.majority_ratio, strict=True, min_entries=config.min_entries
        )
        if stable is None:
            return None

        changed = (
            self.label is None
            or self.label != stable.label
            or abs(self.confidence - stable.confidence) > self.change_threshold
        )
        if not changed:
            return None

        self.label = stable.label
        self.confidence = stable.confidence
        return stable

    def resize(self, size: int) -> None:
        resized = DetectionHistory(size)
        for entry in self.history:
            resized.push(entry.label, entry.confidence, entry.timestamp)
        self.history = resized

    def reset(self) -> None:
        self.history.clear()
        self.label = None
        self.confidence = 0.0


class DetectionAggregator:
    """Stabilizes raw note/instrument detections and fans them out.

    Signals:
        note_detected(note, confidence)
        instrument_detected(instrument, confidence)

    Stable notes are also forwarded to the ChordBuilder, if one is attached.
    """

    def __init__(
        self,
        chord_builder: Optional[ChordBuilder] = None,
        config: Optional[AggregatorConfig] = None,
    ):
        self.config = replace(config) if config else AggregatorConfig()
        self.chord_builder = chord_builder
        self._notes = DetectionChannel(
            "note", self.config.history_size, self.config.note_change_threshold
        )
        self._instruments = DetectionChannel(
            "instrument", self.config.history_size, self.config.instrument_change_threshold
        )
        self.note_detected = self._notes.signal
        self.instrument_detected = self._instruments.signal

    # Current state

    @property
    def current_note(self) -> Optional[str]:
        return self._notes.label

    @property
    def note_confidence(self) -> float:
        return self._notes.confidence

    @property
    def current_instrument(self) -> Optional[str]:
        return self._instruments.label

    @property
    def instrument_confidence(self) -> float:
        return self._instruments.confidence

    @property
    def current_chord(self) -> Optional[str]:
        return self.chord_builder.current_chord if self.chord_builder else None

    @property
    def active_notes(self):
        return self.chord_builder.active_notes if self.chord_builder else []

    # Inputs

    def _now(self, timestamp: Optional[float]) -> float:
        """Missing timestamps fall back to the chord builder's clock."""
        if timestamp is not None:
            return float(timestamp)
        if self.chord_builder is not None:
            return self.chord_builder.scheduler.now_ms()
        return 0.0

    def on_raw_note(
        self, note: str, confidence: float, timestamp: Optional[float] = None
    ) -> Optional[StableDetection]:
        """
        Feed one raw note detection.

        Returns:
            The reported StableDetection, or None if nothing was surfaced
        """
        timestamp = self._now(timestamp)
        stable = self._notes.update(note, confidence, timestamp, self.config)
        if stable is None:
            return None

        logger.debug("Stable note: %s (%.1f%%)", stable.label, stable.confidence * 100)
        self.note_detected.emit(stable.label, stable.confidence)
        if self.chord_builder is not None:
            self.chord_builder.on_stable_note(stable.label, timestamp)
        return stable

    def on_raw_instrument(
        self, instrument: str, confidence: float, timestamp: Optional[float] = None
    ) -> Optional[StableDetection]:
        """Feed one raw instrument detection. See :meth:`on_raw_note`."""
        stable = self._instruments.update(
            instrument, confidence, self._now(timestamp), self.config
        )
        if stable is None:
            return None

        logger.debug("Stable instrument: %s (%.1f%%)", stable.label, stable.confidence * 100)
        self.instrument_detected.emit(stable.label, stable.confidence)
        return stable

    def trigger_note(self, note: str, confidence: float = 0.8) -> Optional[StableDetection]:
        """Manual entry point, e.g. for a test button."""
        return self.on_raw_note(note, confidence)

    def trigger_instrument(self, instrument: str, confidence: float = 0.7) -> Optional[StableDetection]:
        return self.on_raw_instrument(instrument, confidence)

    # Tuning

    def set_note_change_threshold(self, threshold: float) -> None:
        self._notes.change_threshold = max(0.0, min(1.0, threshold))

    def set_instrument_change_threshold(self, threshold: float) -> None:
        self._instruments.change_threshold = max(0.0, min(1.0, threshold))

    def set_history_size(self, size: int) -> None:
        size = max(3, min(20, int(size)))
        self.config.history_size = size
        self._notes.resize(size)
        self._instruments.resize(size)

    def set_chord_timeout(self, timeout_ms: float) -> None:
        if self.chord_builder is not None:
            self.chord_builder.set_timeout(timeout_ms)

    def clear(self) -> None:
        """Forget all histories, current detections and held notes."""
        self._notes.reset()
        self._instruments.reset()
        if self.chord_builder is not None:
            self.chord_builder.clear()
