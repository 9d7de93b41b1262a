"""Chord building from a rolling set of recently detected notes.

Stable notes are collected into an active set with per-note expiry. After a
short quiet period with no new notes, the set is matched against a chord
dictionary using Jaccard similarity (|intersection| / |union|).
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..core import PITCH_NAMES, ConfigurationError, Scheduler, Signal, pitch_class
from ..core.constants import CHORD_QUIESCENCE_MS, CHORD_TIMEOUT_MS

logger = logging.getLogger(__name__)

# Chord templates (intervals from root in semitones), in dictionary order
CHORD_TEMPLATES: Tuple[Tuple[str, Tuple[int, ...]], ...] = (
    ("", (0, 4, 7)),          # major
    ("m", (0, 3, 7)),         # minor
    ("7", (0, 4, 7, 10)),     # dominant seventh
    ("m7", (0, 3, 7, 10)),    # minor seventh
    ("maj7", (0, 4, 7, 11)),  # major seventh
)


def build_chord_dictionary() -> Mapping[str, FrozenSet[str]]:
    """
    Build the chord name -> pitch-class set dictionary.

    Order is quality-major (all majors C..B, then all minors, ...), which
    is also the tie-break order used by :meth:`ChordBuilder.match`.
    """
    chords: Dict[str, FrozenSet[str]] = OrderedDict()
    for suffix, intervals in CHORD_TEMPLATES:
        for root_pc, root in enumerate(PITCH_NAMES):
            chords[f"{root}{suffix}"] = frozenset(
                PITCH_NAMES[(root_pc + i) % 12] for i in intervals
            )
    return MappingProxyType(chords)


CHORD_DICTIONARY = build_chord_dictionary()


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """Jaccard similarity of two sets (0.0 for two empty sets)."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


@dataclass
class ChordConfig:
    """Configuration for chord building.

    Attributes:
        timeout_ms: A note not seen for longer than this leaves the set (default: 2000)
        quiescence_ms: Quiet period after the last note before matching (default: 500)
        min_score: Jaccard score a chord must exceed (default: 0.6)
    """

    timeout_ms: float = CHORD_TIMEOUT_MS
    quiescence_ms: float = CHORD_QUIESCENCE_MS
    min_score: float = 0.6


class ChordBuilder:
    """Accumulates stable notes and emits chord changes.

    Signals:
        chord_detected(name): a chord (or single pitch class) that differs
            from the previously emitted one
    """

    def __init__(
        self,
        scheduler: Scheduler,
        dictionary: Mapping[str, FrozenSet[str]] = CHORD_DICTIONARY,
        config: Optional[ChordConfig] = None,
    ):
        """
        Initialize ChordBuilder.

        Args:
            scheduler: Clock and timer source for expiry and debouncing
            dictionary: Chord name -> pitch classes; iteration order breaks ties
            config: Optional ChordConfig
        """
        self.scheduler = scheduler
        self.dictionary = dictionary
        self.config = replace(config) if config else ChordConfig()
        if self.config.timeout_ms <= 0 or self.config.quiescence_ms < 0:
            raise ConfigurationError("Chord timeout must be positive and quiescence non-negative")

        self._last_seen: Dict[str, float] = OrderedDict()
        self._timer: Any = None
        self.current_chord: Optional[str] = None
        self.chord_detected = Signal("chord_detected")

    @property
    def active_notes(self) -> List[str]:
        """Currently held pitch classes, oldest first."""
        return list(self._last_seen)

    def on_stable_note(self, note: str, timestamp: Optional[float] = None) -> None:
        """
        Add a stable note and (re)start the quiescence timer.

        Args:
            note: Note name; any octave suffix is ignored
            timestamp: Time the note was seen (ms); defaults to the scheduler clock
        """
        now = self.scheduler.now_ms() if timestamp is None else float(timestamp)
        self.cleanup(now)

        pc = pitch_class(note)
        self._last_seen.pop(pc, None)
        self._last_seen[pc] = now

        self.scheduler.cancel(self._timer)
        self._timer = self.scheduler.call_later(self.config.quiescence_ms, self._on_quiet)

    def cleanup(self, now: Optional[float] = None) -> List[str]:
        """Drop notes not seen within the timeout. Returns the removed notes."""
        now = self.scheduler.now_ms() if now is None else now
        expired = [
            note for note, seen in self._last_seen.items()
            if now - seen > self.config.timeout_ms
        ]
        for note in expired:
            del self._last_seen[note]
        return expired

    def match(self, notes: FrozenSet[str]) -> Optional[Tuple[str, float]]:
        """
        Best dictionary chord for a note set.

        Returns:
            Tuple of (chord name, score) for the first chord with the highest
            score above ``min_score``, or None
        """
        best: Optional[Tuple[str, float]] = None
        for name, chord_notes in self.dictionary.items():
            score = jaccard(notes, chord_notes)
            if score > self.config.min_score and (best is None or score > best[1]):
                best = (name, score)
        return best

    def analyze(self, now: Optional[float] = None) -> Optional[str]:
        """
        Match the active set against the dictionary.

        Expired notes are always removed first. A single remaining note is
        reported as itself.

        Returns:
            The matched chord or single pitch class, or None. The
            ``chord_detected`` signal fires only when this differs from the
            previously emitted chord.
        """
        self.cleanup(now)
        notes = frozenset(self._last_seen)

        if not notes:
            return None
        if len(notes) == 1:
            result = next(iter(notes))
        else:
            best = self.match(notes)
            if best is None:
                return None
            result = best[0]

        if result != self.current_chord:
            self.current_chord = result
            logger.info("Chord detected: %s (%s)", result, ", ".join(self._last_seen))
            self.chord_detected.emit(result)
        return result

    def set_timeout(self, timeout_ms: float) -> None:
        self.config.timeout_ms = max(500.0, float(timeout_ms))

    def clear(self) -> None:
        self.scheduler.cancel(self._timer)
        self._timer = None
        self._last_seen.clear()
        self.current_chord = None

    def _on_quiet(self) -> None:
        self._timer = None
        self.analyze()
