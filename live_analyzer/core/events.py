"""Data classes flowing through the analysis pipeline and the sequencer."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .errors import SequenceFormatError


@dataclass(frozen=True)
class SampleBuffer:
    """One block of captured mono audio.

    The sample array is copied and flagged read-only on construction, so a
    buffer is never mutated after capture.
    """

    samples: np.ndarray
    sample_rate: int
    timestamp_ns: int = 0

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float64, copy=True).reshape(-1)
        samples.flags.writeable = False
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def timestamp_ms(self) -> float:
        return self.timestamp_ns / 1e6

    @property
    def duration_ms(self) -> float:
        return 1000.0 * len(self.samples) / self.sample_rate


@dataclass
class SequenceEvent:
    """Base class for recorded events. Times are milliseconds from session start."""

    timestamp: float
    duration: int
    velocity: int

    kind = "event"

    @property
    def end(self) -> float:
        return self.timestamp + self.duration

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass
class NoteEvent(SequenceEvent):
    """A single detected note (pitch class, optionally with octave)."""

    note: str = "C"
    confidence: float = 1.0

    kind = "note"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "note": self.note,
            "timestamp": self.timestamp,
            "duration": self.duration,
            "confidence": self.confidence,
            "velocity": self.velocity,
        }


@dataclass
class ChordEvent(SequenceEvent):
    """A detected chord with the MIDI notes used to voice it on playback."""

    chord: str = "C"
    notes: List[int] = field(default_factory=list)

    kind = "chord"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "chord": self.chord,
            "notes": list(self.notes),
            "timestamp": self.timestamp,
            "duration": self.duration,
            "velocity": self.velocity,
        }


def event_from_dict(data: Dict[str, Any]) -> SequenceEvent:
    """
    Rebuild a sequence event from its ``to_dict`` form.

    Raises:
        SequenceFormatError: If the type tag or a required field is missing
    """
    kind: Optional[str] = data.get("type") if isinstance(data, dict) else None
    try:
        if kind == "note":
            return NoteEvent(
                timestamp=float(data["timestamp"]),
                duration=int(data["duration"]),
                velocity=int(data.get("velocity", 127)),
                note=str(data["note"]),
                confidence=float(data.get("confidence", 1.0)),
            )
        if kind == "chord":
            return ChordEvent(
                timestamp=float(data["timestamp"]),
                duration=int(data["duration"]),
                velocity=int(data.get("velocity", 100)),
                chord=str(data["chord"]),
                notes=[int(n) for n in data.get("notes") or []],
            )
    except (KeyError, TypeError, ValueError) as e:
        raise SequenceFormatError(f"Malformed {kind} event: {e}") from e
    raise SequenceFormatError(f"Unknown event type: {kind!r}")
