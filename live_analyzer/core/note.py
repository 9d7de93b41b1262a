"""Note naming and the equal-tempered note frequency table."""

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Iterator, Optional, Tuple

import librosa
import numpy as np

from .constants import PITCH_NAMES, TABLE_MIN_OCTAVE, TABLE_MAX_OCTAVE

_NOTE_RE = re.compile(r"^([A-G]#?)(-?\d+)?$")


def split_note_name(name: str) -> Tuple[Optional[str], Optional[int]]:
    """Split 'F#3' into ('F#', 3). Returns (None, None) if unparseable."""
    match = _NOTE_RE.match(name.strip()) if name else None
    if not match or match.group(1) not in PITCH_NAMES:
        return None, None
    octave = int(match.group(2)) if match.group(2) is not None else None
    return match.group(1), octave


def pitch_class(name: str) -> str:
    """Strip the octave from a note name ('A4' -> 'A')."""
    return re.sub(r"-?\d+$", "", name)


def note_name_to_midi(name: str) -> int:
    """Convert 'C4' to 60. Raises ValueError on an unknown name."""
    pc, octave = split_note_name(name)
    if pc is None or octave is None:
        raise ValueError(f"Not a note name with octave: {name!r}")
    return (octave + 1) * 12 + PITCH_NAMES.index(pc)


def midi_to_note_name(midi: int) -> str:
    """Convert MIDI pitch to a note name (60 -> 'C4')."""
    octave = (midi // 12) - 1
    return f"{PITCH_NAMES[midi % 12]}{octave}"


def freq_to_midi(freq: float) -> int:
    """Convert frequency (Hz) to the nearest MIDI pitch."""
    if freq <= 0:
        return 0
    return int(round(69 + 12 * np.log2(freq / 440.0)))


def midi_to_freq(midi: int) -> float:
    """Convert MIDI pitch to frequency (Hz)."""
    return float(librosa.midi_to_hz(midi))


class NoteFrequencyTable(Mapping):
    """Read-only mapping of note name ('A4') to equal-tempered frequency.

    Built once from ``f = 440 * 2^((midi - 69) / 12)`` over the octaves
    ``min_octave..max_octave``. The lookup arrays used by :meth:`nearest`
    are flagged non-writeable so the table cannot drift after construction.
    """

    def __init__(
        self,
        min_octave: int = TABLE_MIN_OCTAVE,
        max_octave: int = TABLE_MAX_OCTAVE,
    ):
        names = []
        midis = []
        for octave in range(min_octave, max_octave + 1):
            for i, pc in enumerate(PITCH_NAMES):
                names.append(f"{pc}{octave}")
                midis.append((octave + 1) * 12 + i)

        freqs = librosa.midi_to_hz(np.asarray(midis, dtype=float))
        freqs.flags.writeable = False

        self._names = tuple(names)
        self._freqs = freqs
        self._log2_freqs = np.log2(freqs)
        self._log2_freqs.flags.writeable = False
        self._mapping = MappingProxyType(
            {name: float(f) for name, f in zip(names, freqs)}
        )

    def __getitem__(self, name: str) -> float:
        return self._mapping[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    @property
    def frequencies(self) -> np.ndarray:
        """Table frequencies in ascending order (read-only array)."""
        return self._freqs

    def nearest(self, freq: float) -> Tuple[str, float]:
        """
        Find the table entry closest to ``freq`` in log-frequency.

        Args:
            freq: Frequency in Hz (must be positive)

        Returns:
            Tuple of (note name, |log2(freq / table_freq)|)
        """
        distances = np.abs(np.log2(freq) - self._log2_freqs)
        idx = int(np.argmin(distances))
        return self._names[idx], float(distances[idx])
