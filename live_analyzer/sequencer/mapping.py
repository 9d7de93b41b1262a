"""Note and chord name -> MIDI pitch lookup used for playback.

Unknown names never fail: a note falls back to middle C and a chord to a
C major triad.
"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from ..core import PITCH_NAMES, split_note_name
from ..core.constants import MIDDLE_C, MIDI_MAX, MIDI_MIN

DEFAULT_OCTAVE = 4
DEFAULT_NOTE = MIDDLE_C
DEFAULT_CHORD: Tuple[int, ...] = (60, 64, 67)

# Root-position voicings from the octave starting at middle C
PLAYBACK_CHORD_SHAPES: Tuple[Tuple[str, Tuple[int, ...]], ...] = (
    ("", (0, 4, 7)),
    ("m", (0, 3, 7)),
    ("7", (0, 4, 7, 10)),
    ("m7", (0, 3, 7, 10)),
    ("maj7", (0, 4, 7, 11)),
)


def _build_chord_table() -> Mapping[str, Tuple[int, ...]]:
    table: Dict[str, Tuple[int, ...]] = {}
    for suffix, intervals in PLAYBACK_CHORD_SHAPES:
        for pc, root in enumerate(PITCH_NAMES):
            table[f"{root}{suffix}"] = tuple(MIDDLE_C + pc + i for i in intervals)
    return MappingProxyType(table)


CHORD_TABLE = _build_chord_table()


def note_to_midi(name: str) -> int:
    """
    Map a note name to a MIDI pitch.

    'E' -> 64 (octave 4 assumed), 'E5' -> 76. Unknown names -> 60.
    """
    pc, octave = split_note_name(name)
    if pc is None:
        return DEFAULT_NOTE
    if octave is None:
        octave = DEFAULT_OCTAVE
    midi = (octave + 1) * 12 + PITCH_NAMES.index(pc)
    if not MIDI_MIN <= midi <= MIDI_MAX:
        return DEFAULT_NOTE
    return midi


def chord_to_notes(name: str) -> List[int]:
    """Map a chord name ('Am7') to MIDI pitches. Unknown names -> C major."""
    return list(CHORD_TABLE.get(name, DEFAULT_CHORD))
