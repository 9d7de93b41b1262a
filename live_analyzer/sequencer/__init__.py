"""Sequencer layer - Capture stable detections and replay them."""

from .mapping import note_to_midi, chord_to_notes, CHORD_TABLE
from .sequencer import (
    Sequencer,
    SequencerConfig,
    SequenceExport,
    PlaybackCursor,
    MODES,
    CAPTURE_MODES,
    QUANTIZATIONS,
)

__all__ = [
    "note_to_midi",
    "chord_to_notes",
    "CHORD_TABLE",
    "Sequencer",
    "SequencerConfig",
    "SequenceExport",
    "PlaybackCursor",
    "MODES",
    "CAPTURE_MODES",
    "QUANTIZATIONS",
]
