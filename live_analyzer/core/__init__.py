"""Core types and constants for Live Song Analyzer."""

from .note import (
    NoteFrequencyTable,
    pitch_class,
    split_note_name,
    note_name_to_midi,
    midi_to_note_name,
    freq_to_midi,
    midi_to_freq,
)
from .events import SampleBuffer, SequenceEvent, NoteEvent, ChordEvent, event_from_dict
from .errors import AnalyzerError, ConfigurationError, SequenceFormatError
from .scheduler import Scheduler, AsyncioScheduler, VirtualScheduler
from .signals import Signal
from .history import DetectionHistory, HistoryEntry, StableDetection
from .constants import (
    PITCH_NAMES,
    DEFAULT_SR,
    DEFAULT_FFT_SIZE,
    DEFAULT_TEMPO,
)

__all__ = [
    "NoteFrequencyTable",
    "pitch_class",
    "split_note_name",
    "note_name_to_midi",
    "midi_to_note_name",
    "freq_to_midi",
    "midi_to_freq",
    "SampleBuffer",
    "SequenceEvent",
    "NoteEvent",
    "ChordEvent",
    "event_from_dict",
    "AnalyzerError",
    "ConfigurationError",
    "SequenceFormatError",
    "Scheduler",
    "AsyncioScheduler",
    "VirtualScheduler",
    "Signal",
    "DetectionHistory",
    "HistoryEntry",
    "StableDetection",
    "PITCH_NAMES",
    "DEFAULT_SR",
    "DEFAULT_FFT_SIZE",
    "DEFAULT_TEMPO",
]
