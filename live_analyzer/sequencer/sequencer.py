"""Sequencer - Record detected notes and chords, then replay them.

Recording appends timestamped events. A note's real duration is not known
when it is added: it gets a provisional length that is replaced once the
next note arrives and the gap between them is known. Stopping a recording
finalizes the take (sort, chord minimums, optional quantization, then
melody trimming against the final onsets).

Playback never blocks. Events that are already due are emitted at once;
otherwise a single one-shot timer is registered for the next one. Every
played event also registers its own note-off timer, and :meth:`Sequencer.stop`
revokes all of them.
"""

import itertools
import json
import logging
import math
from collections import Counter, deque
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..core import (
    ChordEvent,
    ConfigurationError,
    NoteEvent,
    Scheduler,
    SequenceEvent,
    SequenceFormatError,
    Signal,
    event_from_dict,
)
from ..core.constants import DEFAULT_TEMPO, MAX_TEMPO, MIDI_MAX, MIN_TEMPO
from ..processing import Quantizer
from .mapping import chord_to_notes, note_to_midi

logger = logging.getLogger(__name__)

MODES = ("melody", "chord", "mixed")
CAPTURE_MODES = ("auto", "melody", "chord")
QUANTIZATIONS = ("free",) + tuple(Quantizer.UNITS)


@dataclass
class SequencerConfig:
    """Configuration for recording, finalization and playback."""

    tempo: float = DEFAULT_TEMPO
    quantization: str = "free"
    swing: float = 0.0
    capture_mode: str = "auto"

    # Provisional and derived note durations (ms)
    default_note_ms: int = 500
    min_note_ms: int = 100
    max_note_ms: int = 2000
    fast_gap_ms: int = 200
    chord_duration_ms: int = 1000
    chord_velocity: int = 100

    # Finalization
    melody_gap_ratio: float = 0.9
    last_note_cap_ms: int = 800
    min_chord_ms: int = 1000

    # Mode inference
    mode_window: int = 5
    pattern_buffer_size: int = 20
    fast_onset_ms: float = 300.0
    slow_onset_ms: float = 800.0

    def __post_init__(self):
        if self.quantization not in QUANTIZATIONS:
            raise ConfigurationError(
                f"Unknown quantization '{self.quantization}'. Supported: {list(QUANTIZATIONS)}"
            )
        if self.capture_mode not in CAPTURE_MODES:
            raise ConfigurationError(
                f"Unknown capture mode '{self.capture_mode}'. Supported: {list(CAPTURE_MODES)}"
            )
        if self.mode_window < 2 or self.pattern_buffer_size < 3:
            raise ConfigurationError("mode_window must be >= 2 and pattern_buffer_size >= 3")
        self.tempo = min(max(self.tempo, MIN_TEMPO), MAX_TEMPO)
        self.swing = min(max(self.swing, 0.0), 1.0)


@dataclass
class SequenceExport:
    """Serializable snapshot of a recorded sequence."""

    events: List[SequenceEvent]
    mode: str
    tempo: float
    total_duration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "mode": self.mode,
            "tempo": self.tempo,
            "total_duration": self.total_duration,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SequenceExport":
        """
        Rebuild an export from :meth:`to_dict` output.

        Raises:
            SequenceFormatError: If the payload is not a sequence export
        """
        if not isinstance(data, dict) or not isinstance(data.get("events"), list):
            raise SequenceFormatError("Sequence export must be an object with an 'events' list")
        events = [event_from_dict(e) for e in data["events"]]
        mode = data.get("mode", "melody")
        if mode not in MODES:
            raise SequenceFormatError(f"Unknown sequence mode: {mode!r}")
        try:
            tempo = float(data.get("tempo", DEFAULT_TEMPO))
        except (TypeError, ValueError) as e:
            raise SequenceFormatError(f"Invalid tempo: {e}") from e
        total = data.get("total_duration")
        if total is None:
            total = max((e.end for e in events), default=0)
        return cls(events=events, mode=mode, tempo=tempo, total_duration=total)

    @classmethod
    def from_json(cls, text: str) -> "SequenceExport":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SequenceFormatError(f"Invalid sequence JSON: {e}") from e
        return cls.from_dict(data)


@dataclass
class PlaybackCursor:
    """Progress of one playback pass."""

    start_ms: float
    index: int = 0
    next_timer: Any = None
    note_offs: Dict[int, Any] = field(default_factory=dict)
    sounding: Counter = field(default_factory=Counter)

    @property
    def finished(self) -> bool:
        return self.next_timer is None and not self.note_offs


class Sequencer:
    """Records stable detections and plays them back as note directives.

    Signals:
        sequence_updated(events): after every change to the event list
        playback_started(): when playback begins
        playback_stopped(): when playback ends, naturally or via stop()
        play_notes(midi_notes, duration_ms): sound these pitches
        stop_notes(midi_notes): silence these pitches

    Example:
        >>> from live_analyzer.core import VirtualScheduler
        >>> sched = VirtualScheduler()
        >>> seq = Sequencer(sched)
        >>> seq.start_recording()
        >>> seq.add_note("C", 0, 0.9)
        >>> seq.add_note("E", 150, 0.9)
        >>> seq.events[0].duration
        120
    """

    def __init__(self, scheduler: Scheduler, config: Optional[SequencerConfig] = None):
        self.scheduler = scheduler
        self.config = replace(config) if config else SequencerConfig()

        self.events: List[SequenceEvent] = []
        self.is_recording = False
        self.detected_mode = "melody"

        self._recording_start = 0.0
        self._last_note: Optional[NoteEvent] = None
        self._onsets: deque = deque(maxlen=self.config.pattern_buffer_size)
        self._cursor: Optional[PlaybackCursor] = None
        self._timer_ids = itertools.count()

        self.sequence_updated = Signal("sequence_updated")
        self.playback_started = Signal("playback_started")
        self.playback_stopped = Signal("playback_stopped")
        self.play_notes = Signal("play_notes")
        self.stop_notes = Signal("stop_notes")

    @property
    def is_playing(self) -> bool:
        return self._cursor is not None

    @property
    def mode(self) -> str:
        """Mode used for finalization: the forced capture mode, else the detected one."""
        if self.config.capture_mode != "auto":
            return self.config.capture_mode
        return self.detected_mode

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def start_recording(self, timestamp: Optional[float] = None) -> None:
        """Begin a new take. Clears previous events. No-op if already recording."""
        if self.is_recording:
            return
        self.is_recording = True
        self._recording_start = self.scheduler.now_ms() if timestamp is None else timestamp
        self.events = []
        self._last_note = None
        self._onsets.clear()
        self.detected_mode = "melody"
        logger.info("Recording started")
        self.sequence_updated.emit(list(self.events))

    def stop_recording(self) -> None:
        """End the take and finalize it. No-op if not recording."""
        if not self.is_recording:
            return
        self.is_recording = False
        self._finalize()
        logger.info("Recording stopped - captured %d events (%s)", len(self.events), self.mode)
        self.sequence_updated.emit(list(self.events))

    def toggle_recording(self) -> bool:
        """Start or stop recording. Returns the new recording state."""
        if self.is_recording:
            self.stop_recording()
        else:
            self.start_recording()
        return self.is_recording

    def add_note(self, note: str, timestamp: float, confidence: float = 1.0) -> None:
        """
        Append a note event. Ignored unless recording.

        Args:
            note: Note name ('E' or 'E4')
            timestamp: Absolute time (ms), same clock as the recording start
            confidence: Detection confidence in [0, 1]
        """
        if not self.is_recording:
            return
        cfg = self.config
        relative = timestamp - self._recording_start

        if self._last_note is not None:
            gap = relative - self._last_note.timestamp
            self._last_note.duration = self._duration_from_gap(gap)

        self._onsets.append(relative)
        self._analyze_onset_pattern()

        event = NoteEvent(
            timestamp=relative,
            duration=cfg.default_note_ms,
            velocity=_velocity(confidence),
            note=note,
            confidence=confidence,
        )
        self.events.append(event)
        self._last_note = event
        self._update_detected_mode()

        logger.debug("Added note %s at %.0fms (%s)", note, relative, self.detected_mode)
        self.sequence_updated.emit(list(self.events))

    def add_chord(self, chord: str, timestamp: float, notes: Optional[List[int]] = None) -> None:
        """
        Append a chord event. Ignored unless recording.

        Args:
            chord: Chord name ('Am')
            timestamp: Absolute time (ms)
            notes: MIDI pitches to voice it with (looked up from the name if omitted)
        """
        if not self.is_recording:
            return
        relative = timestamp - self._recording_start
        event = ChordEvent(
            timestamp=relative,
            duration=self.config.chord_duration_ms,
            velocity=self.config.chord_velocity,
            chord=chord,
            notes=list(notes) if notes else chord_to_notes(chord),
        )
        self.events.append(event)
        self._update_detected_mode()

        logger.debug("Added chord %s at %.0fms (%s)", chord, relative, self.detected_mode)
        self.sequence_updated.emit(list(self.events))

    def _duration_from_gap(self, gap: float) -> int:
        cfg = self.config
        if gap < cfg.fast_gap_ms:
            return int(max(gap * 0.8, cfg.min_note_ms))
        return int(min(gap * 0.6, cfg.max_note_ms))

    def _analyze_onset_pattern(self) -> None:
        """Guess melody vs. chord from the spacing of recent onsets."""
        if len(self._onsets) < 3:
            return
        recent = list(self._onsets)[-self.config.mode_window:]
        intervals = [b - a for a, b in zip(recent, recent[1:])]
        avg = sum(intervals) / len(intervals)
        if avg < self.config.fast_onset_ms:
            self.detected_mode = "melody"
        elif avg > self.config.slow_onset_ms:
            self.detected_mode = "chord"

    def _update_detected_mode(self) -> None:
        """Infer the mode from the kinds of the most recent events."""
        recent = self.events[-self.config.mode_window:]
        if len(recent) < 2:
            return
        notes = sum(1 for e in recent if isinstance(e, NoteEvent))
        chords = len(recent) - notes
        if notes > chords * 2:
            self.detected_mode = "melody"
        elif chords > notes:
            self.detected_mode = "chord"
        else:
            self.detected_mode = "mixed"

    def _finalize(self) -> None:
        if not self.events:
            return
        cfg = self.config
        self.events.sort(key=lambda e: e.timestamp)
        mode = self.mode

        if mode == "chord":
            for event in self.events:
                if isinstance(event, ChordEvent):
                    event.duration = max(event.duration, cfg.min_chord_ms)

        if cfg.quantization != "free":
            quantizer = Quantizer(tempo=cfg.tempo, unit=cfg.quantization)
            self.events = quantizer.quantize(self.events)

        # Quantizing can pull onsets together, so trim against the final grid
        if mode == "melody":
            for current, following in zip(self.events, self.events[1:]):
                gap = following.timestamp - current.timestamp
                current.duration = int(min(current.duration, gap * cfg.melody_gap_ratio))
            last = self.events[-1]
            last.duration = min(last.duration, cfg.last_note_cap_ms)

        self._last_note = None

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self) -> None:
        """Start playback from the first event. No-op if empty or already playing."""
        if self.is_playing or not self.events:
            return
        self._cursor = PlaybackCursor(start_ms=self.scheduler.now_ms())
        logger.info("Playback started (%d events)", len(self.events))
        self.playback_started.emit()
        self._advance()

    def stop(self) -> None:
        """Stop playback, cancel all timers and silence sounding notes once."""
        cursor = self._cursor
        if cursor is None:
            return
        self._cursor = None
        self.scheduler.cancel(cursor.next_timer)
        for handle in cursor.note_offs.values():
            self.scheduler.cancel(handle)
        cursor.note_offs.clear()

        sounding = sorted(n for n, count in cursor.sounding.items() if count > 0)
        if sounding:
            self.stop_notes.emit(sounding)
        logger.info("Playback stopped")
        self.playback_stopped.emit()

    def _advance(self) -> None:
        """Emit every due event, then arm a timer for the next one."""
        cursor = self._cursor
        while cursor is not None and cursor is self._cursor:
            if cursor.index >= len(self.events):
                cursor.next_timer = None
                self._end_if_finished(cursor)
                return
            event = self.events[cursor.index]
            elapsed = self.scheduler.now_ms() - cursor.start_ms
            if elapsed < event.timestamp:
                cursor.next_timer = self.scheduler.call_later(
                    event.timestamp - elapsed, self._on_event_due
                )
                return
            cursor.index += 1
            self._play_event(cursor, event)

    def _on_event_due(self) -> None:
        cursor = self._cursor
        if cursor is None:
            return
        cursor.next_timer = None
        if cursor.index < len(self.events):
            event = self.events[cursor.index]
            cursor.index += 1
            self._play_event(cursor, event)
        self._advance()

    def _play_event(self, cursor: PlaybackCursor, event: SequenceEvent) -> None:
        if isinstance(event, NoteEvent):
            notes = [note_to_midi(event.note)]
        elif isinstance(event, ChordEvent):
            notes = list(event.notes) or chord_to_notes(event.chord)
        else:
            return

        cursor.sounding.update(notes)
        timer_id = next(self._timer_ids)
        cursor.note_offs[timer_id] = self.scheduler.call_later(
            max(event.duration, 0), lambda: self._note_off(cursor, timer_id, notes)
        )
        self.play_notes.emit(list(notes), event.duration)

    def _note_off(self, cursor: PlaybackCursor, timer_id: int, notes: List[int]) -> None:
        if cursor is not self._cursor or cursor.note_offs.pop(timer_id, None) is None:
            return
        cursor.sounding.subtract(notes)
        self.stop_notes.emit(list(notes))
        self._end_if_finished(cursor)

    def _end_if_finished(self, cursor: PlaybackCursor) -> None:
        if cursor is not self._cursor or cursor.index < len(self.events):
            return
        if not cursor.finished:
            return
        self._cursor = None
        logger.info("Playback finished")
        self.playback_stopped.emit()

    # ------------------------------------------------------------------
    # Editing and settings
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Stop playback if needed and drop all events."""
        self.stop()
        self.events = []
        self._last_note = None
        self._onsets.clear()
        self.detected_mode = "melody"
        logger.info("Sequence cleared")
        self.sequence_updated.emit(list(self.events))

    def load(self, export: SequenceExport) -> None:
        """Replace the current events with a previously exported sequence."""
        self.stop()
        self.is_recording = False
        self.events = sorted(export.events, key=lambda e: e.timestamp)
        self.detected_mode = export.mode
        self.config.tempo = min(max(export.tempo, MIN_TEMPO), MAX_TEMPO)
        self._last_note = None
        self.sequence_updated.emit(list(self.events))

    def set_rhythm(self, tempo: float, quantization: str = "free", swing: float = 0.0) -> None:
        """
        Set tempo, quantization grid and swing for the next finalization.

        Args:
            tempo: BPM, clamped to 60..200
            quantization: "free", "quarter", "eighth" or "sixteenth"
            swing: Swing amount, clamped to 0..1 (stored, not applied)

        Raises:
            ConfigurationError: If the quantization name is unknown
        """
        if quantization not in QUANTIZATIONS:
            raise ConfigurationError(
                f"Unknown quantization '{quantization}'. Supported: {list(QUANTIZATIONS)}"
            )
        self.config.tempo = min(max(tempo, MIN_TEMPO), MAX_TEMPO)
        self.config.quantization = quantization
        self.config.swing = min(max(swing, 0.0), 1.0)

    def set_capture_mode(self, mode: str) -> None:
        """Force "melody" or "chord" finalization, or "auto" to use the detected mode."""
        if mode not in CAPTURE_MODES:
            raise ConfigurationError(
                f"Unknown capture mode '{mode}'. Supported: {list(CAPTURE_MODES)}"
            )
        self.config.capture_mode = mode

    def playback_info(self) -> Dict[str, Any]:
        cursor = self._cursor
        return {
            "is_playing": cursor is not None,
            "is_recording": self.is_recording,
            "detected_mode": self.detected_mode,
            "sequence_length": len(self.events),
            "current_index": cursor.index if cursor else 0,
        }

    @property
    def total_duration(self) -> float:
        return max((e.end for e in self.events), default=0)

    def export_sequence(self) -> SequenceExport:
        """Snapshot the events (copies) with mode, tempo and total duration."""
        events = [event_from_dict(e.to_dict()) for e in self.events]
        return SequenceExport(
            events=events,
            mode=self.mode,
            tempo=self.config.tempo,
            total_duration=self.total_duration,
        )


def _velocity(confidence: float) -> int:
    return int(min(max(math.floor(confidence * MIDI_MAX), 0), MIDI_MAX))
