"""LiveAnalyzer - Wires the analysis, inference and sequencer layers together.

Data flow for every captured buffer::

    samples -> audio level
            -> block accumulator -> SpectralAnalyzer -> Spectrum
                                 -> PitchEstimator   -> raw note  \\
                                 -> TimbreClassifier -> raw instrument -> DetectionAggregator
                                                                           -> ChordBuilder
    stable notes / chord changes -> Sequencer (while recording)

Everything runs synchronously on the caller's thread. The only deferred
work (chord debounce, periodic snapshot, playback) goes through the
injected scheduler.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .analysis import PitchEstimator, SpectralAnalyzer, TimbreClassifier, audio_level
from .config import AnalyzerConfig
from .core import NoteFrequencyTable, SampleBuffer, Scheduler, Signal
from .inference import ChordBuilder, DetectionAggregator
from .sequencer import Sequencer

logger = logging.getLogger(__name__)


@dataclass
class AnalysisSnapshot:
    """Current detection state, as published once per snapshot interval."""

    timestamp: float
    current_note: Optional[str] = None
    note_confidence: float = 0.0
    current_instrument: Optional[str] = None
    instrument_confidence: float = 0.0
    current_chord: Optional[str] = None
    active_notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class LiveAnalyzer:
    """
    Real-time note, instrument and chord detection with recording.

    Signals:
        audio_level(level): 0..100, once per ``process_samples`` call
        note_detected(note, confidence)
        instrument_detected(instrument, confidence)
        chord_detected(chord)
        analysis_updated(snapshot): periodic AnalysisSnapshot

    Example:
        >>> from live_analyzer.core import VirtualScheduler
        >>> analyzer = LiveAnalyzer(VirtualScheduler())
        >>> analyzer.note_detected.connect(lambda n, c: print(n))
        >>> analyzer.process_samples(np.zeros(2048), 44100, timestamp_ns=0)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        config: Optional[AnalyzerConfig] = None,
        note_table: Optional[NoteFrequencyTable] = None,
    ):
        """
        Initialize LiveAnalyzer.

        Args:
            scheduler: Clock and timers shared by every component
            config: Optional AnalyzerConfig
            note_table: Optional prebuilt note table
        """
        self.scheduler = scheduler
        self.config = config or AnalyzerConfig()

        self.spectral = SpectralAnalyzer(
            sample_rate=self.config.sample_rate, config=self.config.spectrum
        )
        self.pitch = PitchEstimator(self.config.pitch, note_table)
        self.timbre = TimbreClassifier(config=self.config.timbre)
        self.chord_builder = ChordBuilder(scheduler, config=self.config.chord)
        self.aggregator = DetectionAggregator(self.chord_builder, self.config.aggregator)
        self.sequencer = Sequencer(scheduler, self.config.sequencer)

        self.audio_level = Signal("audio_level")
        self.analysis_updated = Signal("analysis_updated")
        self.note_detected = self.aggregator.note_detected
        self.instrument_detected = self.aggregator.instrument_detected
        self.chord_detected = self.chord_builder.chord_detected

        self._backlog = np.zeros(0, dtype=np.float64)
        self._frame_ms: Optional[float] = None
        self._snapshot_timer: Any = None
        self._recorded_note: Optional[str] = None
        self._recorded_chord: Optional[str] = None

        self.note_detected.connect(self._record_note)
        self.chord_detected.connect(self._record_chord)

    @property
    def fft_size(self) -> int:
        return self.spectral.fft_size

    @property
    def is_running(self) -> bool:
        return self._snapshot_timer is not None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def process_samples(
        self,
        samples: np.ndarray,
        sample_rate: Optional[int] = None,
        timestamp_ns: Optional[int] = None,
    ) -> None:
        """
        Feed one captured buffer of mono samples.

        Buffers may have any length. Samples are accumulated until a full
        FFT block is available; at most two blocks of backlog are kept.
        Non-finite samples are replaced with silence.

        Args:
            samples: 1-D float samples
            sample_rate: Sample rate in Hz (default: configured rate)
            timestamp_ns: Capture time in nanoseconds on the scheduler's
                clock (default: scheduler now)
        """
        sample_rate = sample_rate or self.config.sample_rate
        if timestamp_ns is None:
            timestamp_ns = int(self.scheduler.now_ms() * 1e6)

        samples = np.nan_to_num(
            np.asarray(samples, dtype=np.float64).reshape(-1),
            nan=0.0, posinf=0.0, neginf=0.0,
        )
        buffer = SampleBuffer(samples, sample_rate, timestamp_ns)
        self.audio_level.emit(audio_level(buffer.samples))

        backlog = np.concatenate([self._backlog, buffer.samples])
        limit = 2 * self.fft_size
        if len(backlog) > limit:
            backlog = backlog[-limit:]

        while len(backlog) >= self.fft_size:
            block, backlog = backlog[:self.fft_size], backlog[self.fft_size:]
            self._analyze_block(SampleBuffer(block, sample_rate, timestamp_ns))
        self._backlog = backlog

    def process_buffer(self, buffer: SampleBuffer) -> None:
        self.process_samples(buffer.samples, buffer.sample_rate, buffer.timestamp_ns)

    def _analyze_block(self, block: SampleBuffer) -> None:
        now = block.timestamp_ms
        self._frame_ms = now
        spectrum = self.spectral.transform(block)

        pitch = self.pitch.estimate(spectrum, timestamp=now)
        if pitch is not None:
            self.aggregator.on_raw_note(pitch.note, pitch.confidence, now)

        timbre = self.timbre.classify(spectrum, timestamp=now)
        if timbre is not None:
            self.aggregator.on_raw_instrument(timbre.instrument, timbre.confidence, now)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def start_recording(self) -> None:
        self._recorded_note = None
        self._recorded_chord = None
        self.sequencer.start_recording()

    def stop_recording(self) -> None:
        self.sequencer.stop_recording()

    def _record_note(self, note: str, confidence: float) -> None:
        if not self.sequencer.is_recording or note == self._recorded_note:
            return
        self._recorded_note = note
        timestamp = self._frame_ms if self._frame_ms is not None else self.scheduler.now_ms()
        self.sequencer.add_note(note, timestamp, confidence)

    def _record_chord(self, chord: str) -> None:
        if not self.sequencer.is_recording or chord == self._recorded_chord:
            return
        self._recorded_chord = chord
        self.sequencer.add_chord(chord, self.scheduler.now_ms())

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin publishing periodic snapshots. No-op if already running."""
        if self._snapshot_timer is not None:
            return
        logger.info("Live analysis started (fft_size=%d)", self.fft_size)
        self._snapshot_timer = self.scheduler.call_later(
            self.config.snapshot_interval_ms, self._on_snapshot_timer
        )

    def stop(self) -> None:
        """Stop periodic snapshots and any playback in progress."""
        self.scheduler.cancel(self._snapshot_timer)
        self._snapshot_timer = None
        self.sequencer.stop()
        logger.info("Live analysis stopped")

    def snapshot(self) -> AnalysisSnapshot:
        agg = self.aggregator
        return AnalysisSnapshot(
            timestamp=self.scheduler.now_ms(),
            current_note=agg.current_note,
            note_confidence=agg.note_confidence,
            current_instrument=agg.current_instrument,
            instrument_confidence=agg.instrument_confidence,
            current_chord=agg.current_chord,
            active_notes=list(agg.active_notes),
        )

    def _on_snapshot_timer(self) -> None:
        self._snapshot_timer = self.scheduler.call_later(
            self.config.snapshot_interval_ms, self._on_snapshot_timer
        )
        self.analysis_updated.emit(self.snapshot())

    def reset(self) -> None:
        """Forget all detection state and buffered samples."""
        self._backlog = np.zeros(0, dtype=np.float64)
        self._frame_ms = None
        self.pitch.reset()
        self.timbre.reset()
        self.aggregator.clear()
