"""Tests for LiveAnalyzer wiring, snapshots and recording."""

import json

import numpy as np
import pytest

from live_analyzer import AnalyzerConfig, LiveAnalyzer
from live_analyzer.core import ChordEvent, ConfigurationError, NoteEvent
from live_analyzer.input import AudioLoader
from live_analyzer.analysis import SpectrumConfig

from .audio import sine_wave


@pytest.fixture
def analyzer(scheduler):
    return LiveAnalyzer(scheduler)


def feed(scheduler, analyzer, audio, sr=44100, block_size=1024, start_ns=0):
    for buffer in AudioLoader().iter_buffers(audio, sr, block_size, start_ns):
        scheduler.advance_to(buffer.timestamp_ms)
        analyzer.process_buffer(buffer)


class TestLiveAnalyzer:
    """End-to-end tests driven by synthetic audio."""

    def test_sustained_tone_detected(self, scheduler, analyzer):
        notes, chords, levels = [], [], []
        analyzer.note_detected.connect(lambda n, c: notes.append((n, c)))
        analyzer.chord_detected.connect(chords.append)
        analyzer.audio_level.connect(levels.append)

        feed(scheduler, analyzer, sine_wave(440.0, 44100, amplitude=0.5))
        scheduler.advance(1000)

        assert notes[0] == ("A", pytest.approx(1.0))
        assert chords == ["A"]
        assert len(levels) == 44
        assert levels[0] == pytest.approx(100 * 0.5 / np.sqrt(2), abs=1.0)

        snapshot = analyzer.snapshot()
        assert snapshot.current_note == "A"
        assert snapshot.current_chord == "A"
        assert snapshot.active_notes == ["A"]

    def test_silence_detects_nothing(self, scheduler, analyzer):
        notes = []
        analyzer.note_detected.connect(lambda n, c: notes.append(n))
        feed(scheduler, analyzer, np.zeros(44100))
        assert notes == []
        assert analyzer.snapshot().current_note is None

    def test_non_finite_samples_become_silence(self, analyzer):
        levels = []
        analyzer.audio_level.connect(levels.append)
        analyzer.process_samples(np.full(2048, np.nan), 44100, timestamp_ns=0)
        assert levels == [0.0]

    def test_recording_captures_stable_notes(self, scheduler, analyzer):
        analyzer.start_recording()
        feed(scheduler, analyzer, sine_wave(440.0, 22050))
        feed(scheduler, analyzer, sine_wave(261.63, 22050), start_ns=500_000_000)
        scheduler.advance(1000)
        analyzer.stop_recording()

        events = analyzer.sequencer.export_sequence().events
        notes = [e.note for e in events if isinstance(e, NoteEvent)]
        assert notes[0] == "A"
        assert all(isinstance(e, (NoteEvent, ChordEvent)) for e in events)
        timestamps = [e.timestamp for e in events]
        assert timestamps == sorted(timestamps)

    def test_nothing_recorded_when_idle(self, scheduler, analyzer):
        feed(scheduler, analyzer, sine_wave(440.0, 22050))
        scheduler.advance(1000)
        assert analyzer.sequencer.events == []


class TestBlockAccumulation:
    """Tests for buffering of arbitrary-size input."""

    @pytest.fixture
    def blocks(self, analyzer):
        seen = []
        analyzer._analyze_block = seen.append
        return seen

    def test_small_buffers_accumulate(self, analyzer, blocks):
        analyzer.process_samples(np.zeros(1000), 44100, timestamp_ns=0)
        assert blocks == []
        analyzer.process_samples(np.zeros(1048), 44100, timestamp_ns=0)
        assert len(blocks) == 1
        assert len(blocks[0]) == 2048

    def test_remainder_carried_over(self, analyzer, blocks):
        analyzer.process_samples(np.arange(3000.0), 44100, timestamp_ns=0)
        analyzer.process_samples(np.arange(1096.0), 44100, timestamp_ns=0)
        assert len(blocks) == 2
        assert blocks[1].samples[0] == 2048.0

    def test_backlog_bounded(self, analyzer, blocks):
        analyzer.process_samples(np.arange(5 * 2048.0), 44100, timestamp_ns=0)
        # Only the newest two blocks survive
        assert len(blocks) == 2
        assert blocks[0].samples[0] == 3 * 2048.0


class TestSnapshots:
    """Tests for the periodic analysis snapshot."""

    def test_periodic_snapshots(self, scheduler, analyzer):
        snapshots = []
        analyzer.analysis_updated.connect(snapshots.append)

        analyzer.start()
        analyzer.start()
        scheduler.advance(3500)
        assert [s.timestamp for s in snapshots] == [1000, 2000, 3000]

        analyzer.stop()
        scheduler.advance(3000)
        assert len(snapshots) == 3
        assert not analyzer.is_running

    def test_snapshot_serializes(self, analyzer):
        for _ in range(5):
            analyzer.aggregator.trigger_note("E", 0.75)
        data = json.loads(analyzer.snapshot().to_json())
        assert data["current_note"] == "E"
        assert data["note_confidence"] == pytest.approx(0.75)
        assert data["current_instrument"] is None
        assert data["active_notes"] == ["E"]

    def test_reset(self, scheduler, analyzer):
        feed(scheduler, analyzer, sine_wave(440.0, 22050))
        analyzer.reset()
        assert analyzer.snapshot().current_note is None
        assert len(analyzer.pitch.history) == 0


class TestConfiguration:
    """Tests for construction from AnalyzerConfig."""

    def test_components_copy_config_sections(self, scheduler):
        config = AnalyzerConfig(spectrum=SpectrumConfig(fft_size=4096))
        analyzer = LiveAnalyzer(scheduler, config)
        assert analyzer.fft_size == 4096
        assert analyzer.sequencer.config == config.sequencer
        assert analyzer.sequencer.config is not config.sequencer
        analyzer.aggregator.set_history_size(12)
        analyzer.sequencer.set_rhythm(90, "eighth")
        assert config.aggregator.history_size == 8
        assert config.sequencer.tempo == 120

    def test_bad_fft_size(self, scheduler):
        with pytest.raises(ConfigurationError):
            LiveAnalyzer(scheduler, AnalyzerConfig(spectrum=SpectrumConfig(fft_size=1000)))
