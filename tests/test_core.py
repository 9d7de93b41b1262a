"""Tests for core types: note table, events, history, signals."""

import math

import numpy as np
import pytest

from live_analyzer.core import (
    ChordEvent,
    ConfigurationError,
    DetectionHistory,
    NoteEvent,
    NoteFrequencyTable,
    SampleBuffer,
    SequenceFormatError,
    Signal,
    event_from_dict,
    freq_to_midi,
    midi_to_freq,
    midi_to_note_name,
    note_name_to_midi,
    pitch_class,
    split_note_name,
)


class TestNoteNames:
    """Tests for note name helpers."""

    def test_split_note_name(self):
        assert split_note_name("F#3") == ("F#", 3)
        assert split_note_name("E") == ("E", None)
        assert split_note_name("H2") == (None, None)
        assert split_note_name("") == (None, None)

    def test_pitch_class(self):
        assert pitch_class("A4") == "A"
        assert pitch_class("C#5") == "C#"
        assert pitch_class("G") == "G"

    def test_midi_conversion(self):
        assert note_name_to_midi("C4") == 60
        assert note_name_to_midi("A4") == 69
        assert midi_to_note_name(61) == "C#4"

    def test_frequency_conversion(self):
        assert freq_to_midi(440.0) == 69
        assert freq_to_midi(261.63) == 60
        assert freq_to_midi(0.0) == 0
        assert midi_to_freq(69) == pytest.approx(440.0)
        assert midi_to_freq(60) == pytest.approx(261.63, abs=0.01)

    def test_note_name_without_octave_rejected(self):
        with pytest.raises(ValueError):
            note_name_to_midi("C")


class TestNoteFrequencyTable:
    """Tests for the equal-tempered note table."""

    @pytest.fixture(scope="class")
    def table(self):
        return NoteFrequencyTable()

    def test_covers_c1_to_b8(self, table):
        assert len(table) == 96
        names = list(table)
        assert names[0] == "C1"
        assert names[-1] == "B8"

    def test_reference_frequencies(self, table):
        assert table["A4"] == pytest.approx(440.0)
        assert table["C4"] == pytest.approx(261.626, abs=0.01)
        assert table["A5"] == pytest.approx(880.0)

    def test_frequencies_ascending(self, table):
        assert np.all(np.diff(table.frequencies) > 0)

    def test_table_is_read_only(self, table):
        with pytest.raises(TypeError):
            table["A4"] = 441.0
        with pytest.raises(ValueError):
            table.frequencies[0] = 1.0

    def test_nearest(self, table):
        name, distance = table.nearest(445.0)
        assert name == "A4"
        assert distance == pytest.approx(math.log2(445.0 / 440.0))


class TestSampleBuffer:
    """Tests for SampleBuffer."""

    def test_samples_copied_and_read_only(self):
        source = np.zeros(4)
        buffer = SampleBuffer(source, 44100, timestamp_ns=2_000_000)
        source[0] = 1.0

        assert buffer.samples[0] == 0.0
        with pytest.raises(ValueError):
            buffer.samples[0] = 1.0

    def test_timing(self):
        buffer = SampleBuffer(np.zeros(441), 44100, timestamp_ns=5_000_000)
        assert buffer.timestamp_ms == 5.0
        assert buffer.duration_ms == pytest.approx(10.0)


class TestSequenceEvents:
    """Tests for event serialization."""

    def test_note_round_trip(self):
        event = NoteEvent(timestamp=150.0, duration=120, velocity=114, note="E", confidence=0.9)
        assert event_from_dict(event.to_dict()) == event
        assert event.end == 270.0

    def test_chord_round_trip(self):
        event = ChordEvent(timestamp=0.0, duration=1000, velocity=100, chord="Am", notes=[69, 72, 76])
        data = event.to_dict()
        assert data["type"] == "chord"
        assert event_from_dict(data) == event

    def test_unknown_type(self):
        with pytest.raises(SequenceFormatError):
            event_from_dict({"type": "drum", "timestamp": 0})

    def test_missing_field(self):
        with pytest.raises(SequenceFormatError, match="Malformed note"):
            event_from_dict({"type": "note", "timestamp": 0})


class TestDetectionHistory:
    """Tests for the majority-vote ring buffer."""

    def test_capacity_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            DetectionHistory(0)

    def test_oldest_evicted(self):
        history = DetectionHistory(3)
        for label in "ABCD":
            history.push(label)
        assert history.labels == ["B", "C", "D"]
        assert len(history) == 3

    def test_threshold_uses_capacity(self):
        history = DetectionHistory(5)
        history.push("A", 0.5)
        history.push("A", 0.7)
        # 2 of 5 is below ceil(5 * 0.6) = 3 even though the window is all "A"
        assert history.majority(0.6) is None

        history.push("A", 0.9)
        stable = history.majority(0.6)
        assert stable.label == "A"
        assert stable.count == 3
        assert stable.confidence == pytest.approx(0.7)

    def test_tie_for_first_has_no_winner(self):
        history = DetectionHistory(4)
        for label in "AABB":
            history.push(label)
        assert history.majority(0.5) is None

    def test_strict_majority(self):
        history = DetectionHistory(8)
        for label in "AAAA":
            history.push(label)
        assert history.majority(0.5) is not None
        assert history.majority(0.5, strict=True) is None

    def test_min_entries(self):
        history = DetectionHistory(2)
        history.push("A")
        history.push("A")
        assert history.majority(0.5, min_entries=3) is None


class TestSignal:
    """Tests for the observer channel."""

    def test_listeners_run_in_order(self):
        signal = Signal("test")
        calls = []
        signal.connect(lambda x: calls.append(("first", x)))
        signal.connect(lambda x: calls.append(("second", x)))

        signal.emit(1)

        assert calls == [("first", 1), ("second", 1)]
        assert len(signal) == 2

    def test_disconnect(self):
        signal = Signal("test")
        calls = []
        listener = signal.connect(calls.append)
        signal.disconnect(listener)
        signal.emit(1)
        assert calls == []

    def test_listener_errors_propagate(self):
        signal = Signal("test")

        @signal.connect
        def broken(_):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            signal.emit(1)
