"""Tests for the inference layer: chord building and detection aggregation."""

import pytest

from live_analyzer.core import ConfigurationError
from live_analyzer.inference import (
    CHORD_DICTIONARY,
    AggregatorConfig,
    ChordBuilder,
    ChordConfig,
    DetectionAggregator,
    build_chord_dictionary,
    jaccard,
)
from live_analyzer.sequencer import Sequencer


@pytest.fixture
def builder(scheduler):
    return ChordBuilder(scheduler)


@pytest.fixture
def chords(builder):
    emitted = []
    builder.chord_detected.connect(emitted.append)
    return emitted


class TestChordDictionary:
    """Tests for the chord dictionary."""

    def test_size_and_order(self):
        names = list(CHORD_DICTIONARY)
        assert len(names) == 60
        assert names[:3] == ["C", "C#", "D"]
        assert names[12] == "Cm"
        assert names[-1] == "Bmaj7"

    def test_contents(self):
        assert CHORD_DICTIONARY["C"] == frozenset({"C", "E", "G"})
        assert CHORD_DICTIONARY["Am"] == frozenset({"A", "C", "E"})
        assert CHORD_DICTIONARY["G7"] == frozenset({"G", "B", "D", "F"})
        assert CHORD_DICTIONARY["Bmaj7"] == frozenset({"B", "D#", "F#", "A#"})

    def test_immutable(self):
        with pytest.raises(TypeError):
            CHORD_DICTIONARY["X"] = frozenset()

    def test_rebuild_is_identical(self):
        assert dict(build_chord_dictionary()) == dict(CHORD_DICTIONARY)

    def test_jaccard(self):
        assert jaccard(frozenset("CEG"), frozenset("CEG")) == 1.0
        assert jaccard(frozenset({"C", "E"}), frozenset({"C", "E", "G"})) == pytest.approx(2 / 3)
        assert jaccard(frozenset(), frozenset()) == 0.0


class TestChordBuilder:
    """Tests for ChordBuilder."""

    def test_c_major_selected(self, builder):
        name, score = builder.match(frozenset({"C", "E", "G"}))
        assert name == "C"
        assert score == 1.0

    def test_tie_goes_to_first_in_dictionary_order(self, builder):
        # {C, E} scores 2/3 against both C and Am; majors come first
        name, score = builder.match(frozenset({"C", "E"}))
        assert name == "C"
        assert score == pytest.approx(2 / 3)

    def test_no_match_below_threshold(self, builder):
        assert builder.match(frozenset({"C", "C#", "D", "D#"})) is None

    def test_debounced_analysis(self, scheduler, builder, chords):
        builder.on_stable_note("C")
        scheduler.advance(120)
        builder.on_stable_note("E4")
        scheduler.advance(140)
        builder.on_stable_note("G")

        scheduler.advance(499)
        assert chords == []
        scheduler.advance(1)
        assert chords == ["C"]
        assert builder.current_chord == "C"
        assert builder.active_notes == ["C", "E", "G"]

    def test_single_note_is_its_own_chord(self, scheduler, builder, chords):
        builder.on_stable_note("F#3")
        scheduler.advance(600)
        assert chords == ["F#"]

    def test_emits_only_on_change(self, scheduler, builder, chords):
        for note in ("A", "C", "E"):
            builder.on_stable_note(note)
        scheduler.advance(600)
        builder.on_stable_note("A")
        scheduler.advance(600)

        assert chords == ["Am"]
        assert builder.analyze() == "Am"
        assert chords == ["Am"]

    def test_expired_notes_removed_before_matching(self, scheduler, builder, chords):
        builder.on_stable_note("C", timestamp=0)
        builder.on_stable_note("E", timestamp=0)
        scheduler.advance_to(1500)
        builder.on_stable_note("A", timestamp=1500)

        # C and E are 2100 ms old at analysis time
        assert builder.analyze(now=2100) == "A"
        assert "C" not in builder.active_notes
        assert builder.active_notes == ["A"]

    def test_refreshed_note_kept(self, scheduler, builder):
        builder.on_stable_note("C", timestamp=0)
        builder.on_stable_note("C", timestamp=1900)
        builder.cleanup(now=2500)
        assert builder.active_notes == ["C"]

    def test_set_timeout_minimum(self, builder):
        builder.set_timeout(100)
        assert builder.config.timeout_ms == 500
        builder.set_timeout(3000)
        assert builder.config.timeout_ms == 3000

    def test_set_timeout_leaves_caller_config_alone(self, scheduler):
        config = ChordConfig()
        builder = ChordBuilder(scheduler, config=config)
        builder.set_timeout(3000)
        assert builder.config.timeout_ms == 3000
        assert config.timeout_ms == 2000

    def test_clear_cancels_pending_analysis(self, scheduler, builder, chords):
        builder.on_stable_note("C")
        builder.clear()
        scheduler.advance(1000)
        assert chords == []
        assert builder.active_notes == []
        assert scheduler.pending == 0

    def test_invalid_config(self, scheduler):
        with pytest.raises(ConfigurationError):
            ChordBuilder(scheduler, config=ChordConfig(timeout_ms=0))

    def test_melody_records_and_resolves_to_chord(self, scheduler, builder, chords):
        sequencer = Sequencer(scheduler)
        sequencer.start_recording()

        for when, note in ((0, "C"), (120, "E"), (260, "G")):
            scheduler.advance_to(when)
            builder.on_stable_note(note, timestamp=when)
            sequencer.add_note(note, when, confidence=0.9)

        scheduler.advance(600)
        assert chords == ["C"]

        sequencer.stop_recording()
        events = sequencer.export_sequence().events
        assert [e.note for e in events] == ["C", "E", "G"]
        assert [e.timestamp for e in events] == [0, 120, 260]


class TestDetectionAggregator:
    """Tests for DetectionAggregator."""

    @pytest.fixture
    def aggregator(self, builder):
        return DetectionAggregator(builder)

    def test_alternating_labels_never_reported(self, aggregator):
        reports = []
        aggregator.note_detected.connect(lambda n, c: reports.append(n))
        for i in range(100):
            assert aggregator.on_raw_note("AB"[i % 2], 0.9) is None
        assert reports == []
        assert aggregator.current_note is None

    def test_majority_of_capacity_required(self, aggregator):
        reports = []
        aggregator.note_detected.connect(lambda n, c: reports.append((n, c)))

        for _ in range(4):
            assert aggregator.on_raw_note("C", 0.8) is None
        stable = aggregator.on_raw_note("C", 0.8)

        assert stable.label == "C"
        assert reports == [("C", pytest.approx(0.8))]
        assert aggregator.current_note == "C"
        assert aggregator.active_notes == ["C"]

    def test_unchanged_note_not_repeated(self, aggregator):
        reports = []
        aggregator.note_detected.connect(lambda n, c: reports.append(n))
        for _ in range(10):
            aggregator.on_raw_note("C", 0.8)
        assert reports == ["C"]

    def test_confidence_drift_reported(self, aggregator):
        reports = []
        aggregator.note_detected.connect(lambda n, c: reports.append(round(c, 4)))
        for _ in range(5):
            aggregator.on_raw_note("C", 0.5)
        for _ in range(3):
            aggregator.on_raw_note("C", 1.0)
        # Mean moves 0.5 -> 0.6875, more than the 0.15 threshold
        assert reports == [0.5, 0.6875]

    def test_note_change(self, aggregator):
        reports = []
        aggregator.note_detected.connect(lambda n, c: reports.append(n))
        for _ in range(5):
            aggregator.on_raw_note("C", 0.8)
        for _ in range(5):
            aggregator.on_raw_note("E", 0.8)
        assert reports == ["C", "E"]

    def test_instrument_channel(self, aggregator):
        reports = []
        aggregator.instrument_detected.connect(lambda n, c: reports.append(n))
        for _ in range(5):
            aggregator.on_raw_instrument("Flute", 0.7)
        assert reports == ["Flute"]
        assert aggregator.current_instrument == "Flute"
        assert aggregator.instrument_confidence == pytest.approx(0.7)
        # Instruments are not forwarded to the chord builder
        assert aggregator.active_notes == []

    def test_stable_notes_build_chords(self, scheduler, aggregator, chords):
        for note in ("C", "E", "G"):
            for _ in range(5):
                aggregator.on_raw_note(note, 0.9)
        scheduler.advance(600)
        assert chords == ["C"]
        assert aggregator.current_chord == "C"

    def test_trigger_defaults(self, aggregator):
        results = [aggregator.trigger_note("D") for _ in range(5)]
        assert results[-1].confidence == pytest.approx(0.8)
        results = [aggregator.trigger_instrument("Piano") for _ in range(5)]
        assert results[-1].confidence == pytest.approx(0.7)

    def test_history_size_clamped(self, aggregator):
        aggregator.set_history_size(1)
        assert aggregator.config.history_size == 3
        aggregator.set_history_size(50)
        assert aggregator.config.history_size == 20

    def test_thresholds_clamped(self, aggregator):
        aggregator.set_note_change_threshold(2.0)
        aggregator.set_instrument_change_threshold(-1.0)
        for _ in range(5):
            aggregator.on_raw_note("C", 0.1)
        # Threshold 1.0: no drift can re-report
        for _ in range(8):
            assert aggregator.on_raw_note("C", 1.0) is None

    def test_history_size_leaves_caller_config_alone(self, builder):
        config = AggregatorConfig()
        aggregator = DetectionAggregator(builder, config)
        aggregator.set_history_size(12)
        assert aggregator.config.history_size == 12
        assert config.history_size == 8

    def test_missing_timestamp_uses_scheduler_clock(self, scheduler, aggregator):
        scheduler.advance(750)
        aggregator.on_raw_note("C", 0.9)
        aggregator.on_raw_instrument("Piano", 0.9)
        assert [e.timestamp for e in aggregator._notes.history] == [750]
        assert [e.timestamp for e in aggregator._instruments.history] == [750]

    def test_missing_timestamp_matches_active_notes(self, scheduler, aggregator, builder):
        scheduler.advance(1200)
        for _ in range(5):
            aggregator.on_raw_note("C", 0.9)
        scheduler.advance(1900)
        # Seen at 1200, so still held 1900 ms later
        builder.cleanup()
        assert builder.active_notes == ["C"]
        assert all(e.timestamp == 1200 for e in aggregator._notes.history)

    def test_chord_timeout_forwarded(self, aggregator, builder):
        aggregator.set_chord_timeout(100)
        assert builder.config.timeout_ms == 500

    def test_clear(self, scheduler, aggregator, chords):
        for _ in range(5):
            aggregator.on_raw_note("C", 0.9)
        aggregator.clear()
        scheduler.advance(1000)

        assert aggregator.current_note is None
        assert aggregator.note_confidence == 0.0
        assert aggregator.active_notes == []
        assert chords == []

    def test_without_chord_builder(self):
        aggregator = DetectionAggregator(config=AggregatorConfig(history_size=4, min_entries=3))
        for _ in range(3):
            stable = aggregator.on_raw_note("G", 0.6)
        assert stable.label == "G"
        assert aggregator.current_chord is None
        assert aggregator.active_notes == []
