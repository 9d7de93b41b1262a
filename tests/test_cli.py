"""Tests for the command-line interface."""

import json

import pytest
import soundfile as sf
from typer.testing import CliRunner

from live_analyzer.cli import app
from live_analyzer.output import SequenceExporter

from .audio import sine_wave

runner = CliRunner()


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "tone.wav"
    sf.write(str(path), 0.5 * sine_wave(440.0, 44100), 44100)
    return path


class TestNotesCommand:
    """Tests for 'notes'."""

    def test_octave_filter(self):
        result = runner.invoke(app, ["notes", "--octave", "4"])
        assert result.exit_code == 0
        assert "A4" in result.output
        assert "440.00" in result.output
        assert "A5" not in result.output


class TestInfoCommand:
    """Tests for 'info'."""

    def test_info(self, wav_file):
        result = runner.invoke(app, ["info", str(wav_file)])
        assert result.exit_code == 0
        assert "44100 Hz" in result.output
        assert "1.00 seconds" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["info", str(tmp_path / "missing.wav")])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestAnalyzeCommand:
    """Tests for 'analyze'."""

    def test_records_sequence(self, wav_file, tmp_path):
        output = tmp_path / "take.json"
        result = runner.invoke(app, ["analyze", str(wav_file), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Recorded" in result.output
        sequence = SequenceExporter().load(output)
        notes = [e.note for e in sequence.events if e.kind == "note"]
        assert notes == ["A"]

    def test_quantize_option(self, wav_file, tmp_path):
        output = tmp_path / "take.json"
        result = runner.invoke(
            app, ["analyze", str(wav_file), "-o", str(output), "-q", "quarter", "-t", "60"]
        )
        assert result.exit_code == 0, result.output
        sequence = SequenceExporter().load(output)
        assert all(e.timestamp % 1000 == 0 for e in sequence.events)

    def test_bad_quantize_option(self, wav_file):
        result = runner.invoke(app, ["analyze", str(wav_file), "-q", "triplet"])
        assert result.exit_code == 1

    def test_config_file(self, wav_file, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"colour": "blue"}))
        result = runner.invoke(app, ["analyze", str(wav_file), "-c", str(config)])
        assert result.exit_code == 1
        assert "Unknown configuration keys" in result.output

    def test_rhythm_from_config_file(self, wav_file, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"sequencer": {"tempo": 90, "quantization": "quarter"}}))
        output = tmp_path / "take.json"
        result = runner.invoke(
            app, ["analyze", str(wav_file), "-c", str(config), "-o", str(output)]
        )

        assert result.exit_code == 0, result.output
        sequence = SequenceExporter().load(output)
        assert sequence.tempo == 90
        beat = 60000 / 90
        assert sequence.events
        for event in sequence.events:
            assert event.timestamp == pytest.approx(round(event.timestamp / beat) * beat)

    def test_tempo_option_keeps_config_grid(self, wav_file, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"sequencer": {"tempo": 90, "quantization": "quarter"}}))
        output = tmp_path / "take.json"
        result = runner.invoke(
            app, ["analyze", str(wav_file), "-c", str(config), "-o", str(output), "-t", "60"]
        )

        assert result.exit_code == 0, result.output
        sequence = SequenceExporter().load(output)
        assert sequence.tempo == 60
        assert all(e.timestamp % 1000 == 0 for e in sequence.events)

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["analyze", str(tmp_path / "missing.wav")])
        assert result.exit_code == 1


class TestReplayCommand:
    """Tests for 'replay'."""

    def test_replay(self, tmp_path):
        path = tmp_path / "take.json"
        path.write_text(json.dumps({
            "events": [
                {"type": "note", "note": "C", "timestamp": 0, "duration": 100, "velocity": 100},
                {"type": "chord", "chord": "Am", "notes": [69, 72, 76],
                 "timestamp": 100, "duration": 100, "velocity": 100},
            ],
            "mode": "mixed",
            "tempo": 120,
        }))
        result = runner.invoke(app, ["replay", str(path), "--speed", "10"])

        assert result.exit_code == 0, result.output
        assert result.output.count("play") >= 2
        assert "[69, 72, 76]" in result.output
        assert "Playback complete" in result.output

    def test_empty_sequence(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"events": []}))
        result = runner.invoke(app, ["replay", str(path)])
        assert result.exit_code == 0
        assert "empty" in result.output

    def test_malformed_sequence(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("not json")
        result = runner.invoke(app, ["replay", str(path)])
        assert result.exit_code == 1

    def test_bad_speed(self, tmp_path):
        result = runner.invoke(app, ["replay", str(tmp_path / "x.json"), "--speed", "0"])
        assert result.exit_code == 1
