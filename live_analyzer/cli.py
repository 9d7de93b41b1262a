"""Command-line interface for Live Song Analyzer.

Provides commands for:
- analyze: Stream an audio file through the live detection pipeline
- replay: Play back a recorded sequence, printing note directives
- notes: Show the note frequency table
- info: Show audio file information
"""

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="live-analyzer",
    help="Live note, instrument and chord detection with a recording sequencer",
    rich_markup_mode="markdown",
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def analyze(
    input_file: Path = typer.Argument(..., help="Input audio file (WAV, FLAC, MP3, ...)"),
    record: bool = typer.Option(
        False, "-r", "--record", help="Record stable notes and chords into a sequence"
    ),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Save the recorded sequence as JSON (implies --record)"
    ),
    quantize: Optional[str] = typer.Option(
        None, "-q", "--quantize",
        help="Quantization grid: free/quarter/eighth/sixteenth (default: from config)",
    ),
    tempo: Optional[float] = typer.Option(
        None, "-t", "--tempo", help="Tempo (BPM) used for quantization (default: from config)"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON file with configuration overrides"
    ),
    block_size: int = typer.Option(
        1024, "--block-size", help="Samples per simulated capture buffer"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output"
    ),
):
    """Run the live detection pipeline over an audio file.

    The file is sliced into capture-sized buffers and fed in simulated real
    time, so detections match what a live session would report.

    **Examples:**

        live-analyzer analyze melody.wav

        live-analyzer analyze riff.wav -o riff.json -q sixteenth -t 100
    """
    from .config import AnalyzerConfig
    from .core import VirtualScheduler
    from .input import AudioLoader
    from .output import SequenceExporter
    from .pipeline import LiveAnalyzer

    _setup_logging(verbose)
    record = record or output is not None

    try:
        config = AnalyzerConfig.from_json(config_file) if config_file else AnalyzerConfig()
        loader = AudioLoader(target_sr=config.sample_rate)
        if not json_output:
            console.print(f"[blue]Loading audio:[/blue] {input_file}")
        audio, sr = loader.load(input_file)

        scheduler = VirtualScheduler()
        analyzer = LiveAnalyzer(scheduler, config)
        if tempo is not None or quantize is not None:
            rhythm = analyzer.sequencer.config
            analyzer.sequencer.set_rhythm(
                tempo if tempo is not None else rhythm.tempo,
                quantize if quantize is not None else rhythm.quantization,
                rhythm.swing,
            )
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    detections: List[Dict[str, Any]] = []
    analyzer.note_detected.connect(
        lambda note, conf: detections.append(
            {"time": scheduler.now_ms(), "type": "note", "value": note, "confidence": conf}
        )
    )
    analyzer.instrument_detected.connect(
        lambda name, conf: detections.append(
            {"time": scheduler.now_ms(), "type": "instrument", "value": name, "confidence": conf}
        )
    )
    analyzer.chord_detected.connect(
        lambda chord: detections.append(
            {"time": scheduler.now_ms(), "type": "chord", "value": chord, "confidence": None}
        )
    )

    if record:
        analyzer.start_recording()

    for buffer in loader.iter_buffers(audio, sr, block_size):
        scheduler.advance_to(buffer.timestamp_ms)
        analyzer.process_buffer(buffer)
    # Let the last chord debounce settle
    scheduler.advance_to(1000.0 * len(audio) / sr)
    scheduler.run_until_idle()

    sequence = None
    if record:
        analyzer.stop_recording()
        sequence = analyzer.sequencer.export_sequence()
        if output is not None:
            SequenceExporter().export(sequence, output)

    if json_output:
        result: Dict[str, Any] = {
            "input": str(input_file),
            "duration": loader.get_duration(audio, sr),
            "sample_rate": sr,
            "detections": detections,
        }
        if sequence is not None:
            result["sequence"] = sequence.to_dict()
        if output is not None:
            result["output"] = str(output)
        console.print_json(data=result)
        return

    console.print(f"  Duration: {loader.get_duration(audio, sr):.2f}s, Sample rate: {sr}Hz")
    if detections:
        _show_detections_table(detections)
    else:
        console.print("[yellow]No stable detections[/yellow]")

    if sequence is not None:
        console.print(
            f"[green]Recorded {len(sequence.events)} events[/green] "
            f"(mode: {sequence.mode}, {sequence.total_duration:.0f} ms)"
        )
        if output is not None:
            console.print(f"[blue]Saved sequence to:[/blue] {output}")


@app.command()
def replay(
    sequence_file: Path = typer.Argument(..., help="Sequence JSON written by 'analyze -o'"),
    speed: float = typer.Option(
        1.0, "-s", "--speed", help="Playback speed multiplier"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output"
    ),
):
    """Play back a recorded sequence in real time, printing note directives."""
    from .output import SequenceExporter

    _setup_logging(verbose)

    if speed <= 0:
        console.print(f"[red]Error: speed must be positive, got {speed}[/red]")
        raise typer.Exit(1)

    try:
        sequence = SequenceExporter().load(sequence_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not sequence.events:
        console.print("[yellow]Sequence is empty, nothing to play[/yellow]")
        return

    if speed != 1.0:
        sequence.events = [
            replace(e, timestamp=e.timestamp / speed, duration=int(e.duration / speed))
            for e in sequence.events
        ]

    console.print(
        f"[blue]Replaying[/blue] {len(sequence.events)} events "
        f"(mode: {sequence.mode}, tempo: {sequence.tempo:.0f} BPM, speed: {speed}x)"
    )
    asyncio.run(_replay(sequence))
    console.print("[green]Playback complete![/green]")


async def _replay(sequence) -> None:
    """Drive a Sequencer on the running event loop until playback ends."""
    from .core import AsyncioScheduler
    from .sequencer import Sequencer

    scheduler = AsyncioScheduler()
    sequencer = Sequencer(scheduler)
    sequencer.load(sequence)
    start = scheduler.now_ms()
    finished = asyncio.Event()

    sequencer.play_notes.connect(
        lambda notes, duration: console.print(
            f"  {scheduler.now_ms() - start:8.0f} ms  [green]play[/green] {notes} ({duration} ms)"
        )
    )
    sequencer.stop_notes.connect(
        lambda notes: console.print(
            f"  {scheduler.now_ms() - start:8.0f} ms  [red]stop[/red] {notes}"
        )
    )
    sequencer.playback_stopped.connect(finished.set)

    sequencer.play()
    try:
        await finished.wait()
    finally:
        sequencer.stop()


@app.command()
def notes(
    octave: Optional[int] = typer.Option(
        None, "-o", "--octave", help="Only show this octave"
    ),
):
    """Show the note frequency table used for pitch matching."""
    from .core import NoteFrequencyTable, note_name_to_midi, split_note_name

    table_data = NoteFrequencyTable()
    table = Table(title="Note Frequency Table")
    table.add_column("Note", style="cyan")
    table.add_column("MIDI", style="green")
    table.add_column("Frequency (Hz)", style="yellow", justify="right")

    for name, freq in table_data.items():
        if octave is not None and split_note_name(name)[1] != octave:
            continue
        table.add_row(name, str(note_name_to_midi(name)), f"{freq:.2f}")

    console.print(table)


@app.command()
def info(
    input_file: Path = typer.Argument(..., help="Input audio file"),
):
    """Show information about an audio file."""
    from .analysis import audio_level
    from .input import AudioLoader

    loader = AudioLoader(normalize=False)
    try:
        header = loader.info(input_file)
        audio, sr = loader.load(input_file)
    except (FileNotFoundError, ValueError, RuntimeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[bold]Audio Info:[/bold] {input_file.name}")
    console.print(f"  Format: {header.format} ({header.subtype})")
    console.print(f"  Duration: {header.duration:.2f} seconds")
    console.print(f"  Sample rate: {header.sample_rate} Hz")
    console.print(f"  Channels: {header.channels}")
    console.print(f"  Samples: {header.frames:,}")
    console.print(f"  Level: {audio_level(audio):.1f} / 100")


def _show_detections_table(detections: List[Dict[str, Any]]) -> None:
    """Display detections in a table."""
    table = Table(title="Detections")
    table.add_column("Time (ms)", style="green", justify="right")
    table.add_column("Type", style="blue")
    table.add_column("Value", style="cyan")
    table.add_column("Confidence", style="magenta")

    for row in detections:
        conf = row["confidence"]
        table.add_row(
            f"{row['time']:.0f}",
            row["type"],
            row["value"],
            f"{conf:.2f}" if conf is not None else "-",
        )

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
