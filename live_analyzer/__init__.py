"""Live Song Analyzer - Real-time note, instrument and chord detection.

Architecture Layers:
    1. core/       - Note table, events, scheduler, signals, detection history
    2. input/      - Audio files as streams of capture buffers
    3. analysis/   - Per-frame signal analysis (spectrum, pitch, timbre, level)
    4. inference/  - Stabilized detections and chord building
    5. processing/ - Event post-processing (quantize)
    6. sequencer/  - Recording and timed playback
    7. output/     - Sequence export (JSON)

``LiveAnalyzer`` (pipeline.py) wires the layers together.
"""

__version__ = "0.3.0"

# Core types
from .core import (
    NoteFrequencyTable,
    SampleBuffer,
    NoteEvent,
    ChordEvent,
    Scheduler,
    AsyncioScheduler,
    VirtualScheduler,
    Signal,
    AnalyzerError,
    ConfigurationError,
    SequenceFormatError,
)

# Input layer
from .input import AudioLoader

# Analysis layer
from .analysis import SpectralAnalyzer, PitchEstimator, TimbreClassifier

# Inference layer
from .inference import ChordBuilder, DetectionAggregator

# Processing layer
from .processing import Quantizer

# Sequencer layer
from .sequencer import Sequencer, SequenceExport

# Output layer
from .output import SequenceExporter

# Pipeline
from .config import AnalyzerConfig
from .pipeline import LiveAnalyzer, AnalysisSnapshot

__all__ = [
    # Core
    "NoteFrequencyTable",
    "SampleBuffer",
    "NoteEvent",
    "ChordEvent",
    "Scheduler",
    "AsyncioScheduler",
    "VirtualScheduler",
    "Signal",
    "AnalyzerError",
    "ConfigurationError",
    "SequenceFormatError",
    # Input
    "AudioLoader",
    # Analysis
    "SpectralAnalyzer",
    "PitchEstimator",
    "TimbreClassifier",
    # Inference
    "ChordBuilder",
    "DetectionAggregator",
    # Processing
    "Quantizer",
    # Sequencer
    "Sequencer",
    "SequenceExport",
    # Output
    "SequenceExporter",
    # Pipeline
    "AnalyzerConfig",
    "LiveAnalyzer",
    "AnalysisSnapshot",
]
