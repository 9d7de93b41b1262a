"""Inference layer - Musical understanding of the detection stream.

This layer turns per-frame estimates into musical events:
- Majority-vote stabilization of notes and instruments
- Chord building from recently held notes
"""

from .chords import (
    ChordBuilder,
    ChordConfig,
    CHORD_DICTIONARY,
    CHORD_TEMPLATES,
    build_chord_dictionary,
    jaccard,
)
from .aggregator import DetectionAggregator, AggregatorConfig, DetectionChannel

__all__ = [
    "ChordBuilder",
    "ChordConfig",
    "CHORD_DICTIONARY",
    "CHORD_TEMPLATES",
    "build_chord_dictionary",
    "jaccard",
    "DetectionAggregator",
    "AggregatorConfig",
    "DetectionChannel",
]
