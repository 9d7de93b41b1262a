"""Output layer - Persist recorded sequences.

This layer handles exporting recorded sequences to:
- JSON files (loadable back for replay)
"""

from .export import SequenceExporter

__all__ = [
    "SequenceExporter",
]
