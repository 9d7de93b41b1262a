"""Processing layer - Event-level post-processing.

This layer refines recorded events:
- Quantization (snap onsets to a tempo grid)
"""

from .quantize import Quantizer

__all__ = [
    "Quantizer",
]
