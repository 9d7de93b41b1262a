"""Event quantization - Snap event onsets to a rhythmic grid."""

import math
from dataclasses import replace
from typing import List, Sequence

from ..core import ConfigurationError, SequenceEvent
from ..core.constants import DEFAULT_TEMPO


class Quantizer:
    """Quantize event timestamps (milliseconds) to a rhythmic grid."""

    # Grid divisions per beat for each named unit
    UNITS = {
        "quarter": 1,
        "eighth": 2,
        "sixteenth": 4,
    }

    def __init__(
        self,
        tempo: float = DEFAULT_TEMPO,
        unit: str = "sixteenth",
    ):
        """
        Initialize Quantizer.

        Args:
            tempo: Tempo in BPM
            unit: Grid unit - "quarter", "eighth" or "sixteenth"

        Raises:
            ConfigurationError: If the tempo is not positive or the unit is unknown
        """
        if tempo <= 0:
            raise ConfigurationError(f"Tempo must be positive, got {tempo}")
        if unit not in self.UNITS:
            raise ConfigurationError(
                f"Unknown quantization unit '{unit}'. Supported: {sorted(self.UNITS)}"
            )
        self.tempo = tempo
        self.unit = unit

    @property
    def beat_duration(self) -> float:
        """Duration of one beat in milliseconds."""
        return 60000.0 / self.tempo

    @property
    def grid_duration(self) -> float:
        """Duration of one grid unit in milliseconds."""
        return self.beat_duration / self.UNITS[self.unit]

    def quantize(self, events: Sequence[SequenceEvent]) -> List[SequenceEvent]:
        """
        Snap event onsets to the grid. Durations are left unchanged.

        Args:
            events: Events to quantize (not modified)

        Returns:
            New list of quantized events, in the input order
        """
        return [replace(event, timestamp=self.snap(event.timestamp)) for event in events]

    def snap(self, time_ms: float) -> float:
        """Snap a time to the nearest grid position (halves round up)."""
        grid = self.grid_duration
        return math.floor(time_ms / grid + 0.5) * grid
