"""Top-level configuration for the live analysis pipeline."""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

from .analysis import PitchConfig, SpectrumConfig, TimbreConfig
from .core import ConfigurationError
from .core.constants import DEFAULT_SR, SNAPSHOT_INTERVAL_MS
from .inference import AggregatorConfig, ChordConfig
from .sequencer import SequencerConfig


@dataclass
class AnalyzerConfig:
    """Configuration for every pipeline component.

    Attributes:
        sample_rate: Expected capture sample rate in Hz (default: 44100)
        snapshot_interval_ms: Period of the analysis snapshot (default: 1000)
        spectrum: FFT size and window
        pitch: Pitch band, tolerance and stability vote
        timbre: Profile score threshold and stability vote
        chord: Note expiry, quiescence and match threshold
        aggregator: Detection history and change thresholds
        sequencer: Tempo, quantization and duration rules
    """

    sample_rate: int = DEFAULT_SR
    snapshot_interval_ms: float = SNAPSHOT_INTERVAL_MS
    spectrum: SpectrumConfig = field(default_factory=SpectrumConfig)
    pitch: PitchConfig = field(default_factory=PitchConfig)
    timbre: TimbreConfig = field(default_factory=TimbreConfig)
    chord: ChordConfig = field(default_factory=ChordConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    sequencer: SequencerConfig = field(default_factory=SequencerConfig)

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.snapshot_interval_ms <= 0:
            raise ConfigurationError(
                f"snapshot_interval_ms must be positive, got {self.snapshot_interval_ms}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyzerConfig":
        """
        Build a config from a (possibly partial) nested dict.

        Args:
            data: Overrides, e.g. ``{"pitch": {"fmin": 60}, "sample_rate": 48000}``

        Returns:
            AnalyzerConfig with defaults for everything not given

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a JSON object")

        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            section = _SECTIONS.get(name)
            kwargs[name] = _build_section(name, section, value) if section else value

        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "AnalyzerConfig":
        """Load overrides from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid config JSON in {path}: {e}") from e
        return cls.from_dict(data)


_SECTIONS = {
    "spectrum": SpectrumConfig,
    "pitch": PitchConfig,
    "timbre": TimbreConfig,
    "chord": ChordConfig,
    "aggregator": AggregatorConfig,
    "sequencer": SequencerConfig,
}


def _build_section(name: str, section: type, value: Any) -> Any:
    if not isinstance(value, dict):
        raise ConfigurationError(f"Section '{name}' must be an object")
    allowed = {f.name for f in fields(section)}
    unknown = set(value) - allowed
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{name}': {sorted(unknown)}")
    return section(**value)
