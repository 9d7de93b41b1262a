"""Exception types raised by Live Song Analyzer.

Per-cycle processing never raises: quiet input, unstable detections and
unknown labels degrade to "no event" or a default value. These exceptions
are reserved for construction-time configuration and for malformed
documents handed to the loaders.
"""


class AnalyzerError(Exception):
    """Base class for all package errors."""


class ConfigurationError(AnalyzerError, ValueError):
    """Invalid component configuration (e.g. non power-of-two FFT size)."""


class SequenceFormatError(AnalyzerError, ValueError):
    """An exported sequence document could not be parsed."""
