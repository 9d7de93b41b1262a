"""Input layer - Audio files as streams of capture buffers."""

from .loader import AudioLoader, AudioInfo

__all__ = [
    "AudioLoader",
    "AudioInfo",
]
