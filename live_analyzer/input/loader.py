"""Audio loading and offline streaming utilities."""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import librosa
import numpy as np
import soundfile as sf

from ..core import SampleBuffer
from ..core.constants import DEFAULT_SR


@dataclass(frozen=True)
class AudioInfo:
    """Header information of an audio file."""

    path: str
    sample_rate: int
    channels: int
    frames: int
    format: str
    subtype: str

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.frames / self.sample_rate if self.sample_rate else 0.0


class AudioLoader:
    """Loads audio files and slices them into capture-sized buffers."""

    SUPPORTED_FORMATS = {".wav", ".mp3", ".flac", ".ogg", ".m4a"}

    def __init__(
        self,
        target_sr: int = DEFAULT_SR,
        mono: bool = True,
        normalize: bool = True,
    ):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Target sample rate for resampling
            mono: Convert to mono if True
            normalize: Normalize audio amplitude if True
        """
        self.target_sr = target_sr
        self.mono = mono
        self.normalize = normalize

    def _check_path(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")
        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {sorted(self.SUPPORTED_FORMATS)}"
            )
        return path

    def load(self, path: Union[str, Path]) -> Tuple[np.ndarray, int]:
        """
        Load audio file and preprocess.

        Args:
            path: Path to audio file

        Returns:
            Tuple of (audio array, sample rate)

        Raises:
            ValueError: If file format not supported
            FileNotFoundError: If file doesn't exist
        """
        path = self._check_path(path)

        # librosa handles resampling and downmixing
        audio, sr = librosa.load(str(path), sr=self.target_sr, mono=self.mono)

        if self.normalize:
            audio = self._normalize(audio)

        return audio, sr

    def info(self, path: Union[str, Path]) -> AudioInfo:
        """Read the file header without decoding the audio."""
        path = self._check_path(path)
        header = sf.info(str(path))
        return AudioInfo(
            path=str(path),
            sample_rate=header.samplerate,
            channels=header.channels,
            frames=header.frames,
            format=header.format,
            subtype=header.subtype,
        )

    def _normalize(self, audio: np.ndarray) -> np.ndarray:
        """Normalize audio to [-1, 1] range using peak normalization."""
        peak = np.abs(audio).max() if audio.size else 0.0
        if peak > 0:
            audio = audio / peak
        return audio

    def iter_buffers(
        self,
        audio: np.ndarray,
        sr: int,
        block_size: int = 1024,
        start_ns: int = 0,
    ) -> Iterator[SampleBuffer]:
        """
        Slice audio into consecutive buffers, as a capture device would deliver them.

        Each buffer is stamped with the capture time of its first sample
        relative to ``start_ns``. The final partial block is included.

        Args:
            audio: Mono audio array
            sr: Sample rate
            block_size: Samples per buffer
            start_ns: Timestamp of the first sample in nanoseconds

        Yields:
            SampleBuffer per block
        """
        if block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        for start in range(0, len(audio), block_size):
            timestamp_ns = start_ns + int(round(start * 1e9 / sr))
            yield SampleBuffer(audio[start:start + block_size], sr, timestamp_ns)

    def stream(
        self,
        path: Union[str, Path],
        block_size: int = 1024,
    ) -> Iterator[SampleBuffer]:
        """Load a file and yield it as timestamped buffers."""
        audio, sr = self.load(path)
        yield from self.iter_buffers(audio, sr, block_size)

    def get_duration(self, audio: np.ndarray, sr: Optional[int] = None) -> float:
        """Get duration in seconds."""
        sr = sr or self.target_sr
        return len(audio) / sr
