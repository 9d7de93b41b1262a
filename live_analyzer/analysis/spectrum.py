"""Fixed-size magnitude spectrum via an iterative radix-2 FFT.

The transform is a textbook Cooley-Tukey implementation: bit-reversal
permutation of the input followed by log2(N) butterfly stages. Each stage is
vectorized over all butterfly groups with numpy, so a 2048-point transform
costs 11 array passes rather than N log N Python operations.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

import numpy as np
from scipy.signal import get_window

from ..core import SampleBuffer, ConfigurationError
from ..core.constants import DEFAULT_FFT_SIZE, DEFAULT_SR, DEFAULT_WINDOW


@dataclass
class SpectrumConfig:
    """Configuration for the spectral analyzer.

    Attributes:
        fft_size: Transform size, must be a power of two (default: 2048)
        window: Window name understood by ``scipy.signal.get_window``
            (default: "boxcar", i.e. no tapering)
    """

    fft_size: int = DEFAULT_FFT_SIZE
    window: str = DEFAULT_WINDOW


@dataclass(frozen=True)
class Spectrum:
    """Magnitude spectrum up to (excluding) Nyquist.

    ``magnitudes[i]`` is the strength of frequency ``i * sample_rate / fft_size``.
    """

    magnitudes: np.ndarray
    sample_rate: int
    fft_size: int

    def __len__(self) -> int:
        return len(self.magnitudes)

    @property
    def bin_width(self) -> float:
        """Frequency resolution in Hz."""
        return self.sample_rate / self.fft_size

    @property
    def frequencies(self) -> np.ndarray:
        """Center frequency of every bin."""
        return np.arange(len(self.magnitudes)) * self.bin_width

    def bin_to_freq(self, index: int) -> float:
        return index * self.bin_width

    def freq_to_bin(self, freq: float) -> int:
        """Bin index containing ``freq`` (floor)."""
        return int(np.floor(freq / self.bin_width))

    def peak(self, start: int, stop: int) -> Tuple[int, float]:
        """
        Strongest bin in ``[start, stop)``, clipped to the spectrum.

        Returns:
            Tuple of (bin index, magnitude); (start, 0.0) for an empty range
        """
        start = max(int(start), 0)
        stop = min(int(stop), len(self.magnitudes))
        if stop <= start:
            return start, 0.0
        region = self.magnitudes[start:stop]
        idx = int(np.argmax(region))
        return start + idx, float(region[idx])


def _is_power_of_two(n: int) -> bool:
    return n >= 2 and (n & (n - 1)) == 0


def bit_reverse_indices(n: int) -> np.ndarray:
    """Bit-reversal permutation of ``range(n)`` for a power-of-two ``n``."""
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.int64)
    for _ in range(bits):
        rev = (rev << 1) | (idx & 1)
        idx = idx >> 1
    return rev


class SpectralAnalyzer:
    """Windowed fixed-size FFT producing a magnitude spectrum."""

    def __init__(
        self,
        fft_size: int = DEFAULT_FFT_SIZE,
        sample_rate: int = DEFAULT_SR,
        window: str = DEFAULT_WINDOW,
        config: Optional[SpectrumConfig] = None,
    ):
        """
        Initialize SpectralAnalyzer.

        Args:
            fft_size: Transform size (power of two)
            sample_rate: Rate assumed for raw arrays passed to :meth:`transform`
            window: Analysis window name
            config: Optional SpectrumConfig overriding fft_size and window

        Raises:
            ConfigurationError: If fft_size is not a power of two or the
                sample rate is not positive
        """
        self.config = config or SpectrumConfig(fft_size=fft_size, window=window)
        self.fft_size = int(self.config.fft_size)
        self.sample_rate = int(sample_rate)

        if not _is_power_of_two(self.fft_size):
            raise ConfigurationError(
                f"fft_size must be a power of two >= 2, got {self.config.fft_size}"
            )
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {sample_rate}")

        try:
            self.window = get_window(self.config.window, self.fft_size, fftbins=True)
        except ValueError as e:
            raise ConfigurationError(f"Unknown window '{self.config.window}': {e}") from e

        self._reverse = bit_reverse_indices(self.fft_size)
        self._twiddles: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}
        size = 2
        while size <= self.fft_size:
            angles = 2 * np.pi * np.arange(size // 2) / size
            self._twiddles[size] = (np.cos(angles), -np.sin(angles))
            size *= 2

        # Scratch input, fully rewritten on every call
        self._scratch = np.zeros(self.fft_size, dtype=np.float64)

    def transform(self, buffer: Union[SampleBuffer, np.ndarray]) -> Spectrum:
        """
        Compute the magnitude spectrum of one buffer.

        Shorter inputs are zero-padded and longer inputs truncated to
        ``fft_size``.

        Args:
            buffer: SampleBuffer or raw 1-D sample array

        Returns:
            Spectrum with ``fft_size // 2`` bins
        """
        if isinstance(buffer, SampleBuffer):
            samples = buffer.samples
            sample_rate = buffer.sample_rate
        else:
            samples = np.asarray(buffer, dtype=np.float64).reshape(-1)
            sample_rate = self.sample_rate

        real, imag = self._fft(samples)
        half = self.fft_size // 2
        magnitudes = np.sqrt(real[:half] ** 2 + imag[:half] ** 2)
        magnitudes.flags.writeable = False
        return Spectrum(magnitudes=magnitudes, sample_rate=sample_rate, fft_size=self.fft_size)

    def _fft(self, samples: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Radix-2 decimation-in-time FFT of a real input. Returns (real, imag)."""
        n = self.fft_size
        count = min(len(samples), n)

        scratch = self._scratch
        scratch[:] = 0.0
        scratch[:count] = samples[:count] * self.window[:count]

        real = scratch[self._reverse]
        imag = np.zeros(n, dtype=np.float64)

        size = 2
        while size <= n:
            half = size // 2
            w_re, w_im = self._twiddles[size]
            re = real.reshape(-1, size)
            im = imag.reshape(-1, size)

            u_re = re[:, :half].copy()
            u_im = im[:, :half].copy()
            v_re = re[:, half:]
            v_im = im[:, half:]

            t_re = v_re * w_re - v_im * w_im
            t_im = v_re * w_im + v_im * w_re

            re[:, :half] = u_re + t_re
            im[:, :half] = u_im + t_im
            re[:, half:] = u_re - t_re
            im[:, half:] = u_im - t_im
            size *= 2

        return real, imag
