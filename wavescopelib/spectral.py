"""Short-time spectrum in linear frequency bands, one frame per window."""

from __future__ import annotations

import numpy as np
from scipy.signal import get_window

from .buffer import SampleBuffer
from .errors import InvalidRequest
from .models import SpectralFrame

DEFAULT_SAMPLES_PER_FFT = 4096  # ~93 ms at 44.1 kHz, power of two


def linear_band_slices(n_bins: int, bands: int) -> list[slice]:
    """Split ``n_bins`` spectrum bins (DC … Nyquist) into *bands* ranges.

    Every band covers at least one bin; neighbouring bands may share a
    bin when there are more bands than bins.
    """
    edges = np.round(np.linspace(0, n_bins - 1, bands + 1)).astype(np.intp)
    slices = []
    for i in range(bands):
        lo = int(edges[i])
        hi = n_bins if i == bands - 1 else int(edges[i + 1])
        if hi <= lo:
            hi = min(lo + 1, n_bins)
            lo = hi - 1
        slices.append(slice(lo, hi))
    return slices


def band_energies(windows: np.ndarray, window_fn: np.ndarray,
                  slices: list[slice]) -> np.ndarray:
    """Hann-windowed power spectrum of each row, averaged per band.

    *windows* has shape (n_frames, window_size); the result has shape
    (n_frames, len(slices)).
    """
    spectrum = np.fft.rfft(windows * window_fn, axis=1)
    power = spectrum.real ** 2 + spectrum.imag ** 2
    out = np.empty((windows.shape[0], len(slices)), dtype=np.float32)
    for i, sl in enumerate(slices):
        out[:, i] = power[:, sl].mean(axis=1)
    return out


class SpectralEngine:
    """Frames the PCM stream into non-overlapping FFT windows.

    Owns a rolling buffer separate from the amplitude engine's, since
    the window size has nothing to do with the downsampling factor.
    """

    def __init__(self, bands: int, samplerate: float,
                 samples_per_fft: int = DEFAULT_SAMPLES_PER_FFT):
        if bands is None or bands <= 0:
            raise InvalidRequest(f"band count must be positive, got {bands}")
        if samples_per_fft < 2:
            raise InvalidRequest(
                f"FFT window must hold at least 2 samples, got {samples_per_fft}")
        self.bands = int(bands)
        self.samplerate = float(samplerate)
        self.samples_per_fft = int(samples_per_fft)
        self._window_fn = get_window("hann", self.samples_per_fft).astype(np.float64)
        self._slices = linear_band_slices(self.samples_per_fft // 2 + 1, self.bands)
        self._buffer = SampleBuffer()
        self.frames: list[SpectralFrame] = []

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, block: bytes) -> int:
        """Buffer *block* and emit a frame for every complete window."""
        self._buffer.append(block)
        n_windows = len(self._buffer) // self.samples_per_fft
        if n_windows == 0:
            return 0
        n = n_windows * self.samples_per_fft
        pcm = self._buffer.peek(n).astype(np.float64)
        energies = band_energies(
            pcm.reshape(n_windows, self.samples_per_fft),
            self._window_fn, self._slices,
        )
        self._buffer.consume(n)
        for row in energies:
            self.frames.append(SpectralFrame(
                window_size=self.samples_per_fft,
                samplerate=self.samplerate,
                band_energies=row.copy(),
            ))
        return n_windows
