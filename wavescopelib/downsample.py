"""Decibel-domain amplitude envelope, downsampled by block averaging."""

from __future__ import annotations

import numpy as np

from .buffer import SampleBuffer
from .errors import InvalidRequest
from .models import INT16_FULL_SCALE

DEFAULT_NOISE_FLOOR_DB = -50.0
DEFAULT_BATCH_PIXELS = 10


# ---------------------------------------------------------------------------
# Stateless DSP helpers
# ---------------------------------------------------------------------------

def amplitude_db(pcm: np.ndarray,
                 noise_floor_db: float = DEFAULT_NOISE_FLOOR_DB) -> np.ndarray:
    """Rectified int16 samples → dB re. full scale, clipped to [floor, 0]."""
    magnitude = np.abs(pcm.astype(np.float32))
    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(magnitude / np.float32(INT16_FULL_SCALE))
    return np.clip(db, noise_floor_db, 0.0).astype(np.float32)


def box_downsample(values: np.ndarray, width: int) -> np.ndarray:
    """Average non-overlapping groups of *width* values.

    A trailing partial group is ignored.
    """
    n_out = len(values) // width
    if n_out == 0:
        return np.zeros(0, dtype=np.float32)
    groups = values[:n_out * width].reshape(n_out, width)
    return groups.mean(axis=1, dtype=np.float64).astype(np.float32)


def normalize(values: np.ndarray,
              noise_floor_db: float = DEFAULT_NOISE_FLOOR_DB) -> np.ndarray:
    """Divide by the noise floor: silence → 1.0, full scale → 0.0."""
    return (np.asarray(values, dtype=np.float32)
            / np.float32(noise_floor_db)).astype(np.float32)


# ---------------------------------------------------------------------------
# Streaming engine
# ---------------------------------------------------------------------------

class DownsamplingEngine:
    """Turns a stream of PCM blocks into exactly ``target_count`` dB values.

    Input is buffered until enough samples for ``batch_pixels`` output
    values are available (or the caller flushes), then every whole group
    of ``samples_per_pixel`` samples is converted in one go and removed
    from the buffer.
    """

    def __init__(self, total_samples: int, target_count: int, *,
                 noise_floor_db: float = DEFAULT_NOISE_FLOOR_DB,
                 batch_pixels: int = DEFAULT_BATCH_PIXELS):
        if target_count <= 0:
            raise InvalidRequest(
                f"target sample count must be positive, got {target_count}")
        self.target_count = int(target_count)
        self.noise_floor_db = float(noise_floor_db)
        self.samples_per_pixel = max(1, int(total_samples) // self.target_count)
        self.batch_threshold = self.samples_per_pixel * max(1, batch_pixels)
        self._buffer = SampleBuffer()
        self._chunks: list[np.ndarray] = []
        self._produced = 0
        self.samples_consumed = 0
        self.padded_samples = 0

    @property
    def produced(self) -> int:
        return self._produced

    @property
    def is_full(self) -> bool:
        return self._produced >= self.target_count

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, block: bytes, flush: bool = False) -> int:
        """Buffer *block*; convert when the batch threshold is reached.

        *flush* forces conversion regardless of the threshold (the source
        has stopped delivering).  Returns the number of new values.
        Input arriving after the target is met is discarded.
        """
        if self.is_full:
            return 0
        self._buffer.append(block)
        if flush or len(self._buffer) >= self.batch_threshold:
            return self._process_available()
        return 0

    def flush(self) -> int:
        """Convert every whole group still buffered, without padding."""
        if self.is_full:
            return 0
        return self._process_available()

    def _process_available(self) -> int:
        spp = self.samples_per_pixel
        n = (len(self._buffer) // spp) * spp
        if n == 0:
            return 0
        pcm = self._buffer.peek(n)
        out = box_downsample(amplitude_db(pcm, self.noise_floor_db), spp)
        self._buffer.consume(n)
        self.samples_consumed += n
        self._chunks.append(out)
        self._produced += len(out)
        return len(out)

    def finish(self) -> np.ndarray:
        """Flush leftovers, pad any shortfall with silence, truncate.

        Returns the dB-domain envelope of length ``target_count``.
        """
        if not self.is_full:
            self._process_available()
        if not self.is_full:
            deficit = self.target_count - self._produced
            padding = deficit * self.samples_per_pixel - len(self._buffer)
            if padding > 0:
                self._buffer.pad(padding)
                self.padded_samples += padding
            self._process_available()
        self._buffer.clear()
        if self._chunks:
            values = np.concatenate(self._chunks)
        else:
            values = np.zeros(0, dtype=np.float32)
        return values[:self.target_count]
