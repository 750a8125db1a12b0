from __future__ import annotations

import numpy as np

from .models import SAMPLE_WIDTH

_PCM_DTYPE = np.dtype("<i2")  # 16-bit signed little-endian


class SampleBuffer:
    """Growable byte queue of interleaved int16 PCM.

    The stored length is always a whole number of samples: a stray odd
    byte at the end of a block is held back until the next block
    supplies its partner.  Samples are only ever removed from the front,
    in whole-sample units, via :meth:`consume`.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._tail = b""

    def __len__(self) -> int:
        """Number of whole samples buffered."""
        return len(self._data) // SAMPLE_WIDTH

    @property
    def nbytes(self) -> int:
        return len(self._data)

    def append(self, block: bytes | bytearray | memoryview) -> None:
        if not block:
            return
        raw = self._tail + bytes(block)
        usable = len(raw) - (len(raw) % SAMPLE_WIDTH)
        self._data += raw[:usable]
        self._tail = raw[usable:]

    def pad(self, n_samples: int) -> None:
        """Append *n_samples* zero samples (digital silence)."""
        if n_samples > 0:
            self._data += bytes(n_samples * SAMPLE_WIDTH)

    def peek(self, n_samples: int | None = None) -> np.ndarray:
        """Copy the first *n_samples* (default: all) as an int16 array."""
        available = len(self)
        n = available if n_samples is None else min(n_samples, available)
        if n <= 0:
            return np.zeros(0, dtype=np.int16)
        raw = bytes(self._data[:n * SAMPLE_WIDTH])
        return np.frombuffer(raw, dtype=_PCM_DTYPE).astype(np.int16)

    def consume(self, n_samples: int) -> None:
        """Drop the first *n_samples* samples."""
        if n_samples <= 0:
            return
        n_bytes = min(n_samples * SAMPLE_WIDTH, len(self._data))
        del self._data[:n_bytes]

    def clear(self) -> None:
        self._data.clear()
        self._tail = b""
