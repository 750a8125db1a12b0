"""Latest-request-wins envelope loading for presentation layers."""

from __future__ import annotations

import threading
from typing import Any, Callable

import numpy as np

from .analyzer import AnalysisHandle, WaveformAnalyzer
from .log import dbg


def samples_for_width(width: float, scale: float = 1.0) -> int:
    """Output sample count for a drawing *width* at display *scale*."""
    return int(width * scale)


class WaveformLoader:
    """Keeps one envelope in sync with the most recent request.

    Each :meth:`load` cancels whatever is still in flight, clears
    :attr:`samples` (an empty array means "loading") and starts a new
    analysis.  Results of superseded requests are dropped.  Failures are
    logged and leave the envelope empty instead of raising.
    """

    def __init__(self, analyzer: WaveformAnalyzer,
                 on_loaded: Callable[[np.ndarray], Any] | None = None):
        self.analyzer = analyzer
        self.on_loaded = on_loaded
        self.samples: np.ndarray = np.zeros(0, dtype=np.float32)
        self.error: BaseException | None = None
        self._handle: AnalysisHandle | None = None
        self._generation = 0
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()

    @property
    def is_loading(self) -> bool:
        return not self._idle.is_set()

    def load(self, locator: str, width: float, scale: float = 1.0) -> AnalysisHandle | None:
        count = samples_for_width(width, scale)
        with self._lock:
            self._generation += 1
            generation = self._generation
            previous, self._handle = self._handle, None
            self.samples = np.zeros(0, dtype=np.float32)
            self.error = None
            if count > 0:
                self._idle.clear()
                handle = self.analyzer.submit(locator, count)
                self._handle = handle
            else:
                self._idle.set()

        # A not-yet-started future runs its done callbacks inside cancel()
        if previous is not None:
            previous.cancel()
        if count <= 0:
            dbg(f"nothing to load for width={width} scale={scale}")
            return None

        handle.add_done_callback(lambda h: self._on_done(h, generation))
        return handle

    def _on_done(self, handle: AnalysisHandle, generation: int) -> None:
        err = handle.exception()
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None
            if err is not None:
                dbg(f"waveform loading error: {err}")
                self.error = err
                self._idle.set()
                return
            samples = handle.result().amplitudes
            self.samples = samples
            self._idle.set()
        if self.on_loaded:
            self.on_loaded(samples)

    def cancel(self) -> None:
        """Abort the current request; the envelope stays empty."""
        with self._lock:
            self._generation += 1
            previous, self._handle = self._handle, None
            self._idle.set()
        if previous is not None:
            previous.cancel()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until no request is in flight."""
        return self._idle.wait(timeout)
