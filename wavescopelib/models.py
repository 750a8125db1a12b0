from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import numpy as np

SAMPLE_WIDTH = 2          # bytes per int16 sample
INT16_FULL_SCALE = 32767.0


class ReaderStatus(Enum):
    UNKNOWN = "unknown"
    READING = "reading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunState(Enum):
    """Lifecycle of a single pipeline invocation."""
    IDLE = "idle"
    SLOT_REQUESTED = "slot_requested"
    READING = "reading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SLOT_RELEASED = "slot_released"


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AudioTrackMetadata:
    channels: int
    samplerate: float
    duration_sec: float

    @property
    def total_samples(self) -> int:
        """Interleaved sample count (frames * channels)."""
        return int(round(self.samplerate * self.duration_sec)) * self.channels


@dataclass
class SpectralFrame:
    """Band energies of one non-overlapping FFT window.

    Attributes:
        window_size:   Number of interleaved samples in the window.
        samplerate:    Sample rate used to derive the Nyquist frequency.
        band_energies: Mean squared magnitude per linear band, low → high.
    """
    window_size: int
    samplerate: float
    band_energies: np.ndarray

    @property
    def nyquist(self) -> float:
        return self.samplerate / 2.0

    def band_edges(self) -> np.ndarray:
        """Frequency edges (Hz) of the bands, length ``len(bands) + 1``."""
        return np.linspace(0.0, self.nyquist, len(self.band_energies) + 1)


@dataclass
class WaveformAnalysis:
    """Outcome of one pipeline run.

    ``complete`` is False when decoding failed part-way and the
    amplitudes are a best-effort result padded with silence.
    """
    amplitudes: np.ndarray
    spectra: list[SpectralFrame] | None = None
    complete: bool = True
    reader_status: ReaderStatus = ReaderStatus.COMPLETED
    metadata: AudioTrackMetadata | None = None
    read_cycles: int = 0


@dataclass
class AnalysisJob:
    job_id: str
    locator: str
    count: int
    fft_bands: int | None = None
    status: JobStatus = JobStatus.PENDING
    priority: int = 0
    result: WaveformAnalysis | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
