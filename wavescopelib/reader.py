"""PCM reader adapters.

Every reader hands out raw interleaved 16-bit signed little-endian PCM,
block by block, together with the track's metadata.  Decoding itself is
delegated: :class:`SoundFileReader` wraps libsndfile through
``soundfile``; :class:`ArrayReader` serves audio that is already in
memory.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod

import numpy as np
import soundfile as sf

from .errors import NoAudioTrack, OpenFailed
from .log import dbg
from .models import AudioTrackMetadata, ReaderStatus, INT16_FULL_SCALE

DEFAULT_BLOCK_FRAMES = 8192

AUDIO_EXTENSIONS = (".wav", ".wave", ".aif", ".aiff", ".flac", ".ogg", ".oga", ".mp3")


def to_pcm16(data: np.ndarray) -> np.ndarray:
    """Coerce audio to int16.  Float input is treated as [-1.0, 1.0]."""
    arr = np.asarray(data)
    if arr.dtype == np.int16:
        return arr
    if np.issubdtype(arr.dtype, np.floating):
        scaled = np.clip(arr, -1.0, 1.0) * INT16_FULL_SCALE
        return np.round(scaled).astype(np.int16)
    if np.issubdtype(arr.dtype, np.integer):
        return np.clip(arr, -32768, 32767).astype(np.int16)
    raise TypeError(f"unsupported sample type {arr.dtype}")


class PCMReader(ABC):
    """Abstract source of interleaved int16 PCM blocks."""

    def __init__(self) -> None:
        self._status = ReaderStatus.UNKNOWN
        self.error: BaseException | None = None

    @property
    def status(self) -> ReaderStatus:
        return self._status

    @abstractmethod
    def load_metadata(self) -> AudioTrackMetadata:
        ...

    def start(self) -> None:
        """Begin delivering blocks from the start of the track."""
        self._status = ReaderStatus.READING

    @abstractmethod
    def next_block(self) -> bytes | None:
        """Next PCM block, or None once the reader stopped delivering."""
        ...

    def cancel(self) -> None:
        if self._status in (ReaderStatus.UNKNOWN, ReaderStatus.READING):
            self._status = ReaderStatus.CANCELLED

    def fail(self, cause: BaseException) -> None:
        self.error = cause
        self._status = ReaderStatus.FAILED

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class SoundFileReader(PCMReader):
    """Reads any format libsndfile can decode."""

    def __init__(self, handle: sf.SoundFile, locator: str,
                 block_frames: int = DEFAULT_BLOCK_FRAMES):
        super().__init__()
        self._sf = handle
        self.locator = locator
        self.block_frames = int(block_frames)

    @classmethod
    def open(cls, locator: str,
             block_frames: int = DEFAULT_BLOCK_FRAMES) -> "SoundFileReader":
        if not os.path.isfile(locator):
            raise OpenFailed(f"File not found: {locator}")
        try:
            handle = sf.SoundFile(locator, mode="r")
        except (RuntimeError, OSError, TypeError) as e:
            raise OpenFailed(f"Cannot open {locator}: {e}") from e
        if handle.channels < 1 or handle.frames <= 0:
            handle.close()
            raise NoAudioTrack(f"No audio in {locator}")
        return cls(handle, locator, block_frames=block_frames)

    def load_metadata(self) -> AudioTrackMetadata:
        try:
            sr = float(self._sf.samplerate)
            return AudioTrackMetadata(
                channels=int(self._sf.channels),
                samplerate=sr,
                duration_sec=self._sf.frames / sr,
            )
        except (RuntimeError, ValueError, ZeroDivisionError) as e:
            raise OpenFailed(f"Cannot read metadata of {self.locator}: {e}") from e

    def start(self) -> None:
        self._sf.seek(0)
        super().start()

    def next_block(self) -> bytes | None:
        if self._status != ReaderStatus.READING:
            return None
        try:
            data = self._sf.read(self.block_frames, dtype="int16", always_2d=True)
        except (RuntimeError, ValueError) as e:
            dbg(f"decode error in {self.locator}: {e}")
            self.fail(e)
            return None
        if data.size == 0:
            self._status = ReaderStatus.COMPLETED
            return None
        if self._sf.tell() >= self._sf.frames:
            self._status = ReaderStatus.COMPLETED
        return data.astype("<i2", copy=False).tobytes()

    def close(self) -> None:
        if not self._sf.closed:
            self._sf.close()


class ArrayReader(PCMReader):
    """Serves an in-memory signal as PCM blocks.

    *data* is either 1-D (mono) or (frames, channels); int16 is used as
    is, float is taken as [-1.0, 1.0].
    """

    def __init__(self, data: np.ndarray, samplerate: float,
                 block_frames: int = DEFAULT_BLOCK_FRAMES):
        super().__init__()
        pcm = to_pcm16(data)
        if pcm.ndim == 1:
            pcm = pcm[:, np.newaxis]
        if pcm.ndim != 2 or pcm.shape[1] < 1:
            raise NoAudioTrack("array has no channels")
        if samplerate <= 0:
            raise OpenFailed(f"invalid sample rate {samplerate}")
        self._pcm = np.ascontiguousarray(pcm)
        self._samplerate = float(samplerate)
        self.block_frames = int(block_frames)
        self._pos = 0

    def load_metadata(self) -> AudioTrackMetadata:
        frames, channels = self._pcm.shape
        return AudioTrackMetadata(
            channels=channels,
            samplerate=self._samplerate,
            duration_sec=frames / self._samplerate,
        )

    def start(self) -> None:
        self._pos = 0
        super().start()

    def next_block(self) -> bytes | None:
        if self._status != ReaderStatus.READING:
            return None
        frames = self._pcm.shape[0]
        if self._pos >= frames:
            self._status = ReaderStatus.COMPLETED
            return None
        end = min(self._pos + self.block_frames, frames)
        block = self._pcm[self._pos:end]
        self._pos = end
        if end >= frames:
            self._status = ReaderStatus.COMPLETED
        return block.astype("<i2", copy=False).tobytes()
