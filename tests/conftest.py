"""Test configuration and fixtures"""

import threading
import time

import numpy as np
import pytest
import soundfile as sf

from wavescopelib.models import AudioTrackMetadata, ReaderStatus
from wavescopelib.reader import PCMReader, ArrayReader


def pcm_bytes(samples):
    """int16 little-endian bytes for a list/array of sample values."""
    return np.asarray(samples, dtype="<i2").tobytes()


def square_wave(n, period=100, amplitude=32767):
    half = np.where((np.arange(n) // (period // 2)) % 2 == 0, 1, -1)
    return (half * amplitude).astype(np.int16)


class ConcurrencyTracker:
    """Counts readers that are between start() and close()."""

    def __init__(self):
        self._lock = threading.Lock()
        self.current = 0
        self.peak = 0
        self.finished = 0

    def enter(self):
        with self._lock:
            self.current += 1
            self.peak = max(self.peak, self.current)

    def exit(self):
        with self._lock:
            self.current -= 1
            self.finished += 1


class ScriptedReader(PCMReader):
    """Reader that replays prepared blocks and can misbehave on cue.

    fail_after:   status becomes FAILED after this many blocks were served.
    cancel_after: status becomes CANCELLED after this many blocks.
    on_block:     called with the block index before each block is served.
    """

    def __init__(self, blocks, metadata, *, fail_after=None, cancel_after=None,
                 on_block=None, delay=0.0, tracker=None):
        super().__init__()
        self.blocks = list(blocks)
        self.metadata = metadata
        self.fail_after = fail_after
        self.cancel_after = cancel_after
        self.on_block = on_block
        self.delay = delay
        self.tracker = tracker
        self.served = 0
        self.closed = False
        self.started = False

    def load_metadata(self):
        return self.metadata

    def start(self):
        self.started = True
        if self.tracker:
            self.tracker.enter()
        super().start()

    def next_block(self):
        if self.status != ReaderStatus.READING:
            return None
        if self.fail_after is not None and self.served >= self.fail_after:
            self.fail(RuntimeError("corrupt frame"))
            return None
        if self.cancel_after is not None and self.served >= self.cancel_after:
            self.cancel()
            return None
        if self.served >= len(self.blocks):
            self._status = ReaderStatus.COMPLETED
            return None
        if self.on_block:
            self.on_block(self.served)
        if self.delay:
            time.sleep(self.delay)
        block = self.blocks[self.served]
        self.served += 1
        return block

    def close(self):
        if self.tracker and self.started and not self.closed:
            self.tracker.exit()
        self.closed = True


def split_blocks(pcm, block_size):
    data = np.asarray(pcm, dtype="<i2")
    return [data[i:i + block_size].tobytes() for i in range(0, len(data), block_size)]


@pytest.fixture
def array_factory():
    """reader_factory resolving locators from a dict of (data, samplerate)."""
    sources = {}

    def factory(locator):
        data, sr = sources[locator]
        return ArrayReader(data, sr, block_frames=1024)

    factory.sources = sources
    return factory


@pytest.fixture
def metadata_for():
    def make(n_samples, samplerate=1000.0, channels=1):
        return AudioTrackMetadata(
            channels=channels,
            samplerate=samplerate,
            duration_sec=n_samples / channels / samplerate,
        )
    return make


@pytest.fixture
def wav_file(tmp_path):
    """Write a 16-bit WAV and return its path."""
    def write(data, samplerate=8000, name="tone.wav"):
        path = tmp_path / name
        sf.write(str(path), np.asarray(data), samplerate, subtype="PCM_16")
        return str(path)
    return write
