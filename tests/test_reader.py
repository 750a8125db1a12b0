"""Reader adapters: decode failures and sample-format conversion"""

import numpy as np
import pytest

from wavescopelib.analyzer import WaveformAnalyzer
from wavescopelib.errors import ReaderError
from wavescopelib.models import ReaderStatus
from wavescopelib.reader import ArrayReader, SoundFileReader, to_pcm16


class BrokenHandle:
    """Stands in for ``soundfile.SoundFile``; decoding breaks after *good_reads* blocks."""

    def __init__(self, frames, good_reads, samplerate=1000, channels=1):
        self.frames = frames
        self.samplerate = samplerate
        self.channels = channels
        self.good_reads = good_reads
        self.closed = False
        self._pos = 0

    def seek(self, pos):
        self._pos = pos

    def tell(self):
        return self._pos

    def read(self, n, dtype="int16", always_2d=True):
        if self.good_reads <= 0:
            raise RuntimeError("Internal psf_fseek() failed.")
        self.good_reads -= 1
        n = min(n, self.frames - self._pos)
        self._pos += n
        return np.full((n, self.channels), 32767, dtype=np.int16)

    def close(self):
        self.closed = True


def broken_factory(handles, frames, good_reads, block_frames=1000):
    def factory(locator):
        handle = BrokenHandle(frames, good_reads)
        handles.append(handle)
        return SoundFileReader(handle, locator, block_frames=block_frames)
    return factory


class TestSoundFileReaderDecodeErrors:

    def test_status_and_cause(self):
        reader = SoundFileReader(BrokenHandle(5000, good_reads=1), "x.wav",
                                 block_frames=1000)
        reader.start()
        assert reader.next_block() is not None
        assert reader.next_block() is None
        assert reader.status == ReaderStatus.FAILED
        assert isinstance(reader.error, RuntimeError)
        # no further reads once failed
        assert reader.next_block() is None

    def test_partial_envelope_after_some_blocks(self):
        handles = []
        factory = broken_factory(handles, frames=10000, good_reads=4)
        result = WaveformAnalyzer(reader_factory=factory).analyze("x.wav", 10)
        assert not result.complete
        assert result.reader_status == ReaderStatus.FAILED
        assert result.amplitudes.tolist() == [0.0] * 4 + [1.0] * 6
        assert handles[0].closed

    def test_error_before_any_block(self):
        handles = []
        factory = broken_factory(handles, frames=10000, good_reads=0)
        with pytest.raises(ReaderError) as exc:
            WaveformAnalyzer(reader_factory=factory).analyze("x.wav", 10)
        assert exc.value.status == ReaderStatus.FAILED
        assert "psf_fseek" in str(exc.value)
        assert handles[0].closed


class TestFloatInput:

    def test_to_pcm16_scaling(self):
        out = to_pcm16(np.array([1.0, -1.0, 0.0, 2.0, -3.0], dtype=np.float32))
        assert out.dtype == np.int16
        assert out.tolist() == [32767, -32767, 0, 32767, -32767]

    def test_to_pcm16_wide_ints_are_clipped(self):
        out = to_pcm16(np.array([70000, -70000, 12], dtype=np.int32))
        assert out.tolist() == [32767, -32768, 12]

    def test_to_pcm16_rejects_other_types(self):
        with pytest.raises(TypeError):
            to_pcm16(np.array(["a", "b"]))

    def test_float_sine_matches_int16(self, array_factory):
        t = np.arange(20000) / 8000.0
        sine = np.sin(2 * np.pi * 220.0 * t) * np.linspace(0.0, 1.0, t.size)
        as_int = np.round(sine * 32767).astype(np.int16)
        array_factory.sources["float"] = (sine, 8000.0)
        array_factory.sources["int"] = (as_int, 8000.0)
        analyzer = WaveformAnalyzer(reader_factory=array_factory)
        from_float = analyzer.analyze("float", 64).amplitudes
        from_int = analyzer.analyze("int", 64).amplitudes
        assert np.array_equal(from_float, from_int)
        # the ramp makes the envelope louder towards the end
        assert from_float[-1] < from_float[0]

    def test_stereo_float_layout(self):
        data = np.zeros((100, 2), dtype=np.float64)
        data[:, 1] = 1.0
        reader = ArrayReader(data, 1000.0, block_frames=100)
        reader.start()
        block = np.frombuffer(reader.next_block(), dtype="<i2")
        assert block[:4].tolist() == [0, 32767, 0, 32767]
        assert reader.status == ReaderStatus.COMPLETED
