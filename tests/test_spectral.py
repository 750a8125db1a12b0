"""Band spectra over non-overlapping FFT windows"""

import numpy as np
import pytest

from wavescopelib.errors import InvalidRequest
from wavescopelib.spectral import SpectralEngine, linear_band_slices

from conftest import pcm_bytes


def tone(freq, n, samplerate, amplitude=16000):
    t = np.arange(n) / samplerate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.int16)


class TestBandSlices:

    def test_cover_all_bins(self):
        slices = linear_band_slices(513, 4)
        assert [(s.start, s.stop) for s in slices] == [
            (0, 128), (128, 256), (256, 384), (384, 513),
        ]

    def test_more_bands_than_bins(self):
        slices = linear_band_slices(3, 5)
        assert len(slices) == 5
        for s in slices:
            assert s.stop - s.start >= 1
            assert 0 <= s.start < 3


class TestSpectralEngine:

    def test_rejects_bad_parameters(self):
        with pytest.raises(InvalidRequest):
            SpectralEngine(0, 44100.0)
        with pytest.raises(InvalidRequest):
            SpectralEngine(8, 44100.0, samples_per_fft=1)

    def test_frame_count_and_shape(self):
        engine = SpectralEngine(6, 8000.0, samples_per_fft=1024)
        signal = tone(440, 10000, 8000)
        # uneven block sizes
        for start in range(0, len(signal), 777):
            engine.feed(pcm_bytes(signal[start:start + 777]))
        assert len(engine.frames) == 10000 // 1024
        assert engine.buffered == 10000 % 1024
        for frame in engine.frames:
            assert frame.window_size == 1024
            assert frame.samplerate == 8000.0
            assert len(frame.band_energies) == 6

    def test_tone_lands_in_its_band(self):
        engine = SpectralEngine(4, 8000.0, samples_per_fft=1024)
        engine.feed(pcm_bytes(tone(2500, 1024, 8000)))
        assert len(engine.frames) == 1
        energies = engine.frames[0].band_energies
        # 2500 Hz of a 0..4000 Hz range split in 4
        assert int(np.argmax(energies)) == 2

    def test_frames_are_chronological(self):
        engine = SpectralEngine(4, 8000.0, samples_per_fft=512)
        loud = tone(1000, 512, 8000)
        silent = np.zeros(512, dtype=np.int16)
        engine.feed(pcm_bytes(np.concatenate([loud, silent, loud])))
        totals = [float(np.sum(f.band_energies)) for f in engine.frames]
        assert len(totals) == 3
        assert totals[1] == 0.0
        assert totals[0] > 0.0
        assert totals[0] == pytest.approx(totals[2])

    def test_windows_do_not_overlap(self):
        engine = SpectralEngine(2, 8000.0, samples_per_fft=256)
        assert engine.feed(pcm_bytes(np.zeros(255))) == 0
        assert engine.feed(pcm_bytes(np.zeros(1))) == 1
        assert engine.buffered == 0

    def test_band_edges(self):
        engine = SpectralEngine(4, 8000.0, samples_per_fft=256)
        engine.feed(pcm_bytes(np.zeros(256)))
        frame = engine.frames[0]
        assert frame.nyquist == 4000.0
        assert frame.band_edges().tolist() == [0.0, 1000.0, 2000.0, 3000.0, 4000.0]
