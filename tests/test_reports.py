import json

import numpy as np

from wavescopelib.config import default_config
from wavescopelib.models import (
    AnalysisJob, AudioTrackMetadata, JobStatus, SpectralFrame, WaveformAnalysis,
)
from wavescopelib.reports import save_json, summarize


def analysis(amps, spectra=None):
    return WaveformAnalysis(
        amplitudes=np.asarray(amps, dtype=np.float32),
        spectra=spectra,
        metadata=AudioTrackMetadata(channels=2, samplerate=48000.0, duration_sec=1.5),
    )


class TestSummarize:

    def test_levels_back_in_db(self):
        s = summarize(analysis([0.0, 0.5, 1.0, 1.0]), -50.0)
        assert s["count"] == 4
        assert s["peak_db"] == 0.0
        assert s["mean_db"] == -31.25
        assert s["silent_ratio"] == 0.5

    def test_empty(self):
        s = summarize(analysis([]), -50.0)
        assert s["count"] == 0
        assert s["peak_db"] is None


class TestSaveJson:

    def test_writes_jobs(self, tmp_path):
        frame = SpectralFrame(window_size=4, samplerate=48000.0,
                              band_energies=np.array([1.0, 2.0]))
        ok = AnalysisJob(job_id="1", locator=str(tmp_path / "a.wav"), count=2,
                         status=JobStatus.COMPLETED,
                         result=analysis([0.25, 1.0], spectra=[frame]))
        bad = AnalysisJob(job_id="2", locator="b.wav", count=2,
                          status=JobStatus.FAILED, error="OpenFailed: nope")
        out = tmp_path / "out" / "report.json"
        save_json([ok, bad], default_config(), str(out))

        data = json.loads(out.read_text())
        first, second = data["files"]
        assert first["file"] == "a.wav"
        assert first["amplitudes"] == [0.25, 1.0]
        assert first["spectra"] == [[1.0, 2.0]]
        assert first["channels"] == 2
        assert first["duration_sec"] == 1.5
        assert first["summary"]["silent_ratio"] == 0.5
        assert second["status"] == "failed"
        assert second["error"] == "OpenFailed: nope"
        assert "amplitudes" not in second

    def test_without_amplitudes(self, tmp_path):
        job = AnalysisJob(job_id="1", locator="a.wav", count=1,
                          status=JobStatus.COMPLETED, result=analysis([1.0]))
        out = tmp_path / "r.json"
        save_json([job], default_config(), str(out), include_amplitudes=False)
        assert "amplitudes" not in json.loads(out.read_text())["files"][0]
