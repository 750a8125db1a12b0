import json

import numpy as np
import pytest

import wavescope

from conftest import square_wave


class TestArguments:

    def test_count_or_width_required(self, tmp_path):
        with pytest.raises(SystemExit):
            wavescope.parse_arguments([str(tmp_path)])

    def test_rejects_positive_noise_floor(self, tmp_path):
        with pytest.raises(SystemExit):
            wavescope.parse_arguments([str(tmp_path), "--count", "5",
                                       "--noise_floor_db", "3"])

    def test_collect_files_expands_directories(self, tmp_path):
        (tmp_path / "B.wav").write_bytes(b"")
        (tmp_path / "a.flac").write_bytes(b"")
        (tmp_path / "notes.txt").write_text("x")
        files = wavescope.collect_files([str(tmp_path), "explicit.bin"])
        names = [f.rsplit("/", 1)[-1] for f in files]
        assert names == ["a.flac", "B.wav", "explicit.bin"]


class TestMain:

    def test_analyze_to_json(self, wav_file, tmp_path):
        loud = wav_file(square_wave(8000), name="loud.wav")
        quiet = wav_file(np.zeros(8000, dtype=np.int16), name="quiet.wav")
        out = tmp_path / "report.json"
        code = wavescope.main([loud, quiet, "--count", "16", "--bands", "4",
                               "--samples_per_fft", "1024", "--json", str(out)])
        assert code == 0
        data = json.loads(out.read_text())
        by_name = {f["file"]: f for f in data["files"]}
        assert np.allclose(by_name["loud.wav"]["amplitudes"], 0.0)
        assert by_name["quiet.wav"]["amplitudes"] == [1.0] * 16
        assert len(by_name["loud.wav"]["spectra"]) == 8000 // 1024

    def test_width_and_scale(self, wav_file, tmp_path):
        path = wav_file(square_wave(8000))
        out = tmp_path / "r.json"
        assert wavescope.main([path, "--width", "10", "--scale", "2.5",
                               "--json", str(out)]) == 0
        assert json.loads(out.read_text())["files"][0]["count"] == 25

    def test_failure_exit_code(self, tmp_path):
        bogus = tmp_path / "broken.wav"
        bogus.write_text("not audio")
        assert wavescope.main([str(bogus), "--count", "8"]) == 1

    def test_save_and_use_preset(self, wav_file, tmp_path):
        preset = tmp_path / "p.json"
        assert wavescope.main([str(tmp_path), "--save_preset", str(preset),
                               "--noise_floor_db", "-80"]) == 0
        assert json.loads(preset.read_text())["noise_floor_db"] == -80.0

        path = wav_file(square_wave(8000))
        out = tmp_path / "r.json"
        assert wavescope.main([path, "--count", "4", "--preset", str(preset),
                               "--json", str(out)]) == 0
        assert json.loads(out.read_text())["config"]["noise_floor_db"] == -80.0

    def test_bad_preset(self, tmp_path):
        preset = tmp_path / "p.json"
        preset.write_text(json.dumps({"max_concurrent": 0}))
        assert wavescope.main([str(tmp_path), "--count", "4",
                               "--preset", str(preset)]) == 2
