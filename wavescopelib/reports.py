from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Any

import numpy as np

from ._version import __version__
from .models import AnalysisJob, WaveformAnalysis


def summarize(analysis: WaveformAnalysis, noise_floor_db: float) -> dict[str, Any]:
    """Headline numbers for one envelope.

    Levels are converted back from the normalized domain to dB, so the
    loudest value is the *smallest* normalized amplitude.
    """
    amps = analysis.amplitudes
    if amps.size == 0:
        return {"count": 0, "peak_db": None, "mean_db": None, "silent_ratio": None}
    db = amps.astype(np.float64) * noise_floor_db
    silent = np.isclose(amps, 1.0)
    return {
        "count": int(amps.size),
        "peak_db": round(float(np.max(db)), 2),
        "mean_db": round(float(np.mean(db)), 2),
        "silent_ratio": round(float(np.mean(silent)), 4),
    }


def save_json(
    jobs: list[AnalysisJob],
    config: dict[str, Any],
    output_path: str,
    *,
    include_amplitudes: bool = True,
) -> None:
    """Write all finished jobs (and their envelopes) as JSON."""
    noise_floor_db = float(config.get("noise_floor_db", -50.0))
    data: dict[str, Any] = {
        "schema_version": "1.0",
        "generator": f"wavescope {__version__}",
        "timestamp": datetime.now().isoformat(),
        "config": {
            "noise_floor_db": noise_floor_db,
            "samples_per_fft": config.get("samples_per_fft", 4096),
            "fft_bands": config.get("fft_bands"),
        },
        "files": [],
    }

    for job in jobs:
        entry: dict[str, Any] = {
            "file": os.path.basename(job.locator),
            "path": os.path.abspath(job.locator),
            "count": job.count,
            "status": job.status.value,
            "error": job.error,
        }
        res = job.result
        if res is not None:
            meta = res.metadata
            entry["complete"] = res.complete
            entry["reader_status"] = res.reader_status.value
            if meta is not None:
                entry["channels"] = meta.channels
                entry["samplerate"] = meta.samplerate
                entry["duration_sec"] = round(meta.duration_sec, 3)
            entry["summary"] = summarize(res, noise_floor_db)
            if include_amplitudes:
                entry["amplitudes"] = [round(float(a), 5) for a in res.amplitudes]
            if res.spectra is not None:
                entry["spectra"] = [
                    [float(e) for e in frame.band_energies] for frame in res.spectra
                ]
        data["files"].append(entry)

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
