"""Opt-in diagnostics for the analysis pipeline.

The admission gate, the read loop and the loader report what they are
doing through :func:`dbg`: slot grants and hand-offs, read-cycle and
byte counts, per-run timings, reader failures and degraded results::

    $ WAVESCOPE_DEBUG=1 wavescope song.wav --count 800
    [14:02:11.348 AdmissionController] slot granted immediately (1/3)
    [14:02:11.402 WaveformAnalyzer] song.wav: 12 cycles, 1966080 bytes, 800/800 values, status=completed

Nothing is printed unless ``WAVESCOPE_DEBUG`` is ``1`` or ``true``.
Tests and embedding applications can flip the switch with
:func:`set_enabled` instead of touching the environment.
"""

from __future__ import annotations

import inspect
import os
import sys
import time

ENV_VAR = "WAVESCOPE_DEBUG"

_enabled: bool | None = None   # None: read ENV_VAR on next use


def enabled() -> bool:
    """Whether debug lines are currently written."""
    global _enabled
    if _enabled is None:
        _enabled = os.environ.get(ENV_VAR, "").strip().lower() in ("1", "true")
    return _enabled


def set_enabled(value: bool | None) -> None:
    """Force diagnostics on or off; ``None`` goes back to the environment."""
    global _enabled
    _enabled = value


def _source_of(frame) -> str:
    # Methods report their class, module-level code its module
    owner = frame.f_locals.get("self")
    if owner is not None:
        return type(owner).__name__
    owner = frame.f_locals.get("cls")
    if owner is not None:
        return getattr(owner, "__name__", str(owner))
    module = frame.f_globals.get("__name__") or "?"
    return module.rpartition(".")[2]


def dbg(msg: str) -> None:
    """Write ``[HH:MM:SS.mmm Source] msg`` to stderr when enabled."""
    if not enabled():
        return
    frame = inspect.currentframe()
    try:
        caller = frame.f_back if frame is not None else None
        source = _source_of(caller) if caller is not None else "?"
    finally:
        del frame
    now = time.time()
    stamp = time.strftime("%H:%M:%S", time.localtime(now))
    print(f"[{stamp}.{int(now % 1 * 1000):03d} {source}] {msg}",
          file=sys.stderr, flush=True)
