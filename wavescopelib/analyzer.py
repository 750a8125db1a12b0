from __future__ import annotations

import functools
import os
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Any, Callable

import numpy as np

from .admission import AdmissionController, shared_controller
from .config import default_config, merge_configs, validate_config
from .downsample import DownsamplingEngine, normalize
from .errors import AnalyzeError, Cancelled, InvalidRequest, ReaderError
from .events import EventBus
from .log import dbg
from .models import ReaderStatus, RunState, WaveformAnalysis
from .reader import PCMReader, SoundFileReader
from .spectral import SpectralEngine

ReaderFactory = Callable[[str], PCMReader]


class AnalysisHandle:
    """Handle to an analysis running on the analyzer's worker pool."""

    def __init__(self, future: Future, cancel_event: threading.Event,
                 locator: str, count: int):
        self._future = future
        self._cancel_event = cancel_event
        self.locator = locator
        self.count = count

    def cancel(self) -> None:
        """Request cooperative cancellation.

        A run that has not started yet never starts; a running one stops
        at its next read-loop boundary (or while waiting for a slot).
        """
        self._cancel_event.set()
        self._future.cancel()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> WaveformAnalysis:
        """Wait for the outcome; re-raises the run's AnalyzeError."""
        try:
            return self._future.result(timeout)
        except CancelledError:
            raise Cancelled(f"analysis of {self.locator} cancelled before start")

    def exception(self, timeout: float | None = None) -> BaseException | None:
        try:
            return self._future.exception(timeout)
        except CancelledError:
            return Cancelled(f"analysis of {self.locator} cancelled before start")

    def add_done_callback(self, fn: Callable[["AnalysisHandle"], Any]) -> None:
        self._future.add_done_callback(lambda _f: fn(self))


class WaveformAnalyzer:
    """Computes normalized amplitude envelopes (and optional spectra).

    Every run passes through the admission controller, so at most
    ``controller.max_concurrent`` runs decode at the same time no matter
    how many callers there are.  Runs submitted with :meth:`submit`
    execute on an internal thread pool.

    Parameters
    ----------
    config : dict | None
        Flat config overrides, merged over :func:`default_config`.
    controller : AdmissionController | None
        Gate to run behind.  When omitted, the process-wide gate for the
        ``max_concurrent`` config key is used, so every analyzer with
        the same limit shares one bound.
    event_bus : EventBus | None
        Receives ``analysis.*`` and ``slot.*`` events.
    reader_factory : callable | None
        ``locator -> PCMReader``; defaults to :class:`SoundFileReader`.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        controller: AdmissionController | None = None,
        event_bus: EventBus | None = None,
        reader_factory: ReaderFactory | None = None,
    ):
        self.config = merge_configs(default_config(), config or {})
        validate_config(self.config)
        self.noise_floor_db = float(self.config["noise_floor_db"])
        self.controller = controller or shared_controller(
            self.config["max_concurrent"])
        self.event_bus = event_bus
        self.reader_factory: ReaderFactory = reader_factory or functools.partial(
            SoundFileReader.open, block_frames=self.config["block_frames"])
        self.max_workers = self.config["max_workers"] or max(
            self.controller.max_concurrent, min(os.cpu_count() or 4, 8))
        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    def _emit(self, event_type: str, **data):
        if self.event_bus:
            self.event_bus.emit(event_type, **data)

    def _set_state(self, locator: str, state: RunState) -> None:
        self._emit("analysis.state", locator=locator, state=state)

    # ------------------------------------------------------------------
    # Synchronous API
    # ------------------------------------------------------------------

    def analyze(
        self,
        locator: str,
        count: int,
        *,
        fft_bands: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> WaveformAnalysis:
        """Run one analysis on the calling thread.

        Blocks while the admission gate is full.  Raises a subclass of
        :class:`~wavescopelib.errors.AnalyzeError` on failure.
        """
        if count is None or count <= 0:
            raise InvalidRequest(f"sample count must be positive, got {count}")
        if fft_bands is None:
            fft_bands = self.config["fft_bands"]
        if fft_bands is not None and fft_bands <= 0:
            raise InvalidRequest(f"band count must be positive, got {fft_bands}")
        cancel_event = cancel_event or threading.Event()

        self._set_state(locator, RunState.SLOT_REQUESTED)
        if not self.controller.acquire_slot(cancel_event):
            self._set_state(locator, RunState.CANCELLED)
            self._emit("analysis.failed", locator=locator, error="cancelled")
            raise Cancelled(f"analysis of {locator} cancelled while queued")

        self._emit("slot.acquired", locator=locator,
                   active=self.controller.active)
        t0 = time.perf_counter()
        try:
            if cancel_event.is_set():
                raise Cancelled(f"analysis of {locator} cancelled")
            self._emit("analysis.start", locator=locator, count=count)
            self._set_state(locator, RunState.READING)
            result = self._extract(locator, count, fft_bands, cancel_event)
            self._set_state(locator, RunState.COMPLETED)
            self._emit("analysis.complete", locator=locator,
                       complete=result.complete)
            return result
        except Cancelled as e:
            self._set_state(locator, RunState.CANCELLED)
            self._emit("analysis.failed", locator=locator, error=str(e))
            raise
        except Exception as e:
            self._set_state(locator, RunState.FAILED)
            self._emit("analysis.failed", locator=locator, error=str(e))
            raise
        finally:
            self.controller.release_slot()
            dt = (time.perf_counter() - t0) * 1000
            dbg(f"{os.path.basename(locator)}: {dt:.1f} ms")
            self._emit("slot.released", locator=locator,
                       active=self.controller.active)
            self._set_state(locator, RunState.SLOT_RELEASED)

    def samples(self, locator: str, count: int, *,
                qos: str | None = None) -> np.ndarray:
        """Normalized amplitude envelope only.

        *qos* is an advisory priority class; it does not change the result.
        """
        dbg(f"samples({locator!r}, {count}) qos={qos or self.config['qos']}")
        return self.analyze(locator, count).amplitudes

    # ------------------------------------------------------------------
    # Asynchronous API
    # ------------------------------------------------------------------

    def _executor(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="wavescope",
                )
            return self._pool

    def submit(self, locator: str, count: int, *,
               fft_bands: int | None = None) -> AnalysisHandle:
        """Schedule :meth:`analyze` on the worker pool."""
        if count is None or count <= 0:
            raise InvalidRequest(f"sample count must be positive, got {count}")
        cancel_event = threading.Event()
        self._emit("analysis.queued", locator=locator, count=count)
        future = self._executor().submit(
            self.analyze, locator, count,
            fft_bands=fft_bands, cancel_event=cancel_event,
        )
        return AnalysisHandle(future, cancel_event, locator, count)

    def samples_with_callback(
        self,
        locator: str,
        count: int,
        callback: Callable[[np.ndarray | None, BaseException | None], Any],
    ) -> AnalysisHandle:
        """Callback flavour of :meth:`samples`.

        *callback* runs on a worker thread with either
        ``(amplitudes, None)`` or ``(None, error)``.
        """
        handle = self.submit(locator, count)

        def _done(h: AnalysisHandle) -> None:
            err = h.exception()
            if err is not None:
                callback(None, err)
            else:
                callback(h.result().amplitudes, None)

        handle.add_done_callback(_done)
        return handle

    def shutdown(self, wait: bool = True) -> None:
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Read loop
    # ------------------------------------------------------------------

    def _extract(self, locator: str, count: int, fft_bands: int | None,
                 cancel_event: threading.Event) -> WaveformAnalysis:
        reader = self.reader_factory(locator)
        with reader:
            metadata = reader.load_metadata()
            total_samples = metadata.total_samples
            engine = DownsamplingEngine(
                total_samples, count,
                noise_floor_db=self.noise_floor_db,
                batch_pixels=self.config["batch_pixels"],
            )
            spectral = None
            if fft_bands is not None:
                spectral = SpectralEngine(
                    fft_bands, metadata.samplerate,
                    samples_per_fft=self.config["samples_per_fft"],
                )

            max_cycles = self.config["max_read_cycles"]
            cycles = 0
            bytes_read = 0
            hit_cap = False
            caller_cancelled = False

            reader.start()
            while reader.status == ReaderStatus.READING:
                if cancel_event.is_set():
                    reader.cancel()
                    caller_cancelled = True
                    break
                if cycles >= max_cycles:
                    hit_cap = True
                    break
                cycles += 1
                block = reader.next_block()
                if block is None:
                    break
                bytes_read += len(block)
                flush = reader.status != ReaderStatus.READING
                produced = engine.feed(block, flush=flush)
                if spectral is not None:
                    spectral.feed(block)
                if produced:
                    self._emit("analysis.progress", locator=locator,
                               produced=min(engine.produced, count),
                               target=count)
                # Spectra need the whole stream; the envelope does not.
                if engine.is_full and spectral is None:
                    break

            status = reader.status
            dbg(f"{os.path.basename(locator)}: {cycles} cycles, "
                f"{bytes_read} bytes, {engine.produced}/{count} values, "
                f"status={status.value}")

            if caller_cancelled:
                raise Cancelled(f"analysis of {locator} cancelled")
            if hit_cap:
                dbg(f"read cycle limit ({max_cycles}) reached")

            if status == ReaderStatus.FAILED:
                # Partial only if at least one value came from real input
                engine.flush()
                if engine.samples_consumed == 0:
                    raise ReaderError(status, reader.error)
                dbg(f"reader failed ({reader.error}), returning partial envelope")
                complete = False
            elif status in (ReaderStatus.CANCELLED, ReaderStatus.UNKNOWN):
                raise ReaderError(status, reader.error)
            else:
                complete = not hit_cap

            amplitudes = normalize(engine.finish(), self.noise_floor_db)
            return WaveformAnalysis(
                amplitudes=amplitudes,
                spectra=list(spectral.frames) if spectral is not None else None,
                complete=complete,
                reader_status=status,
                metadata=metadata,
                read_cycles=cycles,
            )
