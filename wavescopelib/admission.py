"""Admission control: a fair counting gate for concurrent analyses."""

from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator

from .errors import Cancelled
from .log import dbg

_POLL_INTERVAL = 0.05  # seconds between cancel checks while queued


class _Waiter:
    __slots__ = ("event", "granted")

    def __init__(self) -> None:
        self.event = threading.Event()
        self.granted = False


class AdmissionController:
    """Bounds how many analyses run their read loop at the same time.

    A counting semaphore with FIFO fairness: callers that find the gate
    full are parked on an explicit wait-list and woken strictly in
    arrival order.  A released slot is handed directly to the oldest
    waiter, so a newcomer can never overtake a queued caller.

    Instances are independent; pass one to every
    :class:`~wavescopelib.analyzer.WaveformAnalyzer` that should share a
    limit.
    """

    def __init__(self, max_concurrent: int = 3):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max = int(max_concurrent)
        self._count = 0
        self._waiters: deque[_Waiter] = deque()
        self._lock = threading.Lock()

    @property
    def max_concurrent(self) -> int:
        return self._max

    @property
    def active(self) -> int:
        with self._lock:
            return self._count

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._waiters)

    def acquire_slot(
        self,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> bool:
        """Block until a slot is granted.

        Returns True once the caller holds a slot.  Returns False without
        a slot if *cancel_event* is set or *timeout* expires while the
        caller is still queued.
        """
        with self._lock:
            if self._count < self._max and not self._waiters:
                self._count += 1
                dbg(f"slot granted immediately ({self._count}/{self._max})")
                return True
            waiter = _Waiter()
            self._waiters.append(waiter)
            dbg(f"gate full, queued as #{len(self._waiters)}")

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if waiter.event.wait(_POLL_INTERVAL):
                return True
            cancelled = cancel_event is not None and cancel_event.is_set()
            expired = deadline is not None and time.monotonic() >= deadline
            if not (cancelled or expired):
                continue
            with self._lock:
                if waiter.granted:
                    # Handed a slot while giving up; the caller owns it now.
                    return True
                self._waiters.remove(waiter)
            dbg("left the wait-list without a slot")
            return False

    def release_slot(self) -> None:
        """Return a slot and wake the oldest waiter, if any.  Never raises."""
        with self._lock:
            self._count = max(0, self._count - 1)
            if self._waiters and self._count < self._max:
                waiter = self._waiters.popleft()
                waiter.granted = True
                self._count += 1
                waiter.event.set()
                dbg(f"slot handed to next waiter ({self._count}/{self._max})")
            else:
                dbg(f"slot released ({self._count}/{self._max})")

    @contextmanager
    def slot(self, cancel_event: threading.Event | None = None) -> Iterator[None]:
        """Hold a slot for the duration of the ``with`` block.

        Raises :class:`~wavescopelib.errors.Cancelled` if *cancel_event*
        fires while still waiting.
        """
        if not self.acquire_slot(cancel_event):
            raise Cancelled("cancelled while waiting for a processing slot")
        try:
            yield
        finally:
            self.release_slot()


_shared: dict[int, AdmissionController] = {}
_shared_lock = threading.Lock()


def shared_controller(max_concurrent: int = 3) -> AdmissionController:
    """Process-wide controller for a given limit.

    Every caller asking for the same *max_concurrent* gets the same
    gate, so analyzers created ad hoc still share one bound.
    """
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")
    with _shared_lock:
        ctl = _shared.get(max_concurrent)
        if ctl is None:
            ctl = _shared[max_concurrent] = AdmissionController(max_concurrent)
        return ctl


def default_controller() -> AdmissionController:
    """Process-wide controller for callers that do not inject their own."""
    return shared_controller()
