from __future__ import annotations

import threading
from typing import Any, Callable

Handler = Callable[..., Any]


class EventBus:
    """Publish/subscribe bus for analysis progress events.

    Handlers may subscribe to an exact event type (``"analysis.complete"``)
    or to a whole namespace with a trailing wildcard (``"analysis.*"``).
    Wildcard handlers receive the event type as the ``event`` keyword.

    Thread-safe: every analysis on the worker pool emits through the same
    bus, so the handler table is guarded by a lock.  Handlers run on the
    emitting thread, outside the lock.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """Register a handler for an event type or ``"prefix.*"`` pattern."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def _matching(self, event_type: str) -> list[tuple[Handler, bool]]:
        matched: list[tuple[Handler, bool]] = []
        with self._lock:
            for h in self._handlers.get(event_type, []):
                matched.append((h, False))
            for pattern, handlers in self._handlers.items():
                if not pattern.endswith(".*"):
                    continue
                if event_type.startswith(pattern[:-1]):
                    matched.extend((h, True) for h in handlers)
        return matched

    def emit(self, event_type: str, **data: Any) -> None:
        """Fire all handlers subscribed to *event_type*."""
        for handler, wildcard in self._matching(event_type):
            if wildcard:
                handler(event=event_type, **data)
            else:
                handler(**data)
