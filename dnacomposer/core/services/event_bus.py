"""
EventBus — thread-safe, in-process lifecycle notifications.

The catalog, the composition engine and the migration executor publish
lifecycle events here (module registered, composition started, migration
step completed, ...). Observers register a listener callable; the bus
keeps a bounded ring buffer so late observers can replay recent events.

Delivery is fire-and-forget: a listener that raises is logged and
skipped, it never fails or blocks the publisher. With zero listeners
attached the core behaves exactly the same.

Message standard (v1)
─────────────────────
Every event is a dict with these fields::

    {
        "v": 1,                         # schema version (immutable)
        "ts": 1739648400.123,           # publish timestamp
        "seq": 47,                      # monotonic sequence
        "type": "migration:step_started", # <domain>:<action>
        "key": "auth",                  # resource identifier
        "data": { ... },                # event-specific payload
    }
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from typing import Any, Callable

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

Listener = Callable[[dict], None]


class EventBus:
    """Thread-safe listener registry with a bounded replay buffer.

    Parameters
    ----------
    buffer_size : int
        Maximum number of events kept for ``recent()``. Older events
        are silently discarded.
    asynchronous : bool
        Deliver from a background dispatcher thread instead of the
        publishing thread. Events are dropped (and logged) when the
        dispatch queue is full.
    queue_size : int
        Dispatch queue capacity in asynchronous mode.
    """

    def __init__(
        self,
        *,
        buffer_size: int = 500,
        asynchronous: bool = False,
        queue_size: int = 1000,
    ) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._buffer: deque[dict] = deque(maxlen=buffer_size)
        self._listeners: list[tuple[Listener, str]] = []
        self._queue: queue.Queue[tuple[dict, list[Listener]]] | None = None
        if asynchronous:
            self._queue = queue.Queue(maxsize=queue_size)
            threading.Thread(
                target=self._dispatch_loop, name="event-bus", daemon=True,
            ).start()

    # ── Properties ──────────────────────────────────────────────

    @property
    def seq(self) -> int:
        """Current sequence number (monotonically increasing)."""
        with self._lock:
            return self._seq

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    # ── Listeners ───────────────────────────────────────────────

    def subscribe(self, listener: Listener, *, prefix: str = "") -> Callable[[], None]:
        """Register ``listener`` for events whose type starts with ``prefix``.

        Returns:
            A callable that unsubscribes the listener.
        """
        entry = (listener, prefix)
        with self._lock:
            self._listeners.append(entry)

        def _unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return _unsubscribe

    def clear_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
        **kw: Any,
    ) -> dict:
        """Deliver an event to all matching listeners.

        Parameters
        ----------
        event_type : str
            Event type in ``<domain>:<action>`` format.
        key : str
            Resource identifier (module id, etc.).
        data : dict | None
            Event-specific payload.
        **kw :
            Additional top-level fields (``error``, ``duration_ms``).

        Returns
        -------
        dict
            The full event dict with ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
                **kw,
            }
            self._buffer.append(event)
            targets = [fn for fn, prefix in self._listeners if event_type.startswith(prefix)]

        if self._queue is not None:
            try:
                self._queue.put_nowait((event, targets))
            except queue.Full:
                logger.info("Dropped event %s (dispatch queue full)", event_type)
        else:
            # Deliver outside the lock so a listener can publish in turn
            self._deliver(event, targets)

        logger.debug("event %s key=%s", event_type, key or "-")
        return event

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until every queued event has been delivered.

        Returns:
            False if the queue did not drain within ``timeout`` seconds.
        """
        if self._queue is None:
            return True
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.005)
        return True

    # ── Delivery ────────────────────────────────────────────────

    def _deliver(self, event: dict, targets: list[Listener]) -> None:
        for fn in targets:
            try:
                fn(event)
            except Exception:
                logger.warning("Event listener %r failed on %s", fn, event["type"], exc_info=True)

    def _dispatch_loop(self) -> None:
        assert self._queue is not None
        while True:
            event, targets = self._queue.get()
            try:
                self._deliver(event, targets)
            finally:
                self._queue.task_done()

    # ── Replay ──────────────────────────────────────────────────

    def recent(self, *, since: int = 0, prefix: str = "") -> list[dict]:
        """Buffered events with ``seq > since`` matching ``prefix``."""
        with self._lock:
            return [
                e for e in self._buffer
                if e["seq"] > since and e["type"].startswith(prefix)
            ]


# ── Module-level singleton ──────────────────────────────────────

bus = EventBus(asynchronous=True)
"""The default event bus instance.

Delivers from its dispatcher thread, so a slow listener never holds up
a composition or a migration. Call ``bus.flush()`` to wait for delivery.

Components fall back to it when no bus is injected::

    from dnacomposer.core.services.event_bus import bus
    bus.subscribe(print, prefix="migration:")
"""
