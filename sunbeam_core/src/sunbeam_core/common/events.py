"""Minimal synchronous event emitter.

Listeners run in registration order on the emitting call stack, so an
event emitted from an inbound message handler is fully processed before
the next message is read. Exceptions raised by listeners propagate to the
emitter.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

import structlog

log = structlog.get_logger()

Listener = Callable[..., Any]

DEFAULT_MAX_LISTENERS = 10


class EventEmitter:
    """Named-event publisher with persistent and one-shot listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[Listener, bool]]] = defaultdict(list)
        self._max_listeners = DEFAULT_MAX_LISTENERS

    def set_max_listeners(self, n: int) -> None:
        """Set the per-event listener count above which a warning is logged."""
        self._max_listeners = n

    def on(self, event: str, listener: Listener) -> Listener:
        self._add(event, listener, once=False)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        self._add(event, listener, once=True)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove the first registration of ``listener`` for ``event``."""
        entries = self._listeners.get(event)
        if not entries:
            return
        for i, (fn, _) in enumerate(entries):
            if fn == listener:
                del entries[i]
                break
        if not entries:
            del self._listeners[event]

    remove_listener = off

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener of ``event``; return True if there was any."""
        entries = self._listeners.get(event)
        if not entries:
            return False

        snapshot = list(entries)
        for entry in snapshot:
            if entry[1]:
                try:
                    entries.remove(entry)
                except ValueError:
                    continue
        if not entries:
            self._listeners.pop(event, None)

        for fn, _ in snapshot:
            fn(*args)
        return True

    def _add(self, event: str, listener: Listener, *, once: bool) -> None:
        entries = self._listeners[event]
        entries.append((listener, once))
        if self._max_listeners and len(entries) > self._max_listeners:
            log.warning(
                "Possible listener leak",
                event_name=event,
                listeners=len(entries),
                max_listeners=self._max_listeners,
            )
