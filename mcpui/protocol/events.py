"""Local event dispatch for protocol engines."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Union

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]
EventName = Union[str, Enum]


def _event_key(event: EventName) -> str:
    if isinstance(event, Enum):
        return str(event.value)
    return str(event)


class EventDispatcher:
    """Dispatch table from a closed set of event names to ordered subscribers."""

    def __init__(self, allowed_events: Iterable[EventName], *, owner: str = "engine") -> None:
        self._allowed = frozenset(_event_key(event) for event in allowed_events)
        self._owner = owner
        self._lock = threading.Lock()
        self._handlers: Dict[str, Dict[EventHandler, None]] = {}

    @property
    def allowed_events(self) -> frozenset:
        return self._allowed

    def _checked_key(self, event: EventName) -> str:
        key = _event_key(event)
        if key not in self._allowed:
            raise ValueError(f"Unknown {self._owner} event: {key}")
        return key

    def on(self, event: EventName, handler: EventHandler) -> None:
        key = self._checked_key(event)
        with self._lock:
            self._handlers.setdefault(key, {})[handler] = None

    def off(self, event: EventName, handler: EventHandler) -> None:
        key = self._checked_key(event)
        with self._lock:
            handlers = self._handlers.get(key)
            if handlers is not None:
                handlers.pop(handler, None)

    def handlers(self, event: EventName) -> List[EventHandler]:
        with self._lock:
            return list(self._handlers.get(_event_key(event), {}))

    def emit(self, event: EventName, data: Any = None) -> int:
        """Invoke every subscriber of ``event``; returns the number that succeeded.

        Each handler runs in its own failure boundary so one raising handler
        never prevents the others from running.
        """
        key = _event_key(event)
        succeeded = 0
        for handler in self.handlers(key):
            try:
                handler(data)
            except Exception:
                logger.exception("Error in %s event handler for %s", self._owner, key)
                continue
            succeeded += 1
        return succeeded

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
