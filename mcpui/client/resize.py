"""Size observation for auto-resizing embedded content."""

from __future__ import annotations

import threading
from typing import Callable, List, Protocol, Tuple

ResizeListener = Callable[[float, float], None]


class ResizableRegion(Protocol):
    """A renderable region whose size changes can be observed."""

    def add_resize_listener(self, listener: ResizeListener) -> None:
        ...

    def remove_resize_listener(self, listener: ResizeListener) -> None:
        ...


class ObservedRegion:
    """In-memory region that notifies listeners whenever its size changes."""

    def __init__(self, width: float = 0.0, height: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._size: Tuple[float, float] = (float(width), float(height))
        self._listeners: List[ResizeListener] = []

    @property
    def size(self) -> Tuple[float, float]:
        with self._lock:
            return self._size

    @property
    def observed(self) -> bool:
        with self._lock:
            return bool(self._listeners)

    def add_resize_listener(self, listener: ResizeListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_resize_listener(self, listener: ResizeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def set_size(self, width: float, height: float) -> bool:
        """Update the size; returns True when listeners were notified."""
        new_size = (float(width), float(height))
        with self._lock:
            if new_size == self._size:
                return False
            self._size = new_size
            listeners = list(self._listeners)
        for listener in listeners:
            listener(*new_size)
        return True


def format_px(value: float) -> str:
    """CSS pixel length, without a trailing ``.0`` for whole numbers."""
    number = float(value)
    if number.is_integer():
        return f"{int(number)}px"
    return f"{number:g}px"
