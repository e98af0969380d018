"""Transport abstraction plus an in-memory frame channel.

Engines only depend on :class:`Transport`: something that can post a message
to its peer and deliver inbound messages together with the sender's observed
origin and identity. ``LocalWindow``/``LocalPort`` reproduce the semantics of
a window/frame ``postMessage`` pair inside one process.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Protocol, Tuple
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

ANY_ORIGIN = "*"


@dataclass(frozen=True)
class InboundMessage:
    """A delivered message with the sender's observed origin and identity."""

    data: Any
    origin: str
    source: Any


MessageListener = Callable[[InboundMessage], None]


class Transport(Protocol):
    """Bidirectional channel capability consumed by the protocol engines."""

    @property
    def peer(self) -> Any:
        """Identity of the endpoint this transport posts to."""
        ...

    def post(self, message: Dict[str, Any], target_origin: str) -> None:
        ...

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        """Register an inbound listener; returns a callable that unsubscribes it."""
        ...


_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443}


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for ``url``.

    Userinfo is dropped and the port is omitted when it is the scheme's
    default, so ``https://user@UI.example:443/app`` gives ``https://ui.example``.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        raise ValueError(f"URL has no origin: {url!r}")
    try:
        port = parts.port
    except ValueError as exc:
        raise ValueError(f"URL has an invalid port: {url!r}") from exc
    if ":" in host:
        host = f"[{host}]"
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


class LocalWindow:
    """In-process message sink that fans deliveries out to its listeners."""

    def __init__(self, origin: str, *, name: str = "") -> None:
        self.origin = origin
        self.name = name or origin
        self._lock = threading.Lock()
        self._listeners: List[MessageListener] = []

    def __repr__(self) -> str:
        return f"LocalWindow({self.name!r})"

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def deliver(self, data: Any, *, origin: str, source: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            # Each listener sees its own structured clone.
            listener(InboundMessage(data=copy.deepcopy(data), origin=origin, source=source))


class LocalPort:
    """Transport that posts from ``owner`` to ``target`` and listens on ``owner``."""

    def __init__(self, owner: LocalWindow, target: LocalWindow) -> None:
        self.owner = owner
        self.target = target

    @property
    def peer(self) -> LocalWindow:
        return self.target

    def post(self, message: Dict[str, Any], target_origin: str) -> None:
        if target_origin != ANY_ORIGIN and target_origin != self.target.origin:
            logger.debug(
                "Dropping post to %s: target origin %s does not match", self.target.origin, target_origin
            )
            return
        self.target.deliver(message, origin=self.owner.origin, source=self.owner)

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        return self.owner.subscribe(listener)


def connect_frame(host_window: LocalWindow, frame_origin: str, *, name: str = "") -> Tuple[LocalPort, LocalPort]:
    """Open a frame endpoint under ``host_window``.

    Returns ``(host_port, frame_port)``: the host side posts into the frame,
    the frame side posts to its parent.
    """
    frame_window = LocalWindow(frame_origin, name=name or f"frame:{frame_origin}")
    return LocalPort(host_window, frame_window), LocalPort(frame_window, host_window)
