"""Embedded-UI side of the protocol."""

from mcpui.client.engine import ClientEngine, ClientEvent, ClientState
from mcpui.client.resize import ObservedRegion, ResizableRegion

__all__ = ["ClientEngine", "ClientEvent", "ClientState", "ObservedRegion", "ResizableRegion"]
