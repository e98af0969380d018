"""Host side of the protocol."""

from mcpui.host.engine import HostEngine
from mcpui.host.prompt import confirm_permission_request
from mcpui.host.session import EmbeddedUI, EmbedOptions, HostEvent, SessionState

__all__ = [
    "EmbedOptions",
    "EmbeddedUI",
    "HostEngine",
    "HostEvent",
    "SessionState",
    "confirm_permission_request",
]
