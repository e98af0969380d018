"""Wire protocol shared by the host and client engines."""

from mcpui.protocol.events import EventDispatcher
from mcpui.protocol.transport import InboundMessage, LocalPort, LocalWindow, Transport, connect_frame, origin_of
from mcpui.protocol.types import (
    PROTOCOL_VERSION,
    Auth,
    ErrorCode,
    HostMessageType,
    MessageFormatError,
    ThemeSettings,
    UIMessageType,
    UIRegistration,
    User,
)
from mcpui.protocol.version import is_compatible_version

__all__ = [
    "PROTOCOL_VERSION",
    "Auth",
    "ErrorCode",
    "EventDispatcher",
    "HostMessageType",
    "InboundMessage",
    "LocalPort",
    "LocalWindow",
    "MessageFormatError",
    "ThemeSettings",
    "Transport",
    "UIMessageType",
    "UIRegistration",
    "User",
    "connect_frame",
    "is_compatible_version",
    "origin_of",
]
