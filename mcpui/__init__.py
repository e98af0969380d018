"""mcpui package entrypoint and lightweight public API."""

from __future__ import annotations

import importlib
from typing import Any

from mcpui.protocol.types import PROTOCOL_VERSION

__version__ = "1.0.0"
__license__ = "MIT"

_LAZY_EXPORTS = {
    "Config": ("mcpui.config", "Config"),
    "ClientEngine": ("mcpui.client.engine", "ClientEngine"),
    "HostEngine": ("mcpui.host.engine", "HostEngine"),
    "EmbeddedUI": ("mcpui.host.session", "EmbeddedUI"),
    "TokenService": ("mcpui.auth.tokens", "TokenService"),
    "validate_token": ("mcpui.auth.validation", "validate_token"),
    "connect_frame": ("mcpui.protocol.transport", "connect_frame"),
    "LocalWindow": ("mcpui.protocol.transport", "LocalWindow"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = _LAZY_EXPORTS[name]
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = [
    "__version__",
    "__license__",
    "PROTOCOL_VERSION",
    "Config",
    "ClientEngine",
    "HostEngine",
    "EmbeddedUI",
    "TokenService",
    "validate_token",
    "connect_frame",
    "LocalWindow",
]
