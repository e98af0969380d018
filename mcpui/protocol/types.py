"""Core protocol types for host/UI embedding communication."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

PROTOCOL_VERSION = "1.0.0"

JsonDict = Dict[str, Any]


class HostMessageType(str, Enum):
    """Message types sent from the host to the embedded UI."""

    INIT = "init"
    UPDATE_CONTEXT = "update_context"
    THEME = "theme"
    AUTH_UPDATE = "auth_update"
    AUTH_REVOKE = "auth_revoke"
    PERMISSION_GRANTED = "permission_granted"
    PERMISSION_REVOKED = "permission_revoked"


class UIMessageType(str, Enum):
    """Message types sent from the embedded UI to the host."""

    READY = "ready"
    ACTION = "action"
    ERROR = "error"
    RESIZE = "resize"
    REQUEST_PERMISSION = "request_permission"


class ErrorCode(str, Enum):
    """Error codes carried by UI -> host error messages."""

    PROTOCOL_ERROR = "protocol_error"
    AUTH_ERROR = "auth_error"
    CONTEXT_ERROR = "context_error"
    RENDER_ERROR = "render_error"
    PERMISSION_ERROR = "permission_error"
    UNKNOWN_ERROR = "unknown_error"


HOST_MESSAGE_TYPES = frozenset(item.value for item in HostMessageType)
UI_MESSAGE_TYPES = frozenset(item.value for item in UIMessageType)


class MessageFormatError(ValueError):
    """Raised when a known message type arrives with a malformed shape."""

    def __init__(self, message_type: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(f"Malformed {message_type} message")
        self.message_type = message_type
        self.errors = errors or []


class _OpenModel(BaseModel):
    """Model that carries unknown fields through untouched."""

    model_config = ConfigDict(extra="allow")


class User(_OpenModel):
    """Opaque user identity forwarded to the embedded UI."""

    id: str


class Auth(_OpenModel):
    """Signed credential plus the key set endpoint that verifies it."""

    token: str
    jwks_url: str


class ThemeSettings(_OpenModel):
    """Styling hints; only the shape is checked."""

    mode: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    font_family: Optional[str] = None
    border_radius: Optional[str] = None


class RegistrationPermissions(_OpenModel):
    required_scopes: List[str] = Field(default_factory=list)
    optional_scopes: List[str] = Field(default_factory=list)


class ProtocolSupport(_OpenModel):
    min_version: str = PROTOCOL_VERSION
    target_version: str = PROTOCOL_VERSION


class UIRegistration(_OpenModel):
    """Registration payload an embeddable UI publishes about itself."""

    ui_name: str = Field(min_length=1)
    ui_url_template: str = ""
    description: str = ""
    capabilities: List[str] = Field(default_factory=list)
    tool_association: Optional[str] = None
    data_type_handled: Optional[str] = None
    permissions: RegistrationPermissions = Field(default_factory=RegistrationPermissions)
    protocol_support: ProtocolSupport = Field(default_factory=ProtocolSupport)


class Message(_OpenModel):
    """Base wire message keyed by ``type``."""

    type: str = Field(min_length=1)

    def to_wire(self) -> JsonDict:
        """Serialize for a single transport send, omitting absent optionals."""
        return self.model_dump(mode="json", exclude_none=True)


# Host -> UI


class InitMessage(Message):
    type: Literal["init"] = "init"
    protocol_version: str = Field(min_length=1)
    user: Optional[User] = None
    auth: Optional[Auth] = None
    context: Optional[Dict[str, Any]] = None
    theme_settings: Optional[ThemeSettings] = None


class UpdateContextMessage(Message):
    type: Literal["update_context"] = "update_context"
    context: Optional[Dict[str, Any]] = None


class ThemeMessage(Message):
    type: Literal["theme"] = "theme"
    theme_settings: ThemeSettings


class AuthUpdateMessage(Message):
    type: Literal["auth_update"] = "auth_update"
    auth: Auth


class AuthRevokeMessage(Message):
    type: Literal["auth_revoke"] = "auth_revoke"


class PermissionGrantedMessage(Message):
    type: Literal["permission_granted"] = "permission_granted"
    scope: str = Field(min_length=1)
    granted: bool
    auth: Optional[Auth] = None


class PermissionRevokedMessage(Message):
    type: Literal["permission_revoked"] = "permission_revoked"
    scope: str = Field(min_length=1)


# UI -> Host


class ReadyMessage(Message):
    type: Literal["ready"] = "ready"


class ActionMessage(Message):
    type: Literal["action"] = "action"
    action_name: str = Field(min_length=1)
    payload: Optional[Dict[str, Any]] = None


class ErrorMessage(Message):
    type: Literal["error"] = "error"
    code: str = Field(min_length=1)
    message: str = ""


class ResizeMessage(Message):
    type: Literal["resize"] = "resize"
    width: Optional[str] = None
    height: Optional[str] = None


class RequestPermissionMessage(Message):
    type: Literal["request_permission"] = "request_permission"
    scope: str = Field(min_length=1)
    reasoning: Optional[str] = None


HostMessage = Union[
    InitMessage,
    UpdateContextMessage,
    ThemeMessage,
    AuthUpdateMessage,
    AuthRevokeMessage,
    PermissionGrantedMessage,
    PermissionRevokedMessage,
]

UIMessage = Union[
    ReadyMessage,
    ActionMessage,
    ErrorMessage,
    ResizeMessage,
    RequestPermissionMessage,
]

HOST_MESSAGE_MODELS: Dict[str, Type[Message]] = {
    "init": InitMessage,
    "update_context": UpdateContextMessage,
    "theme": ThemeMessage,
    "auth_update": AuthUpdateMessage,
    "auth_revoke": AuthRevokeMessage,
    "permission_granted": PermissionGrantedMessage,
    "permission_revoked": PermissionRevokedMessage,
}

UI_MESSAGE_MODELS: Dict[str, Type[Message]] = {
    "ready": ReadyMessage,
    "action": ActionMessage,
    "error": ErrorMessage,
    "resize": ResizeMessage,
    "request_permission": RequestPermissionMessage,
}


def message_type_of(data: Any) -> Optional[str]:
    """Return the ``type`` tag of a raw message, or None when absent."""
    if not isinstance(data, Mapping):
        return None
    value = data.get("type")
    return value if isinstance(value, str) else None


def is_host_message(data: Any) -> bool:
    return message_type_of(data) in HOST_MESSAGE_TYPES


def is_ui_message(data: Any) -> bool:
    return message_type_of(data) in UI_MESSAGE_TYPES


def is_init_message(data: Any) -> bool:
    return message_type_of(data) == HostMessageType.INIT.value


def _parse(data: Any, models: Dict[str, Type[Message]]) -> Optional[Message]:
    message_type = message_type_of(data)
    model = models.get(message_type or "")
    if model is None:
        return None
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MessageFormatError(message_type or "", exc.errors()) from exc


def parse_host_message(data: Any) -> Optional[Message]:
    """Validate a raw host message.

    Returns None when the type is not a host message type and raises
    MessageFormatError when a host message type has a malformed shape.
    """
    return _parse(data, HOST_MESSAGE_MODELS)


def parse_ui_message(data: Any) -> Optional[Message]:
    """Validate a raw UI message; same contract as parse_host_message."""
    return _parse(data, UI_MESSAGE_MODELS)
