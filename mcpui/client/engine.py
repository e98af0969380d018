"""Protocol engine running inside an embedded UI.

The engine pins the host origin on ``init``, keeps the session state the host
pushes (user, credential, context, theme, granted scopes), validates
credentials in the background and re-publishes every inbound message as a
local event for the UI code.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from mcpui.auth.validation import KeySetFetcher, KeySetSource, validate_token
from mcpui.client.resize import ResizableRegion, format_px
from mcpui.permissions import ScopeRegistry
from mcpui.protocol.events import EventDispatcher, EventHandler, EventName
from mcpui.protocol.transport import InboundMessage, Transport
from mcpui.protocol.types import (
    PROTOCOL_VERSION,
    ActionMessage,
    Auth,
    AuthUpdateMessage,
    ErrorCode,
    ErrorMessage,
    HostMessageType,
    InitMessage,
    Message,
    MessageFormatError,
    PermissionGrantedMessage,
    PermissionRevokedMessage,
    ReadyMessage,
    RequestPermissionMessage,
    ResizeMessage,
    ThemeMessage,
    ThemeSettings,
    UpdateContextMessage,
    User,
    message_type_of,
    parse_host_message,
)
from mcpui.protocol.version import is_compatible_version

logger = logging.getLogger(__name__)


class ClientEvent(str, Enum):
    """Local events fired by the client engine (besides raw message types)."""

    INITIALIZED = "initialized"
    CONTEXT_UPDATED = "contextUpdated"
    THEME_UPDATED = "themeUpdated"
    AUTH_UPDATED = "authUpdated"
    AUTH_REVOKED = "authRevoked"
    PERMISSION_RESPONSE = "permissionResponse"
    PERMISSION_REVOKED = "permissionRevoked"


@dataclass
class ClientState:
    """Mutable per-session state of the embedded side."""

    host_origin: Optional[str] = None
    initialized: bool = False
    protocol_version: Optional[str] = None
    user: Optional[User] = None
    auth: Optional[Auth] = None
    context: Optional[Dict[str, Any]] = None
    theme_settings: Optional[ThemeSettings] = None
    authenticated: bool = False
    # Bumped on every credential change so stale validations can be discarded.
    auth_generation: int = 0
    granted_scopes: ScopeRegistry = field(default_factory=ScopeRegistry)


class ClientEngine:
    """Embedded-side protocol engine bound to one transport."""

    def __init__(
        self,
        transport: Transport,
        *,
        fetcher: Optional[KeySetSource] = None,
        executor: Optional[Executor] = None,
        protocol_version: str = PROTOCOL_VERSION,
    ) -> None:
        self.supported_version = protocol_version
        self._transport = transport
        self._fetcher: KeySetSource = fetcher or KeySetFetcher()
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="mcpui-auth"
        )
        self._lock = threading.RLock()
        self._state = ClientState()
        self._events = EventDispatcher([*ClientEvent, *HostMessageType], owner="client")
        self._pending: Set[Future] = set()
        self._region: Optional[ResizableRegion] = None
        self._closed = False
        self._handlers: Dict[str, Callable[[Any, str], None]] = {
            HostMessageType.INIT.value: self._handle_init,
            HostMessageType.UPDATE_CONTEXT.value: self._handle_update_context,
            HostMessageType.THEME.value: self._handle_theme,
            HostMessageType.AUTH_UPDATE.value: self._handle_auth_update,
            HostMessageType.AUTH_REVOKE.value: self._handle_auth_revoke,
            HostMessageType.PERMISSION_GRANTED.value: self._handle_permission_granted,
            HostMessageType.PERMISSION_REVOKED.value: self._handle_permission_revoked,
        }
        self._unsubscribe = transport.subscribe(self._on_message)

    @classmethod
    def from_config(cls, transport: Transport, config, **kwargs: Any) -> "ClientEngine":
        fetcher = KeySetFetcher(timeout_seconds=config.auth.jwks_fetch_timeout_seconds)
        return cls(transport, fetcher=fetcher, **kwargs)

    # Inbound

    def _on_message(self, inbound: InboundMessage) -> None:
        try:
            self._process(inbound)
        except Exception:  # pragma: no cover - final safety net
            logger.exception("Error processing message from %s", inbound.origin)

    def _process(self, inbound: InboundMessage) -> None:
        if self._closed:
            return

        message_type = message_type_of(inbound.data)
        if message_type is None:
            logger.debug("Ignoring non-protocol message from %s", inbound.origin)
            return

        with self._lock:
            pinned = self._state.host_origin
        if message_type != HostMessageType.INIT.value and pinned is not None and inbound.origin != pinned:
            logger.warning("Ignoring message from unauthorized origin: %s", inbound.origin)
            return

        try:
            message = parse_host_message(inbound.data)
        except MessageFormatError as exc:
            logger.warning("Malformed %s message from %s: %s", exc.message_type, inbound.origin, exc.errors)
            self._send_error(ErrorCode.PROTOCOL_ERROR, str(exc))
            return

        if message is None:
            logger.warning("Unknown message type: %s", message_type)
            return

        self._handlers[message_type](message, inbound.origin)
        self._events.emit(message_type, inbound.data)

    def _handle_init(self, message: InitMessage, origin: str) -> None:
        with self._lock:
            self._state.host_origin = origin
            self._state.protocol_version = message.protocol_version

        if not is_compatible_version(self.supported_version, message.protocol_version):
            logger.warning(
                "Incompatible host protocol version %s (supported %s)",
                message.protocol_version,
                self.supported_version,
            )
            self._send_error(
                ErrorCode.PROTOCOL_ERROR,
                f"Incompatible protocol version: {message.protocol_version}. "
                f"This UI requires version {self.supported_version}",
            )
            return

        with self._lock:
            self._state.user = message.user
            self._state.context = message.context
            self._state.theme_settings = message.theme_settings
            generation = self._set_auth(message.auth)
            self._state.initialized = True

        if message.auth is not None:
            self._schedule_validation(message.auth, generation)

        logger.info("Initialized by host %s protocol=%s", origin, message.protocol_version)
        self._events.emit(ClientEvent.INITIALIZED, message.to_wire())
        self._send(ReadyMessage())

    def _handle_update_context(self, message: UpdateContextMessage, _origin: str) -> None:
        with self._lock:
            self._state.context = message.context
        self._events.emit(ClientEvent.CONTEXT_UPDATED, message.context)

    def _handle_theme(self, message: ThemeMessage, _origin: str) -> None:
        with self._lock:
            self._state.theme_settings = message.theme_settings
        self._events.emit(ClientEvent.THEME_UPDATED, message.theme_settings)

    def _handle_auth_update(self, message: AuthUpdateMessage, _origin: str) -> None:
        with self._lock:
            generation = self._set_auth(message.auth)
        self._schedule_validation(message.auth, generation)
        self._events.emit(ClientEvent.AUTH_UPDATED, message.auth)

    def _handle_auth_revoke(self, _message: Message, _origin: str) -> None:
        with self._lock:
            self._set_auth(None)
            self._state.granted_scopes.clear()
        logger.info("Authentication revoked by host")
        self._events.emit(ClientEvent.AUTH_REVOKED, None)

    def _handle_permission_granted(self, message: PermissionGrantedMessage, _origin: str) -> None:
        if message.granted:
            with self._lock:
                self._state.granted_scopes.grant(message.scope)
                generation = self._set_auth(message.auth) if message.auth is not None else None
            if message.auth is not None and generation is not None:
                self._schedule_validation(message.auth, generation)

        self._events.emit(
            ClientEvent.PERMISSION_RESPONSE,
            {"scope": message.scope, "granted": message.granted},
        )

    def _handle_permission_revoked(self, message: PermissionRevokedMessage, _origin: str) -> None:
        self._state.granted_scopes.revoke(message.scope)
        self._events.emit(ClientEvent.PERMISSION_REVOKED, message.scope)

    # Credential validation

    def _set_auth(self, auth: Optional[Auth]) -> int:
        """Replace the credential; caller holds the lock."""
        self._state.auth = auth
        self._state.authenticated = False
        self._state.auth_generation += 1
        return self._state.auth_generation

    def _schedule_validation(self, auth: Auth, generation: int) -> None:
        if not auth.token or not auth.jwks_url:
            return
        try:
            future = self._executor.submit(self._validate_auth, auth, generation)
        except RuntimeError:
            logger.warning("Cannot validate credential: engine executor is shut down")
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._validation_done)

    def _validation_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Credential validation crashed: %s", future.exception())

    def _validate_auth(self, auth: Auth, generation: int) -> None:
        result = validate_token(auth.token, auth.jwks_url, fetcher=self._fetcher)
        with self._lock:
            if generation != self._state.auth_generation:
                logger.info("Discarding validation result for a superseded credential")
                return
            self._state.authenticated = result.valid
            if result.valid and result.payload is not None and "scope" in result.payload.model_fields_set:
                self._state.granted_scopes.replace(result.scopes)

        if not result.valid:
            self._send_error(ErrorCode.AUTH_ERROR, "Invalid authentication token")

    def wait_for_validation(self, timeout: Optional[float] = None) -> bool:
        """Block until in-flight validations finish; False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    # Outbound

    def _send(self, message: Message) -> bool:
        with self._lock:
            origin = self._state.host_origin
        if self._closed:
            logger.warning("Cannot send %s message: engine is closed", message.type)
            return False
        if origin is None:
            logger.warning("Cannot send %s message: host origin unknown", message.type)
            return False
        self._transport.post(message.to_wire(), origin)
        return True

    def _send_public(self, message: Message) -> bool:
        if not self.is_initialized:
            logger.warning("Cannot send %s message: not initialized by a host", message.type)
            return False
        return self._send(message)

    def _send_error(self, code: ErrorCode, text: str) -> bool:
        return self._send(ErrorMessage(code=code.value, message=text))

    def send_action(self, action_name: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        return self._send_public(ActionMessage(action_name=action_name, payload=payload))

    def request_permission(self, scope: str, reasoning: Optional[str] = None) -> bool:
        return self._send_public(RequestPermissionMessage(scope=scope, reasoning=reasoning))

    def resize(self, width: Optional[str] = None, height: Optional[str] = None) -> bool:
        return self._send_public(ResizeMessage(width=width, height=height))

    # Auto-resize

    def _on_region_resize(self, _width: float, height: float) -> None:
        self.resize(height=format_px(height))

    def enable_auto_resize(self, region: ResizableRegion) -> None:
        """Report every size change of ``region``; replaces any previous region."""
        with self._lock:
            previous = self._region
            self._region = region
        if previous is not None and previous is not region:
            previous.remove_resize_listener(self._on_region_resize)
        region.add_resize_listener(self._on_region_resize)

    def disable_auto_resize(self) -> None:
        with self._lock:
            region = self._region
            self._region = None
        if region is not None:
            region.remove_resize_listener(self._on_region_resize)

    @property
    def auto_resize(self) -> bool:
        with self._lock:
            return self._region is not None

    # Local events

    def on(self, event: EventName, handler: EventHandler) -> None:
        self._events.on(event, handler)

    def off(self, event: EventName, handler: EventHandler) -> None:
        self._events.off(event, handler)

    # Accessors

    def has_permission(self, scope: str) -> bool:
        return self._state.granted_scopes.has(scope)

    @property
    def granted_scopes(self) -> List[str]:
        return self._state.granted_scopes.snapshot()

    @property
    def user(self) -> Optional[User]:
        with self._lock:
            return self._state.user

    @property
    def context(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._state.context

    @property
    def theme_settings(self) -> Optional[ThemeSettings]:
        with self._lock:
            return self._state.theme_settings

    @property
    def auth(self) -> Optional[Auth]:
        with self._lock:
            return self._state.auth

    @property
    def is_authenticated(self) -> bool:
        with self._lock:
            return self._state.authenticated

    @property
    def protocol_version(self) -> Optional[str]:
        with self._lock:
            return self._state.protocol_version

    @property
    def is_initialized(self) -> bool:
        with self._lock:
            return self._state.initialized

    @property
    def host_origin(self) -> Optional[str]:
        with self._lock:
            return self._state.host_origin

    def close(self) -> None:
        """Stop listening, stop auto-resize and drop local subscribers."""
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()
        self.disable_auto_resize()
        self._events.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
