"""Host-side state and message handling for one embedded UI."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set, Union

from mcpui.auth.claims import TokenDecodeError, token_scopes
from mcpui.host.prompt import confirm_permission_request
from mcpui.permissions import ScopeRegistry
from mcpui.protocol.events import EventDispatcher, EventHandler, EventName
from mcpui.protocol.transport import InboundMessage, Transport, origin_of
from mcpui.protocol.types import (
    PROTOCOL_VERSION,
    ActionMessage,
    Auth,
    AuthRevokeMessage,
    AuthUpdateMessage,
    ErrorMessage,
    InitMessage,
    Message,
    MessageFormatError,
    PermissionGrantedMessage,
    PermissionRevokedMessage,
    RequestPermissionMessage,
    ResizeMessage,
    ThemeMessage,
    ThemeSettings,
    UIMessageType,
    UIRegistration,
    UpdateContextMessage,
    User,
    message_type_of,
    parse_ui_message,
)
from mcpui.protocol.version import supports_version

logger = logging.getLogger(__name__)

PermissionRequestHandler = Callable[[str, Optional[str]], Union[bool, Awaitable[bool]]]
ActionHandler = Callable[[str, Optional[Dict[str, Any]], "EmbeddedUI"], None]
ErrorHandler = Callable[[str, str, "EmbeddedUI"], None]
ResizeHandler = Callable[[Optional[str], Optional[str], "EmbeddedUI"], None]
ConfirmPrompt = Callable[[str, str, Optional[str]], bool]


class HostEvent(str, Enum):
    """Local events fired by a host session, one per accepted inbound UI message.

    Subscribers receive the raw wire message dict as sent by the UI, for
    example ``{"type": "resize", "height": "240px"}``, not a parsed model.
    """

    READY = UIMessageType.READY.value
    ACTION = UIMessageType.ACTION.value
    ERROR = UIMessageType.ERROR.value
    RESIZE = UIMessageType.RESIZE.value
    REQUEST_PERMISSION = UIMessageType.REQUEST_PERMISSION.value


@dataclass
class EmbedOptions:
    width: str = "100%"
    height: str = "auto"
    auto_resize: bool = True

    @classmethod
    def from_config(cls, config) -> "EmbedOptions":
        embed = config.embed
        return cls(width=embed.frame_width, height=embed.frame_height, auto_resize=embed.auto_resize)


@dataclass
class SessionState:
    """Mutable per-session state of the host side."""

    user: Optional[User] = None
    auth: Optional[Auth] = None
    context: Optional[Dict[str, Any]] = None
    theme_settings: Optional[ThemeSettings] = None
    ready: bool = False
    width: str = "100%"
    height: str = "auto"
    granted_scopes: ScopeRegistry = field(default_factory=ScopeRegistry)


async def _resolve(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _coerce(model, value):
    if value is None or isinstance(value, model):
        return value
    return model.model_validate(value)


class EmbeddedUI:
    """One embedded UI session: its transport endpoint, state and handlers."""

    def __init__(
        self,
        registration: Union[UIRegistration, Mapping[str, Any]],
        url: str,
        transport: Transport,
        options: Optional[EmbedOptions] = None,
        *,
        executor: Optional[Executor] = None,
        confirm: Optional[ConfirmPrompt] = None,
    ) -> None:
        self._registration = _coerce(UIRegistration, registration)
        self._url = url
        self._origin = origin_of(url)
        self._transport = transport
        self._options = options or EmbedOptions()
        self._state = SessionState(width=self._options.width, height=self._options.height)
        self._lock = threading.RLock()
        self._events = EventDispatcher(HostEvent, owner="host")
        self._confirm: ConfirmPrompt = confirm or confirm_permission_request
        self._owns_executor = executor is None
        self._executor: Executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mcpui-permission"
        )
        self._pending: Set[Future] = set()
        self._destroyed = False

        self._permission_request_handler: Optional[PermissionRequestHandler] = None
        self._action_handler: Optional[ActionHandler] = None
        self._error_handler: Optional[ErrorHandler] = None
        self._resize_handler: Optional[ResizeHandler] = None

        if not supports_version(self._registration.protocol_support, PROTOCOL_VERSION):
            logger.warning(
                "UI %s declares protocol support %s..%s which excludes host version %s",
                self._registration.ui_name,
                self._registration.protocol_support.min_version,
                self._registration.protocol_support.target_version,
                PROTOCOL_VERSION,
            )

        self._dispatch: Dict[str, Callable[[Any], None]] = {
            UIMessageType.READY.value: self._handle_ready,
            UIMessageType.ACTION.value: self._handle_action,
            UIMessageType.ERROR.value: self._handle_error,
            UIMessageType.RESIZE.value: self._handle_resize,
            UIMessageType.REQUEST_PERMISSION.value: self._handle_request_permission,
        }
        self._unsubscribe = transport.subscribe(self._on_message)

    # Inbound

    def _on_message(self, inbound: InboundMessage) -> None:
        try:
            self._process(inbound)
        except Exception:  # pragma: no cover - final safety net
            logger.exception("Error processing message for UI %s", self._registration.ui_name)

    def _process(self, inbound: InboundMessage) -> None:
        if self._destroyed:
            return
        # Other frames share the host listener; only this session's frame is accepted.
        if inbound.origin != self.origin or inbound.source is not self._transport.peer:
            return

        try:
            message = parse_ui_message(inbound.data)
        except MessageFormatError as exc:
            logger.warning("Malformed %s message from UI %s: %s", exc.message_type, self.ui_name, exc.errors)
            return

        if message is None:
            logger.warning("Unknown message type: %s", message_type_of(inbound.data))
            return

        self._dispatch[message.type](message)
        self._events.emit(message.type, inbound.data)

    def _handle_ready(self, _message: Message) -> None:
        with self._lock:
            self._state.ready = True
        logger.info("UI %s is ready", self.ui_name)

    def _handle_action(self, message: ActionMessage) -> None:
        handler = self._action_handler
        if handler is not None:
            self._call_handler("action", handler, message.action_name, message.payload, self)

    def _handle_error(self, message: ErrorMessage) -> None:
        logger.warning("UI %s reported %s: %s", self.ui_name, message.code, message.message)
        handler = self._error_handler
        if handler is not None:
            self._call_handler("error", handler, message.code, message.message, self)

    def _handle_resize(self, message: ResizeMessage) -> None:
        if self._options.auto_resize:
            with self._lock:
                if message.height:
                    self._state.height = message.height
                if message.width:
                    self._state.width = message.width
        handler = self._resize_handler
        if handler is not None:
            self._call_handler("resize", handler, message.width, message.height, self)

    def _handle_request_permission(self, message: RequestPermissionMessage) -> None:
        scope = message.scope
        if scope not in self._registration.permissions.optional_scopes:
            logger.warning(
                "UI %s requested scope %r which is not declared in its optional_scopes",
                self.ui_name,
                scope,
            )
            self.send_permission_granted(scope, False)
            return

        if self._state.granted_scopes.has(scope):
            self.send_permission_granted(scope, True)
            return

        try:
            future = self._executor.submit(self._negotiate, scope, message.reasoning)
        except RuntimeError:
            logger.warning("Cannot negotiate %s: session executor is shut down", scope)
            self.send_permission_granted(scope, False)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._negotiation_done)

    def _negotiation_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Permission negotiation crashed: %s", future.exception())

    def _negotiate(self, scope: str, reasoning: Optional[str]) -> bool:
        handler = self._permission_request_handler
        granted = False
        try:
            if handler is not None:
                result = handler(scope, reasoning)
            else:
                result = self._confirm(self.ui_name, scope, reasoning)
            if inspect.isawaitable(result):
                result = asyncio.run(_resolve(result))
            if isinstance(result, bool):
                granted = result
            else:
                logger.warning("Permission handler for %s returned %r, denying", scope, result)
        except Exception:
            logger.exception("Error in permission request handler for %s", scope)

        logger.info("Permission %s for UI %s: %s", scope, self.ui_name, "granted" if granted else "denied")
        self.send_permission_granted(scope, granted)
        return granted

    def _call_handler(self, kind: str, handler: Callable[..., None], *args: Any) -> None:
        try:
            handler(*args)
        except Exception:
            logger.exception("Error in %s handler for UI %s", kind, self.ui_name)

    def wait_for_permissions(self, timeout: Optional[float] = None) -> bool:
        """Block until in-flight permission negotiations finish; False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    # Outbound

    def _send(self, message: Message) -> bool:
        if self._destroyed:
            logger.warning("Cannot send %s message: UI %s is destroyed", message.type, self.ui_name)
            return False
        self._transport.post(message.to_wire(), self.origin)
        return True

    def init(
        self,
        user: Union[User, Mapping[str, Any], None] = None,
        auth: Union[Auth, Mapping[str, Any], None] = None,
        context: Optional[Dict[str, Any]] = None,
        theme_settings: Union[ThemeSettings, Mapping[str, Any], None] = None,
    ) -> bool:
        """Seed session state and send ``init``.

        Scopes claimed by ``auth`` are added to the granted set without
        verification. Repeated calls resend the full state.
        """
        user = _coerce(User, user)
        auth = _coerce(Auth, auth)
        theme_settings = _coerce(ThemeSettings, theme_settings)

        with self._lock:
            self._state.user = user
            self._state.auth = auth
            self._state.context = context
            self._state.theme_settings = theme_settings

        if auth is not None and auth.token:
            try:
                self._state.granted_scopes.grant_many(token_scopes(auth.token))
            except TokenDecodeError as exc:
                logger.error("Error extracting scopes from token: %s", exc)

        return self._send(
            InitMessage(
                protocol_version=PROTOCOL_VERSION,
                user=user,
                auth=auth,
                context=context,
                theme_settings=theme_settings,
            )
        )

    def update_context(self, context: Optional[Dict[str, Any]]) -> bool:
        with self._lock:
            self._state.context = context
        return self._send(UpdateContextMessage(context=context))

    def update_theme(self, theme_settings: Union[ThemeSettings, Mapping[str, Any]]) -> bool:
        theme_settings = _coerce(ThemeSettings, theme_settings)
        with self._lock:
            self._state.theme_settings = theme_settings
        return self._send(ThemeMessage(theme_settings=theme_settings))

    def update_auth(self, auth: Union[Auth, Mapping[str, Any]]) -> bool:
        auth = _coerce(Auth, auth)
        with self._lock:
            self._state.auth = auth
        return self._send(AuthUpdateMessage(auth=auth))

    def revoke_auth(self) -> bool:
        with self._lock:
            self._state.auth = None
        self._state.granted_scopes.clear()
        return self._send(AuthRevokeMessage())

    def send_permission_granted(
        self,
        scope: str,
        granted: bool,
        auth: Union[Auth, Mapping[str, Any], None] = None,
    ) -> bool:
        """Send a grant/deny result; ``auth`` is a caller-supplied refreshed credential."""
        auth = _coerce(Auth, auth) if granted else None
        if granted:
            self._state.granted_scopes.grant(scope)
            if auth is not None:
                with self._lock:
                    self._state.auth = auth
        return self._send(PermissionGrantedMessage(scope=scope, granted=granted, auth=auth))

    def revoke_permission(self, scope: str) -> bool:
        self._state.granted_scopes.revoke(scope)
        return self._send(PermissionRevokedMessage(scope=scope))

    def update_url(self, url: str) -> None:
        """Point the session at a new URL; the UI must signal ``ready`` again."""
        origin = origin_of(url)
        with self._lock:
            self._url = url
            self._origin = origin
            self._state.ready = False

    def destroy(self) -> None:
        """Release the transport subscription and clear handlers and grants."""
        if self._destroyed:
            return
        self._destroyed = True
        self._unsubscribe()
        self._events.clear()
        self._permission_request_handler = None
        self._action_handler = None
        self._error_handler = None
        self._resize_handler = None
        self._state.granted_scopes.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info("Destroyed UI session %s", self.ui_name)

    # Handlers and local events

    def set_permission_request_handler(self, handler: Optional[PermissionRequestHandler]) -> None:
        self._permission_request_handler = handler

    def set_action_handler(self, handler: Optional[ActionHandler]) -> None:
        self._action_handler = handler

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        self._error_handler = handler

    def set_resize_handler(self, handler: Optional[ResizeHandler]) -> None:
        self._resize_handler = handler

    def on(self, event: EventName, handler: EventHandler) -> None:
        self._events.on(event, handler)

    def off(self, event: EventName, handler: EventHandler) -> None:
        self._events.off(event, handler)

    # Accessors

    @property
    def registration(self) -> UIRegistration:
        return self._registration

    @property
    def ui_name(self) -> str:
        return self._registration.ui_name

    @property
    def url(self) -> str:
        with self._lock:
            return self._url

    @property
    def origin(self) -> str:
        with self._lock:
            return self._origin

    @property
    def options(self) -> EmbedOptions:
        return self._options

    @property
    def granted_scopes(self) -> List[str]:
        return self._state.granted_scopes.snapshot()

    @property
    def is_ready(self) -> bool:
        with self._lock:
            return self._state.ready

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def width(self) -> str:
        with self._lock:
            return self._state.width

    @property
    def height(self) -> str:
        with self._lock:
            return self._state.height

    @property
    def user(self) -> Optional[User]:
        with self._lock:
            return self._state.user

    @property
    def auth(self) -> Optional[Auth]:
        with self._lock:
            return self._state.auth

    @property
    def context(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._state.context

    @property
    def theme_settings(self) -> Optional[ThemeSettings]:
        with self._lock:
            return self._state.theme_settings
