"""Host engine: owns the embedded UI sessions and the credential issuer."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from mcpui.auth.claims import KeySet
from mcpui.auth.signing import Signer, create_signer
from mcpui.auth.tokens import DEFAULT_TOKEN_EXPIRATION, TokenService
from mcpui.host.session import (
    ActionHandler,
    ConfirmPrompt,
    EmbeddedUI,
    EmbedOptions,
    ErrorHandler,
    PermissionRequestHandler,
    ResizeHandler,
)
from mcpui.protocol.transport import Transport
from mcpui.protocol.types import Auth, UIRegistration

logger = logging.getLogger(__name__)


class HostEngine:
    """Registry of embedded UI sessions sharing one token issuer and default handlers."""

    def __init__(
        self,
        *,
        issuer: str = "",
        jwks_url: str = "",
        key_id: Optional[str] = None,
        token_expiration: int = DEFAULT_TOKEN_EXPIRATION,
        signer: Optional[Signer] = None,
        token_service: Optional[TokenService] = None,
        embed_defaults: Optional[EmbedOptions] = None,
        executor: Optional[Executor] = None,
        confirm: Optional[ConfirmPrompt] = None,
    ) -> None:
        if token_service is None:
            token_service = TokenService(
                issuer=issuer,
                jwks_url=jwks_url,
                signer=signer or create_signer("RS256", key_id=key_id),
                token_expiration=token_expiration,
            )
        self.token_service = token_service
        self.embed_defaults = embed_defaults or EmbedOptions()
        self._executor = executor
        self._confirm = confirm
        self._lock = threading.Lock()
        self._uis: Dict[str, EmbeddedUI] = {}

        self._default_permission_request_handler: Optional[PermissionRequestHandler] = None
        self._default_action_handler: Optional[ActionHandler] = None
        self._default_error_handler: Optional[ErrorHandler] = None
        self._default_resize_handler: Optional[ResizeHandler] = None

    @classmethod
    def from_config(cls, config, **kwargs: Any) -> "HostEngine":
        token_service = kwargs.pop("token_service", None) or TokenService.from_config(
            config, signer=kwargs.pop("signer", None)
        )
        return cls(
            token_service=token_service,
            embed_defaults=kwargs.pop("embed_defaults", None) or EmbedOptions.from_config(config),
            **kwargs,
        )

    # Sessions

    def embed_ui(
        self,
        ui_id: str,
        registration: Union[UIRegistration, Mapping[str, Any]],
        url: str,
        transport: Transport,
        options: Optional[EmbedOptions] = None,
    ) -> EmbeddedUI:
        """Create a session for ``ui_id``, replacing and destroying any previous one."""
        ui = EmbeddedUI(
            registration,
            url,
            transport,
            options or EmbedOptions(**vars(self.embed_defaults)),
            executor=self._executor,
            confirm=self._confirm,
        )
        if self._default_permission_request_handler is not None:
            ui.set_permission_request_handler(self._default_permission_request_handler)
        if self._default_action_handler is not None:
            ui.set_action_handler(self._default_action_handler)
        if self._default_error_handler is not None:
            ui.set_error_handler(self._default_error_handler)
        if self._default_resize_handler is not None:
            ui.set_resize_handler(self._default_resize_handler)

        with self._lock:
            previous = self._uis.get(ui_id)
            self._uis[ui_id] = ui
        if previous is not None:
            logger.warning("Replacing existing UI session %s", ui_id)
            previous.destroy()

        logger.info("Embedded UI %s (%s) at %s", ui_id, ui.ui_name, url)
        return ui

    def get_ui(self, ui_id: str) -> Optional[EmbeddedUI]:
        with self._lock:
            return self._uis.get(ui_id)

    def remove_ui(self, ui_id: str) -> bool:
        with self._lock:
            ui = self._uis.pop(ui_id, None)
        if ui is None:
            return False
        ui.destroy()
        return True

    def ui_ids(self) -> List[str]:
        with self._lock:
            return list(self._uis)

    def _sessions(self) -> List[EmbeddedUI]:
        with self._lock:
            return list(self._uis.values())

    # Default handlers, applied to existing and future sessions

    def set_default_permission_request_handler(self, handler: Optional[PermissionRequestHandler]) -> None:
        self._default_permission_request_handler = handler
        for ui in self._sessions():
            ui.set_permission_request_handler(handler)

    def set_default_action_handler(self, handler: Optional[ActionHandler]) -> None:
        self._default_action_handler = handler
        for ui in self._sessions():
            ui.set_action_handler(handler)

    def set_default_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        self._default_error_handler = handler
        for ui in self._sessions():
            ui.set_error_handler(handler)

    def set_default_resize_handler(self, handler: Optional[ResizeHandler]) -> None:
        self._default_resize_handler = handler
        for ui in self._sessions():
            ui.set_resize_handler(handler)

    # Credentials

    @property
    def jwks_url(self) -> str:
        return self.token_service.jwks_url

    def create_token(
        self,
        user_id: str,
        audience: str,
        scopes: Iterable[str] = (),
        expiry_seconds: Optional[int] = None,
    ) -> str:
        return self.token_service.issue(user_id, audience, scopes, expiry_seconds)

    def create_auth(
        self,
        user_id: str,
        audience: str,
        scopes: Iterable[str] = (),
        expiry_seconds: Optional[int] = None,
    ) -> Auth:
        return self.token_service.create_auth(user_id, audience, scopes, expiry_seconds)

    def get_jwks(self) -> KeySet:
        return self.token_service.publish_key_set()

    def serve_jwks(self) -> str:
        """Key set as the JSON document a key endpoint should return."""
        return self.token_service.key_set_json()

    def close(self) -> None:
        """Destroy every session."""
        with self._lock:
            sessions = list(self._uis.values())
            self._uis.clear()
        for ui in sessions:
            ui.destroy()
