"""Host-side credential issuance and key set publication."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

from mcpui.auth.claims import KeySet, generate_nonce
from mcpui.auth.signing import Signer, create_signer
from mcpui.protocol.types import Auth

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_EXPIRATION = 3600


class TokenService:
    """Issue signed, scoped, time-limited credentials for embedded UIs."""

    def __init__(
        self,
        *,
        issuer: str,
        jwks_url: str,
        signer: Optional[Signer] = None,
        token_expiration: int = DEFAULT_TOKEN_EXPIRATION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not issuer:
            raise ValueError("issuer cannot be empty")
        self.issuer = issuer
        self.jwks_url = jwks_url
        self.signer: Signer = signer or create_signer("RS256")
        self.token_expiration = max(1, int(token_expiration))
        self._clock = clock

    @classmethod
    def from_config(cls, config, signer: Optional[Signer] = None) -> "TokenService":
        """Build from the ``auth`` section; a fresh key is generated unless ``signer`` is given."""
        auth = config.auth
        return cls(
            issuer=auth.issuer,
            jwks_url=auth.jwks_url,
            signer=signer or create_signer(auth.signing_algorithm, key_id=auth.key_id or None),
            token_expiration=auth.token_expiration,
        )

    @property
    def key_id(self) -> str:
        return self.signer.key_id

    def issue(
        self,
        subject: str,
        audience: str,
        scopes: Iterable[str] = (),
        expiry_seconds: Optional[int] = None,
        **extra_claims: Any,
    ) -> str:
        """Sign a credential for ``subject`` valid for ``expiry_seconds``."""
        lifetime = self.token_expiration if expiry_seconds is None else int(expiry_seconds)
        if lifetime <= 0:
            raise ValueError("expiry_seconds must be positive")

        payload: Dict[str, Any] = dict(extra_claims)
        payload.update(
            {
                "iss": self.issuer,
                "sub": subject,
                "aud": audience,
                "exp": int(self._clock()) + lifetime,
                "scope": list(scopes),
                "nonce": generate_nonce(),
            }
        )
        token = self.signer.sign(payload)
        logger.info(
            "Issued token sub=%s aud=%s scopes=%s kid=%s",
            subject,
            audience,
            payload["scope"],
            self.signer.key_id,
        )
        return token

    def create_auth(
        self,
        subject: str,
        audience: str,
        scopes: Iterable[str] = (),
        expiry_seconds: Optional[int] = None,
    ) -> Auth:
        token = self.issue(subject, audience, scopes, expiry_seconds)
        return Auth(token=token, jwks_url=self.jwks_url)

    def publish_key_set(self) -> KeySet:
        return KeySet(keys=[self.signer.public_jwk()])

    def key_set_json(self) -> str:
        return json.dumps(self.publish_key_set().model_dump(), separators=(",", ":"))
