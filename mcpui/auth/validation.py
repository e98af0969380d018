"""Credential validation against a published key set."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol

import httpx
import jwt
from pydantic import ValidationError

from mcpui.auth.claims import KeySet, TokenDecodeError, TokenPayload, decode_token
from mcpui.auth.signing import SUPPORTED_ALGORITHMS

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 5.0


class KeySetFetchError(RuntimeError):
    """Raised when the verification key set cannot be retrieved."""


class KeySetSource(Protocol):
    def fetch(self, jwks_url: str) -> KeySet:
        ...


class KeySetFetcher:
    """Retrieve key set documents over HTTP.

    No caching and no retries; callers decide whether to fetch again.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout_seconds = max(0.1, float(timeout_seconds))
        self._client = client

    def fetch(self, jwks_url: str) -> KeySet:
        try:
            if self._client is not None:
                response = self._client.get(jwks_url, timeout=self.timeout_seconds)
                response.raise_for_status()
                data = response.json()
            else:
                with httpx.Client(timeout=self.timeout_seconds) as client:
                    response = client.get(jwks_url)
                    response.raise_for_status()
                    data = response.json()
        except httpx.HTTPError as exc:
            raise KeySetFetchError(f"Failed to fetch key set from {jwks_url}: {exc}") from exc
        except ValueError as exc:
            raise KeySetFetchError(f"Key set at {jwks_url} is not valid JSON") from exc

        try:
            return KeySet.model_validate(data)
        except ValidationError as exc:
            raise KeySetFetchError(f"Key set at {jwks_url} is malformed") from exc


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str = ""
    payload: Optional[TokenPayload] = None

    @property
    def scopes(self) -> List[str]:
        if not self.valid or self.payload is None:
            return []
        return list(self.payload.scope)


def _invalid(reason: str) -> ValidationResult:
    logger.warning("Token validation failed: %s", reason)
    return ValidationResult(valid=False, reason=reason)


def validate_token(
    token: str,
    jwks_url: str,
    *,
    fetcher: KeySetSource,
    now: Optional[float] = None,
) -> ValidationResult:
    """Decode, check expiry, fetch keys, locate ``kid`` and verify the signature.

    Never raises: every failure, expected or not, yields an invalid result.
    """
    try:
        try:
            decoded = decode_token(token)
        except TokenDecodeError as exc:
            return _invalid(f"malformed token: {exc}")

        current = time.time() if now is None else now
        exp = decoded.payload.exp
        if exp is not None and exp <= current:
            return _invalid("token expired")

        try:
            key_set = fetcher.fetch(jwks_url)
        except KeySetFetchError as exc:
            return _invalid(str(exc))

        kid = decoded.header.kid
        jwk = key_set.find(kid)
        if jwk is None:
            return _invalid(f"no key with kid={kid!r} in key set")

        try:
            public_key = jwt.PyJWK(jwk)
        except (jwt.PyJWKError, jwt.InvalidKeyError) as exc:
            return _invalid(f"unusable key {kid!r}: {exc}")

        algorithm = public_key.algorithm_name
        if algorithm not in SUPPORTED_ALGORITHMS or decoded.header.alg != algorithm:
            return _invalid(f"algorithm mismatch: header={decoded.header.alg} key={algorithm}")

        try:
            jwt.decode(
                token,
                key=public_key.key,
                algorithms=[algorithm],
                # Expiry was checked above against ``current``.
                options={"verify_aud": False, "verify_exp": False},
            )
        except jwt.InvalidTokenError as exc:
            return _invalid(f"signature verification failed: {exc}")

        logger.info("Token validated sub=%s kid=%s", decoded.payload.sub, kid)
        return ValidationResult(valid=True, payload=decoded.payload)
    except Exception as exc:  # pragma: no cover - final safety net
        logger.exception("Unexpected error during token validation")
        return ValidationResult(valid=False, reason=f"unexpected error: {exc}")
