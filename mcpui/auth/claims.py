"""Compact signed-token models and unverified decoding."""

from __future__ import annotations

import secrets
from typing import Any, Dict, List, Optional, Union

import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

NONCE_BYTES = 16

_SCOPE_TYPES = (str, list, tuple, set, frozenset)


class TokenDecodeError(ValueError):
    """Raised when a token is not a well-formed three-segment signed token."""


class TokenHeader(BaseModel):
    model_config = ConfigDict(extra="allow")

    alg: str
    typ: str = "JWT"
    kid: str = ""


class TokenPayload(BaseModel):
    """Claims carried by an issued credential."""

    model_config = ConfigDict(extra="allow")

    iss: str = ""
    sub: str = ""
    aud: Union[str, List[str]] = ""
    exp: Optional[float] = None
    scope: List[str] = Field(default_factory=list)
    nonce: str = ""

    @model_validator(mode="before")
    @classmethod
    def _drop_malformed_scope(cls, data: Any) -> Any:
        # A scope claim that is neither a string nor a list counts as absent.
        if isinstance(data, dict) and "scope" in data and not isinstance(data["scope"], _SCOPE_TYPES):
            data = {key: value for key, value in data.items() if key != "scope"}
        return data

    @field_validator("scope", mode="before")
    @classmethod
    def _scope_as_list(cls, value: Any) -> List[str]:
        # Foreign tokens may carry a space-delimited string.
        if isinstance(value, str):
            return [item for item in value.split() if item]
        return [str(item) for item in value]


class DecodedToken(BaseModel):
    header: TokenHeader
    payload: TokenPayload


class KeySet(BaseModel):
    """Published verification keys (JWKS document)."""

    keys: List[Dict[str, Any]] = Field(default_factory=list)

    def find(self, kid: str) -> Optional[Dict[str, Any]]:
        for key in self.keys:
            if isinstance(key, dict) and key.get("kid") == kid:
                return key
        return None


def decode_token(token: str) -> DecodedToken:
    """Decode header and payload without verifying the signature."""
    if not isinstance(token, str) or token.count(".") != 2:
        raise TokenDecodeError("Invalid token format")

    try:
        header = jwt.get_unverified_header(token)
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise TokenDecodeError(f"Failed to decode token: {exc}") from exc

    try:
        return DecodedToken(
            header=TokenHeader.model_validate(header),
            payload=TokenPayload.model_validate(payload),
        )
    except ValidationError as exc:
        raise TokenDecodeError(f"Unexpected token structure: {exc.error_count()} error(s)") from exc


def token_scopes(token: str) -> List[str]:
    """Scopes claimed by ``token``; unverified, for pre-seeding only."""
    return list(decode_token(token).payload.scope)


def generate_nonce() -> str:
    return secrets.token_hex(NONCE_BYTES)
