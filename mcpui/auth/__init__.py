"""Credential issuance and validation."""

from mcpui.auth.claims import DecodedToken, KeySet, TokenDecodeError, decode_token, generate_nonce
from mcpui.auth.signing import EdDSASigner, RS256Signer, Signer, create_signer, load_signer
from mcpui.auth.tokens import TokenService
from mcpui.auth.validation import KeySetFetcher, KeySetFetchError, ValidationResult, validate_token

__all__ = [
    "DecodedToken",
    "EdDSASigner",
    "KeySet",
    "KeySetFetchError",
    "KeySetFetcher",
    "RS256Signer",
    "Signer",
    "TokenDecodeError",
    "TokenService",
    "ValidationResult",
    "create_signer",
    "decode_token",
    "generate_nonce",
    "load_signer",
    "validate_token",
]
