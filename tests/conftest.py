from __future__ import annotations

import pytest

from mcpui.auth.signing import create_signer
from mcpui.auth.tokens import TokenService

from tests.helpers import JWKS_URL, InlineExecutor, StaticKeySource


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(
        issuer="test-host",
        jwks_url=JWKS_URL,
        signer=create_signer("EdDSA", key_id="2026-01-01-key1"),
    )


@pytest.fixture
def key_source(token_service: TokenService) -> StaticKeySource:
    return StaticKeySource(token_service)


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()
