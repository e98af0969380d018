"""Pluggable token signers.

A signer owns one asymmetric keypair under a single key id. Keys are
generated on first use and cached for the life of the signer; regenerating
them invalidates every token signed with the previous pair.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Any, Dict, Optional, Protocol, Type

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, rsa
from jwt.algorithms import OKPAlgorithm, RSAAlgorithm

SUPPORTED_ALGORITHMS = ("RS256", "EdDSA")


class Signer(Protocol):
    algorithm: str
    key_id: str

    def sign(self, payload: Dict[str, Any], headers: Optional[Dict[str, Any]] = None) -> str:
        ...

    def public_jwk(self) -> Dict[str, Any]:
        ...

    def regenerate(self) -> None:
        ...


def default_key_id(today: Optional[date] = None) -> str:
    """Key id in ``YYYY-MM-DD-key1`` form."""
    current = today or date.today()
    return f"{current.isoformat()}-key1"


class _AsymmetricSigner:
    algorithm = ""
    _jwk_algorithm: Any = None
    _private_key_type: Any = None

    def __init__(self, *, key_id: Optional[str] = None, private_key: Any = None) -> None:
        self.key_id = key_id or default_key_id()
        self._lock = threading.Lock()
        self._private_key = private_key

    def _generate(self) -> Any:
        raise NotImplementedError

    @property
    def private_key(self) -> Any:
        with self._lock:
            if self._private_key is None:
                self._private_key = self._generate()
            return self._private_key

    @property
    def public_key(self) -> Any:
        return self.private_key.public_key()

    def regenerate(self) -> None:
        with self._lock:
            self._private_key = self._generate()

    def sign(self, payload: Dict[str, Any], headers: Optional[Dict[str, Any]] = None) -> str:
        merged = {"typ": "JWT", "kid": self.key_id}
        merged.update(headers or {})
        return jwt.encode(payload, self.private_key, algorithm=self.algorithm, headers=merged)

    def public_jwk(self) -> Dict[str, Any]:
        jwk = dict(self._jwk_algorithm.to_jwk(self.public_key, as_dict=True))
        jwk.update({"kid": self.key_id, "use": "sig", "alg": self.algorithm})
        return jwk

    def private_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @classmethod
    def from_pem(cls, pem: bytes, *, key_id: Optional[str] = None, password: Optional[bytes] = None):
        key = serialization.load_pem_private_key(pem, password=password)
        if not isinstance(key, cls._private_key_type):
            raise ValueError(f"PEM key is not usable for {cls.algorithm}")
        return cls(key_id=key_id, private_key=key)


class RS256Signer(_AsymmetricSigner):
    """RSASSA-PKCS1-v1_5 with SHA-256 over a 2048-bit key."""

    algorithm = "RS256"
    _jwk_algorithm = RSAAlgorithm
    _private_key_type = rsa.RSAPrivateKey

    def _generate(self) -> Any:
        return rsa.generate_private_key(public_exponent=65537, key_size=2048)


class EdDSASigner(_AsymmetricSigner):
    """Ed25519 signatures."""

    algorithm = "EdDSA"
    _jwk_algorithm = OKPAlgorithm
    _private_key_type = ed25519.Ed25519PrivateKey

    def _generate(self) -> Any:
        return ed25519.Ed25519PrivateKey.generate()


SIGNERS: Dict[str, Type[_AsymmetricSigner]] = {
    "RS256": RS256Signer,
    "EdDSA": EdDSASigner,
}


def create_signer(algorithm: str = "RS256", *, key_id: Optional[str] = None) -> _AsymmetricSigner:
    signer_cls = SIGNERS.get(algorithm)
    if signer_cls is None:
        raise ValueError(f"Unsupported signing algorithm: {algorithm}")
    return signer_cls(key_id=key_id)


def load_signer(pem: bytes, *, algorithm: str = "RS256", key_id: Optional[str] = None) -> _AsymmetricSigner:
    signer_cls = SIGNERS.get(algorithm)
    if signer_cls is None:
        raise ValueError(f"Unsupported signing algorithm: {algorithm}")
    return signer_cls.from_pem(pem, key_id=key_id)
