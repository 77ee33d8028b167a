"""Shared fixtures for authentication tests."""

from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk


def _generate_rsa_pem() -> bytes:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _public_jwk(private_pem: bytes, kid: str) -> dict[str, Any]:
    public_key = jwk.construct(private_pem, algorithm="RS256").public_key()
    return {**public_key.to_dict(), "kid": kid, "use": "sig"}


@pytest.fixture(scope="session")
def rsa_private_pem() -> bytes:
    """RSA private key used to sign RS256 test tokens."""
    return _generate_rsa_pem()


@pytest.fixture(scope="session")
def other_rsa_private_pem() -> bytes:
    """A second RSA key, for rotation and wrong-key cases."""
    return _generate_rsa_pem()


@pytest.fixture(scope="session")
def jwks_document(rsa_private_pem: bytes, other_rsa_private_pem: bytes) -> dict[str, Any]:
    """JWKS as published by Supabase, with two signing keys."""
    return {
        "keys": [
            _public_jwk(rsa_private_pem, "key-1"),
            _public_jwk(other_rsa_private_pem, "key-2"),
        ]
    }


@pytest.fixture
def mock_http_client(jwks_document: dict[str, Any]) -> Mock:
    """HTTP client whose GET returns the test JWKS."""
    response = Mock()
    response.json.return_value = jwks_document
    response.raise_for_status = Mock()

    client = Mock()
    client.get = AsyncMock(return_value=response)
    client.aclose = AsyncMock()
    return client
