# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Test configuration for third_auth.

Provider endpoints are served by an in-process ``httpx.MockTransport`` so no
test touches the network. Signing keys are generated once per session.
"""

from __future__ import annotations

import json
import os
import time
from typing import Any, Callable

# Keep module-level loggers quiet; set before third_auth is imported
os.environ.setdefault("LOG_TYPE", "silent")

import httpx
import jwt
from jwt.algorithms import RSAAlgorithm
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from third_auth import handler as handler_module
from third_auth import keys as keys_module
from third_auth import registry as registry_module
from third_auth.log import SilentLogger

TEST_KID = "test-key-1"


class FakeProviderServer:
    """Routes requests to canned responses and records every request."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        json_body: Any = None,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> None:
        if handler is None:
            def handler(request, status_code=status_code, json_body=json_body):
                return httpx.Response(status_code, json=json_body)
        self.routes[(method, url)] = handler

    def calls(self, url: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if str(r.url) == url and (method is None or r.method == method)
        ]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, str(request.url)))
        if handler is None:
            return httpx.Response(404, json={"error": "not_found"})
        return handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))


@pytest.fixture
def server():
    """Fake provider server."""
    return FakeProviderServer()


@pytest.fixture
def http_client(server):
    """Async client wired to the fake provider server."""
    return server.client()


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key used to sign identity tokens."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_jwk(rsa_private_key):
    """Public JWK matching rsa_private_key."""
    return make_jwk(rsa_private_key, TEST_KID)


@pytest.fixture(scope="session")
def ec_private_key():
    """EC P-256 key for Apple client secrets."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_private_pem(ec_private_key):
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def mint_token(rsa_private_key):
    """Sign a claim set as an identity token."""
    def _mint(claims: dict, kid: str = TEST_KID, key=None) -> str:
        return jwt.encode(claims, key or rsa_private_key, algorithm="RS256", headers={"kid": kid})
    return _mint


def make_jwk(private_key, kid: str) -> dict:
    """Public JWK dict for an RSA private key."""
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


def id_token_claims(issuer: str, audience: str, **extra: Any) -> dict:
    """Standard identity token claims valid for the next hour."""
    now = int(time.time())
    claims = {
        "iss": issuer,
        "aud": audience,
        "sub": "user-001",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(extra)
    return claims


@pytest.fixture
def captured_logs(monkeypatch):
    """Route the handler, key cache and registry loggers into one SilentLogger."""
    sink = SilentLogger()
    for module in (handler_module, keys_module, registry_module):
        monkeypatch.setattr(module, "logger", sink)
    return sink
