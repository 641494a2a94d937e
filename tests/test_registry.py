# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Tests for the handler registry."""

import asyncio
from unittest.mock import patch

import httpx
import pytest
from pydantic import ValidationError

from third_auth import (
    AppleAuthHandler,
    AppleCredentials,
    ClientSecretError,
    ClientSettings,
    GoogleCredentials,
    HandlerNotFoundError,
    HandlerRegistry,
    KeyFetchError,
    LinkedInAuthHandler,
    LinkedInCredentials,
    ProviderType,
    SecretRotationError,
    SnapChatAuthHandler,
    SnapChatCredentials,
    ThirdAuthError,
    UnsupportedProviderError,
    XAuthHandler,
    XCredentials,
)
from third_auth.apple_provider import APPLE_KEYS_URL
from third_auth.google_provider import GOOGLE_CERTS_URL


@pytest.fixture
def registry(http_client):
    return HandlerRegistry(http_client=http_client)


@pytest.fixture
def apple_keys(server, rsa_jwk):
    server.add("GET", APPLE_KEYS_URL, json_body={"keys": [rsa_jwk]})


@pytest.fixture
def apple_credentials(ec_private_pem):
    def _make(client_id="com.example.app"):
        return AppleCredentials(
            client_id=client_id,
            team_id="TEAM123456",
            key_id="KEY1234567",
            private_key=ec_private_pem,
        )
    return _make


def x_credentials(client_id="x-client"):
    return XCredentials(client_id=client_id, client_secret="secret", redirect_uri="https://app.example.com/x")


class TestRegisterHandler:
    """Tests for HandlerRegistry.register_handler."""

    @pytest.mark.asyncio
    async def test_register_builds_handler_for_provider(self, registry):
        """Test each provider type dispatches to its handler class."""
        x = await registry.register_handler(x_credentials(), ProviderType.X)
        linkedin = await registry.register_handler(
            LinkedInCredentials(client_id="li", client_secret="s", redirect_uri="https://app.example.com/li"),
            ProviderType.LINKEDIN,
        )
        snap = await registry.register_handler(
            SnapChatCredentials(client_id="snap", client_secret="s", redirect_uri="https://app.example.com/snap"),
            ProviderType.SNAPCHAT,
        )

        assert isinstance(x, XAuthHandler)
        assert isinstance(linkedin, LinkedInAuthHandler)
        assert isinstance(snap, SnapChatAuthHandler)
        assert x.http_client is registry.http_client

    @pytest.mark.asyncio
    async def test_register_is_idempotent(self, registry, server, apple_keys, apple_credentials):
        """Test registering the same client ID twice returns the first handler."""
        first = await registry.register_handler(apple_credentials(), ProviderType.APPLE)
        second = await registry.register_handler(apple_credentials(), ProviderType.APPLE)

        assert first is second
        assert len(server.calls(APPLE_KEYS_URL)) == 1

    @pytest.mark.asyncio
    async def test_first_registration_wins(self, registry):
        """Test different credentials for a registered client ID are ignored."""
        first = await registry.register_handler(x_credentials(), ProviderType.X)
        other = XCredentials(client_id="x-client", client_secret="changed", redirect_uri="https://other.example.com")

        second = await registry.register_handler(other, ProviderType.X)

        assert second is first
        assert second.credentials.client_secret == "secret"

    @pytest.mark.asyncio
    async def test_concurrent_registration_initializes_once(
        self, registry, server, apple_keys, apple_credentials
    ):
        """Test concurrent registrations of one client ID share one handler."""
        handlers = await asyncio.gather(
            *(registry.register_handler(apple_credentials(), ProviderType.APPLE) for _ in range(5))
        )

        assert all(h is handlers[0] for h in handlers)
        assert len(server.calls(APPLE_KEYS_URL)) == 1
        assert len(registry.handlers(ProviderType.APPLE)) == 1

    @pytest.mark.asyncio
    async def test_same_client_id_across_providers(self, registry, server, rsa_jwk):
        """Test directories are kept per provider."""
        server.add("GET", GOOGLE_CERTS_URL, json_body={"keys": [rsa_jwk]})

        x = await registry.register_handler(x_credentials("shared"), ProviderType.X)
        google = await registry.register_handler(
            GoogleCredentials(client_id="shared", client_secret="s"), ProviderType.GOOGLE
        )

        assert x is not google
        assert registry.get_handler(ProviderType.X, "shared") is x
        assert registry.get_handler(ProviderType.GOOGLE, "shared") is google

    @pytest.mark.asyncio
    async def test_apple_handlers_share_key_cache(self, registry, apple_keys, apple_credentials):
        """Test all Apple handlers in a registry use one key set."""
        first = await registry.register_handler(apple_credentials("com.example.one"), ProviderType.APPLE)
        second = await registry.register_handler(apple_credentials("com.example.two"), ProviderType.APPLE)

        assert first is not second
        assert first.key_cache is second.key_cache

    @pytest.mark.asyncio
    async def test_mapping_credentials_are_validated(self, registry):
        """Test a plain mapping is accepted and validated into the provider model."""
        handler = await registry.register_handler(
            {"client_id": "x-client", "client_secret": "secret", "redirect_uri": "https://app.example.com/x"},
            "x",
        )

        assert isinstance(handler.credentials, XCredentials)

    @pytest.mark.asyncio
    async def test_invalid_mapping_raises_validation_error(self, registry):
        """Test a mapping missing required fields is rejected."""
        with pytest.raises(ValidationError):
            await registry.register_handler({"client_id": "x-client"}, ProviderType.X)

        assert registry.handlers(ProviderType.X) == []

    @pytest.mark.asyncio
    async def test_provider_name_is_case_insensitive(self, registry):
        """Test provider names are matched regardless of case."""
        handler = await registry.register_handler(x_credentials(), "X")

        assert registry.get_handler("x", "x-client") is handler

    @pytest.mark.asyncio
    async def test_unsupported_provider(self, registry):
        """Test an unknown provider type raises UnsupportedProviderError."""
        with pytest.raises(UnsupportedProviderError):
            await registry.register_handler(x_credentials(), "Facebook")

    @pytest.mark.asyncio
    async def test_mismatched_credentials(self, registry):
        """Test credentials for another provider are rejected."""
        with pytest.raises(TypeError, match="XCredentials"):
            await registry.register_handler(x_credentials(), ProviderType.LINKEDIN)

    @pytest.mark.asyncio
    async def test_failed_initialize_stores_nothing(self, registry, server, apple_credentials):
        """Test a handler whose initialization fails is not registered."""
        server.add("GET", APPLE_KEYS_URL, status_code=500, json_body={})

        with pytest.raises(KeyFetchError):
            await registry.register_handler(apple_credentials(), ProviderType.APPLE)

        with pytest.raises(HandlerNotFoundError):
            registry.get_handler(ProviderType.APPLE, "com.example.app")

    @pytest.mark.asyncio
    async def test_retry_after_failed_initialize(self, registry, server, rsa_jwk, apple_credentials):
        """Test registration can be retried once the provider recovers."""
        server.add("GET", APPLE_KEYS_URL, status_code=500, json_body={})
        with pytest.raises(KeyFetchError):
            await registry.register_handler(apple_credentials(), ProviderType.APPLE)

        server.add("GET", APPLE_KEYS_URL, json_body={"keys": [rsa_jwk]})
        handler = await registry.register_handler(apple_credentials(), ProviderType.APPLE)

        assert isinstance(handler, AppleAuthHandler)
        assert handler.client_secret is not None


class TestGetHandler:
    """Tests for HandlerRegistry.get_handler."""

    def test_not_found(self, registry, server):
        """Test an unregistered pair raises without any network call."""
        with pytest.raises(HandlerNotFoundError) as exc_info:
            registry.get_handler(ProviderType.SNAPCHAT, "missing")

        assert isinstance(exc_info.value, ThirdAuthError)
        assert "missing" in str(exc_info.value)
        assert server.requests == []

    def test_unsupported_provider(self, registry):
        """Test an unknown provider type raises UnsupportedProviderError."""
        with pytest.raises(UnsupportedProviderError):
            registry.get_handler("MySpace", "client")

    @pytest.mark.asyncio
    async def test_clear(self, registry):
        """Test clear drops every registered handler."""
        await registry.register_handler(x_credentials(), ProviderType.X)

        registry.clear()

        with pytest.raises(HandlerNotFoundError):
            registry.get_handler(ProviderType.X, "x-client")

    @pytest.mark.asyncio
    async def test_clear_during_registration(self, registry, server, rsa_jwk, apple_credentials):
        """Test a registration racing clear() still yields a single handler."""
        release = asyncio.Event()

        async def slow_keys(request):
            await release.wait()
            return httpx.Response(200, json={"keys": [rsa_jwk]})

        server.add("GET", APPLE_KEYS_URL, handler=slow_keys)

        first = asyncio.create_task(registry.register_handler(apple_credentials(), ProviderType.APPLE))
        while not server.calls(APPLE_KEYS_URL):
            await asyncio.sleep(0)

        registry.clear()
        second = asyncio.create_task(registry.register_handler(apple_credentials(), ProviderType.APPLE))
        await asyncio.sleep(0)
        release.set()

        one, two = await asyncio.gather(first, second)

        assert one is two
        assert len(server.calls(APPLE_KEYS_URL)) == 1


class TestRotateAppleSecrets:
    """Tests for HandlerRegistry.rotate_apple_secrets."""

    @pytest.mark.asyncio
    async def test_no_apple_handlers(self, registry):
        """Test rotation with nothing registered is a no-op."""
        assert await registry.rotate_apple_secrets() == []

    @pytest.mark.asyncio
    async def test_rotates_every_handler(self, registry, apple_keys, apple_credentials):
        """Test each Apple handler gets a fresh secret."""
        one = await registry.register_handler(apple_credentials("com.example.one"), ProviderType.APPLE)
        two = await registry.register_handler(apple_credentials("com.example.two"), ProviderType.APPLE)
        one.client_secret = two.client_secret = "stale"

        results = await registry.rotate_apple_secrets()

        assert [r.client_id for r in results] == ["com.example.one", "com.example.two"]
        assert all(r.ok for r in results)
        assert one.client_secret != "stale"
        assert two.client_secret != "stale"

    @pytest.mark.asyncio
    async def test_partial_failure_reports_and_continues(
        self, registry, apple_keys, apple_credentials, monkeypatch
    ):
        """Test one failing rotation does not stop the others."""
        one = await registry.register_handler(apple_credentials("com.example.one"), ProviderType.APPLE)
        two = await registry.register_handler(apple_credentials("com.example.two"), ProviderType.APPLE)
        two.client_secret = "stale"

        def broken(now=None):
            raise ClientSecretError("key revoked", provider="Apple")

        monkeypatch.setattr(one, "generate_client_secret", broken)

        results = await registry.rotate_apple_secrets()

        assert [r.ok for r in results] == [False, True]
        assert isinstance(results[0].error, ClientSecretError)
        assert two.client_secret != "stale"

    @pytest.mark.asyncio
    async def test_rotation_failure_logged(self, registry, apple_keys, apple_credentials, captured_logs):
        """Test each failed rotation and the summary are logged."""
        one = await registry.register_handler(apple_credentials("com.example.one"), ProviderType.APPLE)
        await registry.register_handler(apple_credentials("com.example.two"), ProviderType.APPLE)
        captured_logs.clear_logs()

        with patch.object(
            one, "generate_client_secret", side_effect=ClientSecretError("key revoked", provider="Apple")
        ):
            await registry.rotate_apple_secrets()

        [failure] = captured_logs.find("Client secret rotation failed", level="ERROR")
        assert failure["extra"]["client_id"] == "com.example.one"
        assert failure["extra"]["provider"] == "Apple"
        [summary] = captured_logs.find("Rotated Apple client secrets", level="INFO")
        assert summary["extra"] == {"rotated": 1, "failed": 1}

    @pytest.mark.asyncio
    async def test_partial_failure_strict(self, registry, apple_keys, apple_credentials):
        """Test strict mode raises when any rotation fails."""
        one = await registry.register_handler(apple_credentials("com.example.one"), ProviderType.APPLE)
        await registry.register_handler(apple_credentials("com.example.two"), ProviderType.APPLE)

        with patch.object(
            one, "generate_client_secret", side_effect=ClientSecretError("key revoked", provider="Apple")
        ):
            with pytest.raises(SecretRotationError) as exc_info:
                await registry.rotate_apple_secrets(strict=True)

        assert [r.ok for r in exc_info.value.results] == [False, True]

    @pytest.mark.asyncio
    async def test_all_failures_raise(self, registry, apple_keys, apple_credentials, monkeypatch):
        """Test rotation raises when no secret could be regenerated."""
        handler = await registry.register_handler(apple_credentials(), ProviderType.APPLE)

        def broken(now=None):
            raise ClientSecretError("key revoked", provider="Apple")

        monkeypatch.setattr(handler, "generate_client_secret", broken)

        with pytest.raises(SecretRotationError) as exc_info:
            await registry.rotate_apple_secrets()

        assert len(exc_info.value.results) == 1
        assert not exc_info.value.results[0].ok


class TestClientLifecycle:
    """Tests for HTTP client ownership."""

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        """Test a registry-built client is closed on exit."""
        async with HandlerRegistry(settings=ClientSettings(timeout=3.0, user_agent="tests/1.0")) as registry:
            client = registry.http_client
            assert client.headers["User-Agent"] == "tests/1.0"
            assert client.timeout.read == 3.0

        assert client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self):
        """Test a caller-supplied client is not closed by the registry."""
        client = httpx.AsyncClient()
        async with HandlerRegistry(http_client=client):
            pass

        assert not client.is_closed
        await client.aclose()
