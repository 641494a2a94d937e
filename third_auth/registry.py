# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Registry of credential handlers keyed by provider and client ID.

A host application builds one :class:`HandlerRegistry` at startup and passes
it to its request handlers. Registering the same (provider, client ID) pair
twice returns the instance created the first time, so several tenant
configurations of one provider can coexist while each is initialized once.

Usage:
    from third_auth import AppleCredentials, HandlerRegistry, ProviderType

    async with HandlerRegistry() as registry:
        await registry.register_handler(
            AppleCredentials(client_id="com.example.app", team_id="TEAM",
                             key_id="KEY", private_key=pem),
            ProviderType.APPLE,
        )
        handler = registry.get_handler(ProviderType.APPLE, "com.example.app")
        user = await handler.validate_user_credentials(authorization_code)
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx
from pydantic import ValidationError

from .apple_provider import APPLE_KEYS_URL, AppleAuthHandler
from .config import ClientSettings
from .errors import HandlerNotFoundError, SecretRotationError, UnsupportedProviderError
from .google_provider import GOOGLE_CERTS_URL, GoogleAuthHandler
from .handler import AuthHandler
from .keys import JWKSCache
from .linkedin_provider import LINKEDIN_JWKS_URL, LinkedInAuthHandler
from .log import create_logger
from .models import CREDENTIAL_MODELS, ProviderCredentials, ProviderType, RotationResult
from .snapchat_provider import SnapChatAuthHandler
from .x_provider import XAuthHandler

logger = create_logger(name="third_auth.registry")


class HandlerRegistry:
    """Directory of provider handlers.

    Attributes:
        http_client: Async HTTP client shared by every handler
        settings: Client settings used when the registry builds its own client
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[ClientSettings] = None,
    ):
        """Initialize an empty registry.

        Args:
            http_client: Client to share with handlers. If omitted, one is
                built from ``settings`` and closed by :meth:`aclose`.
            settings: HTTP client settings (default: ``ClientSettings()``)
        """
        self.settings = settings or ClientSettings()
        self._owns_client = http_client is None
        self.http_client = http_client or self.settings.build_client()

        self._directories: Dict[ProviderType, Dict[str, AuthHandler]] = {
            provider_type: {} for provider_type in ProviderType
        }
        self._locks: Dict[Tuple[ProviderType, str], asyncio.Lock] = {}
        self._key_caches: Dict[ProviderType, JWKSCache] = {}

    async def __aenter__(self) -> "HandlerRegistry":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if the registry created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def register_handler(
        self,
        credentials: ProviderCredentials | Mapping[str, Any],
        provider_type: ProviderType | str,
    ) -> AuthHandler:
        """Return the handler for these credentials, creating it on first use.

        The first registration for a (provider, client ID) pair wins; later
        registrations with different credentials for the same client ID get
        the existing handler back unchanged.

        Args:
            credentials: Credential model, or a mapping validated into the
                provider's credential model
            provider_type: Provider to register for

        Returns:
            The registered handler

        Raises:
            UnsupportedProviderError: If the provider type is not supported
            TypeError: If the credentials do not belong to the provider
            ThirdAuthError: If handler initialization fails; nothing is stored
        """
        provider_type = self._provider_type(provider_type)
        credentials = self._credentials(credentials, provider_type)
        client_id = credentials.client_id
        directory = self._directories[provider_type]

        found = directory.get(client_id)
        if found is not None:
            return found

        lock = self._locks.setdefault((provider_type, client_id), asyncio.Lock())
        async with lock:
            found = directory.get(client_id)
            if found is not None:
                return found

            handler = self._build_handler(credentials, provider_type)
            await handler.initialize()
            directory[client_id] = handler

        logger.info("Registered handler", provider=provider_type.value, client_id=client_id)
        return handler

    def get_handler(self, provider_type: ProviderType | str, client_id: str) -> AuthHandler:
        """Look up a registered handler.

        Raises:
            HandlerNotFoundError: If no handler is registered for the pair
            UnsupportedProviderError: If the provider type is not supported
        """
        provider_type = self._provider_type(provider_type)
        handler = self._directories[provider_type].get(client_id)
        if handler is None:
            raise HandlerNotFoundError(
                f"{provider_type.value} handler with client ID {client_id} not found",
                provider=provider_type.value,
            )
        return handler

    def handlers(self, provider_type: ProviderType | str) -> List[AuthHandler]:
        """Snapshot of the handlers registered for a provider."""
        return list(self._directories[self._provider_type(provider_type)].values())

    def clear(self) -> None:
        """Drop every registered handler and cached key set.

        Registration locks are kept, so a registration in flight during
        ``clear()`` still serializes with later ones for the same client ID.
        """
        for directory in self._directories.values():
            directory.clear()
        self._key_caches.clear()

    async def rotate_apple_secrets(self, strict: bool = False) -> List[RotationResult]:
        """Regenerate the client secret of every Apple handler.

        Meant to be called on a host-owned schedule (daily is plenty; secrets
        are valid for 30 days). Each rotation is independent: one failure
        does not stop the others.

        Args:
            strict: Raise if any rotation fails, not only when all do

        Returns:
            One result per Apple handler, in registration order

        Raises:
            SecretRotationError: If every rotation failed, or if ``strict``
                and at least one failed. ``results`` holds the full report.
        """
        handlers = [h for h in self.handlers(ProviderType.APPLE) if isinstance(h, AppleAuthHandler)]
        if not handlers:
            return []

        outcomes = await asyncio.gather(
            *(asyncio.to_thread(h.generate_client_secret) for h in handlers),
            return_exceptions=True,
        )

        results = []
        for handler, outcome in zip(handlers, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "Client secret rotation failed",
                    provider=ProviderType.APPLE.value,
                    client_id=handler.client_id,
                    error=str(outcome),
                )
                results.append(RotationResult(client_id=handler.client_id, ok=False, error=outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(RotationResult(client_id=handler.client_id, ok=True))

        failed = [r for r in results if not r.ok]
        logger.info(
            "Rotated Apple client secrets",
            rotated=len(results) - len(failed),
            failed=len(failed),
        )

        if failed and (strict or len(failed) == len(results)):
            raise SecretRotationError(
                f"{len(failed)} of {len(results)} Apple client secret rotations failed",
                results=results,
                provider=ProviderType.APPLE.value,
            )
        return results

    # Dispatch

    @staticmethod
    def _provider_type(provider_type: ProviderType | str) -> ProviderType:
        try:
            return ProviderType(provider_type)
        except ValueError as e:
            raise UnsupportedProviderError(f"{provider_type} not implemented") from e

    @staticmethod
    def _credentials(
        credentials: ProviderCredentials | Mapping[str, Any],
        provider_type: ProviderType,
    ) -> ProviderCredentials:
        model = CREDENTIAL_MODELS[provider_type]
        if isinstance(credentials, model):
            return credentials
        if isinstance(credentials, ProviderCredentials):
            raise TypeError(
                f"{type(credentials).__name__} cannot be used for {provider_type.value}; "
                f"expected {model.__name__}"
            )
        try:
            return model.model_validate(dict(credentials))
        except ValidationError:
            logger.error("Invalid credentials", provider=provider_type.value)
            raise

    def _key_cache(self, provider_type: ProviderType, jwks_url: str) -> JWKSCache:
        cache = self._key_caches.get(provider_type)
        if cache is None:
            cache = JWKSCache(provider_type.value, jwks_url, self.http_client)
            self._key_caches[provider_type] = cache
        return cache

    def _build_handler(self, credentials: ProviderCredentials, provider_type: ProviderType) -> AuthHandler:
        if provider_type is ProviderType.APPLE:
            return AppleAuthHandler(
                credentials, self.http_client, self._key_cache(provider_type, APPLE_KEYS_URL)
            )
        elif provider_type is ProviderType.GOOGLE:
            return GoogleAuthHandler(
                credentials, self.http_client, self._key_cache(provider_type, GOOGLE_CERTS_URL)
            )
        elif provider_type is ProviderType.X:
            return XAuthHandler(credentials, self.http_client)
        elif provider_type is ProviderType.LINKEDIN:
            return LinkedInAuthHandler(
                credentials, self.http_client, self._key_cache(provider_type, LINKEDIN_JWKS_URL)
            )
        elif provider_type is ProviderType.SNAPCHAT:
            return SnapChatAuthHandler(credentials, self.http_client)
        else:
            raise UnsupportedProviderError(f"{provider_type} not implemented")
