# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Cache of a provider's published JSON Web Key Set.

One cache is shared by every handler of a provider, so Apple's keys are
fetched once per registry rather than once per client ID. Lookups are
served from memory; a miss triggers a single refresh and a second lookup.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx
import jwt

from .errors import KeyFetchError, KeyNotFoundError
from .log import create_logger

logger = create_logger(name="third_auth.keys")


class JWKSCache:
    """Lazily populated key set for one JWKS endpoint.

    Refreshes are serialized with a lock and replace the whole key map in a
    single assignment, so readers see either the old or the new set.

    Attributes:
        provider: Provider name used in errors and logs
        jwks_url: JWKS endpoint URL
    """

    def __init__(self, provider: str, jwks_url: str, http_client: httpx.AsyncClient):
        """Initialize the cache.

        Args:
            provider: Provider name (e.g. "Apple")
            jwks_url: JWKS endpoint URL
            http_client: Client used for fetching the key set
        """
        self.provider = provider
        self.jwks_url = jwks_url
        self._http = http_client
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self._generation = 0

    @property
    def keys(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of the cached JWKs keyed by kid."""
        return dict(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, kid: object) -> bool:
        return kid in self._keys

    async def refresh(self) -> Dict[str, Dict[str, Any]]:
        """Fetch the key set and replace the cache.

        Returns:
            The new key map

        Raises:
            KeyFetchError: If the request fails, returns non-2xx, or has no
                keys. The previous cache is left intact.
        """
        async with self._lock:
            return await self._fetch()

    async def get_key(self, kid: str) -> jwt.PyJWK:
        """Return the signing key for ``kid``.

        Args:
            kid: Key identifier from a token header

        Returns:
            The matching key, ready to verify a signature

        Raises:
            KeyNotFoundError: If the key is absent even after one refresh
            KeyFetchError: If the refresh fails
        """
        found = self._lookup(kid)
        if found is not None:
            return found

        logger.warning("Signing key not cached, refreshing", provider=self.provider, kid=kid)
        generation = self._generation
        async with self._lock:
            # Another coroutine may have refreshed while we waited
            if self._generation == generation:
                await self._fetch()

        found = self._lookup(kid)
        if found is not None:
            return found

        raise KeyNotFoundError(
            f"Public key not found for key ID {kid}",
            provider=self.provider,
        )

    def _lookup(self, kid: str) -> Optional[jwt.PyJWK]:
        jwk = self._keys.get(kid)
        if jwk is None:
            return None
        return jwt.PyJWK(jwk)

    async def _fetch(self) -> Dict[str, Dict[str, Any]]:
        try:
            response = await self._http.get(self.jwks_url)
        except httpx.HTTPError as e:
            logger.error("Failed to fetch signing keys", provider=self.provider, error=str(e))
            raise KeyFetchError(
                f"Failed to fetch public keys: {e}", provider=self.provider
            ) from e

        if not response.is_success:
            logger.error(
                "Signing key endpoint returned an error",
                provider=self.provider,
                status_code=response.status_code,
            )
            raise KeyFetchError(
                "Failed to fetch public keys",
                provider=self.provider,
                status_code=response.status_code,
                body=response.text,
            )

        try:
            keys = response.json().get("keys") or []
        except (ValueError, AttributeError) as e:
            raise KeyFetchError(
                "Malformed key set response", provider=self.provider, body=response.text
            ) from e

        key_map = {key["kid"]: key for key in keys if isinstance(key, dict) and key.get("kid")}
        if not key_map:
            raise KeyFetchError(
                "No keys found in the response", provider=self.provider, body=response.text
            )

        self._keys = key_map
        self._generation += 1
        logger.info("Refreshed signing keys", provider=self.provider, key_count=len(key_map))
        return dict(key_map)
