# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Sign in with Apple credential handler.

Apple does not issue a static client secret. The server signs its own
short-lived ES256 assertion with the developer's private key and presents it
when exchanging an authorization code. The returned identity token is then
verified against Apple's published key set, which is shared by every Apple
handler in a registry.
"""

import time
from typing import Any, Optional

import httpx
import jwt

from .errors import AppleAuthError, ClaimValidationError, ClientSecretError, NotInitializedError
from .handler import AuthHandler, is_true
from .keys import JWKSCache
from .models import AppleCredentials, ProviderType, UserRecord

APPLE_ISSUER = "https://appleid.apple.com"
APPLE_KEYS_URL = "https://appleid.apple.com/auth/oauth2/v2/keys"
APPLE_TOKEN_URL = "https://appleid.apple.com/auth/token"
CLIENT_SECRET_TTL = 60 * 60 * 24 * 30  # 30 days


class AppleAuthHandler(AuthHandler):
    """Sign in with Apple handler.

    Attributes:
        credentials: Apple credentials (client ID, team ID, key ID, private key)
        key_cache: Apple public key set, shared across handlers
        client_secret: Current signed client secret, or None before initialize()
    """

    provider_type = ProviderType.APPLE
    error_family = AppleAuthError

    def __init__(
        self,
        credentials: AppleCredentials,
        http_client: Optional[httpx.AsyncClient] = None,
        key_cache: Optional[JWKSCache] = None,
    ):
        """Initialize the Apple handler.

        Args:
            credentials: Apple credentials
            http_client: Shared async HTTP client
            key_cache: Shared Apple key set (a private one is created if omitted)
        """
        super().__init__(credentials, http_client)
        self.key_cache = key_cache or JWKSCache(self.provider, APPLE_KEYS_URL, self.http_client)
        self.client_secret: Optional[str] = None

    async def initialize(self) -> None:
        """Fetch Apple's public keys and generate the first client secret."""
        await self.refresh_public_keys()
        self.generate_client_secret()

    async def refresh_public_keys(self) -> dict:
        """Replace the shared key set with Apple's current keys."""
        return await self.key_cache.refresh()

    async def get_public_key(self, kid: str) -> jwt.PyJWK:
        """Return Apple's public key for ``kid``, refreshing once on a miss."""
        return await self.key_cache.get_key(kid)

    def generate_client_secret(self, now: Optional[int] = None) -> str:
        """Sign a new client secret and store it on the handler.

        Args:
            now: Issue time as a Unix timestamp (default: current time)

        Returns:
            The ES256-signed client secret

        Raises:
            ClientSecretError: If the private key cannot sign the assertion
        """
        issued_at = int(time.time()) if now is None else now
        claims = {
            "iss": self.credentials.team_id,
            "iat": issued_at,
            "exp": issued_at + CLIENT_SECRET_TTL,
            "aud": APPLE_ISSUER,
            "sub": self.credentials.client_id,
        }

        try:
            secret = jwt.encode(
                claims,
                self.credentials.private_key,
                algorithm="ES256",
                headers={"kid": self.credentials.key_id},
            )
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            self.log.error("Failed to create client secret", error=str(e))
            raise self._error(ClientSecretError, f"Failed to create client secret: {e}") from e

        self.client_secret = secret
        self.log.info("Generated client secret", expires_at=claims["exp"])
        return secret

    async def _validate(self, artifact: str, **kwargs: Any) -> UserRecord:
        if not self.client_secret:
            raise self._error(
                NotInitializedError, "Client secret not set. Call initialize() first."
            )

        tokens = await self._exchange_code(
            APPLE_TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": artifact,
                "grant_type": "authorization_code",
            },
        )
        claims = await self._verify_id_token(tokens.id_token, self.key_cache)

        self._check_claims(claims, issuer_ok=APPLE_ISSUER in str(claims.get("iss", "")))
        if not is_true(claims.get("email_verified")):
            raise self._error(ClaimValidationError, "Email not verified")

        is_private_email = claims.get("is_private_email")
        return UserRecord(
            provider=self.provider_type,
            sub=claims["sub"],
            raw=claims,
            email=claims.get("email"),
            email_verified=True,
            audience=self.client_id,
            is_private_email=None if is_private_email is None else is_true(is_private_email),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        )
