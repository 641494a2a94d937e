# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Sign in with Google credential handler.

The client app already holds a Google identity token, so there is no code
exchange: the token is verified against Google's published keys and its
claims are checked directly.
"""

from typing import Any, Optional

import httpx

from .errors import ClaimValidationError, GoogleAuthError
from .handler import AuthHandler, is_true
from .keys import JWKSCache
from .models import GoogleCredentials, ProviderType, UserRecord

GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"


class GoogleAuthHandler(AuthHandler):
    """Sign in with Google handler.

    Attributes:
        credentials: Google OAuth client credentials
        key_cache: Google's public key set
    """

    provider_type = ProviderType.GOOGLE
    error_family = GoogleAuthError

    def __init__(
        self,
        credentials: GoogleCredentials,
        http_client: Optional[httpx.AsyncClient] = None,
        key_cache: Optional[JWKSCache] = None,
    ):
        super().__init__(credentials, http_client)
        self.key_cache = key_cache or JWKSCache(self.provider, GOOGLE_CERTS_URL, self.http_client)

    async def initialize(self) -> None:
        """Warm the key cache; doubles as a reachability check for Google."""
        await self.key_cache.refresh()

    async def _validate(self, artifact: str, **kwargs: Any) -> UserRecord:
        claims = await self._verify_id_token(artifact, self.key_cache)

        self._check_claims(claims, issuer_ok=claims.get("iss") in GOOGLE_ISSUERS)
        if not claims.get("email"):
            raise self._error(ClaimValidationError, "Token email is invalid")
        if not is_true(claims.get("email_verified", False)):
            raise self._error(ClaimValidationError, "Email is not verified")

        return UserRecord(
            provider=self.provider_type,
            sub=claims["sub"],
            raw=claims,
            email=claims["email"],
            email_verified=True,
            name=claims.get("name"),
            first_name=claims.get("given_name"),
            last_name=claims.get("family_name"),
            avatar=claims.get("picture"),
            audience=self.client_id,
        )
