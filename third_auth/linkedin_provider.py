# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Sign in with LinkedIn (OpenID Connect) credential handler."""

from typing import Any, Optional

import httpx

from .errors import LinkedInAuthError
from .handler import AuthHandler, is_true
from .keys import JWKSCache
from .models import LinkedInCredentials, ProviderType, UserRecord

LINKEDIN_ISSUER = "https://www.linkedin.com/oauth"
LINKEDIN_TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
LINKEDIN_JWKS_URL = "https://www.linkedin.com/oauth/openid/jwks"
OPENID_SCOPE = "openid"


class LinkedInAuthHandler(AuthHandler):
    """Sign in with LinkedIn handler.

    Exchanges the authorization code with the client secret in the form body,
    requires the ``openid`` scope, and verifies the returned identity token
    against LinkedIn's key set.
    """

    provider_type = ProviderType.LINKEDIN
    error_family = LinkedInAuthError

    def __init__(
        self,
        credentials: LinkedInCredentials,
        http_client: Optional[httpx.AsyncClient] = None,
        key_cache: Optional[JWKSCache] = None,
    ):
        super().__init__(credentials, http_client)
        self.key_cache = key_cache or JWKSCache(self.provider, LINKEDIN_JWKS_URL, self.http_client)

    async def _validate(self, artifact: str, **kwargs: Any) -> UserRecord:
        tokens = await self._exchange_code(
            LINKEDIN_TOKEN_URL,
            {
                "client_id": self.client_id,
                "client_secret": self.credentials.client_secret,
                "redirect_uri": self.credentials.redirect_uri,
                "code": artifact,
                "grant_type": "authorization_code",
            },
        )
        self._require_scopes(tokens, (OPENID_SCOPE,))

        claims = await self._verify_id_token(tokens.id_token, self.key_cache)
        self._check_claims(claims, issuer_ok=claims.get("iss") == LINKEDIN_ISSUER)

        return UserRecord(
            provider=self.provider_type,
            sub=claims["sub"],
            raw=claims,
            email=claims.get("email"),
            # Optional for LinkedIn; absent means unverified
            email_verified=is_true(claims.get("email_verified", False)),
            name=claims.get("name"),
            first_name=claims.get("given_name"),
            last_name=claims.get("family_name"),
            avatar=claims.get("picture"),
            audience=self.client_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        )
