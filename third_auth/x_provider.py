# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Sign in with X (Twitter) credential handler.

X issues no identity token. The authorization code is exchanged with HTTP
Basic client authentication and PKCE, the granted scopes are checked, and the
user is read from the ``/2/users/me`` endpoint.
"""

from typing import Any, Optional

from .errors import XAuthError
from .handler import AuthHandler
from .models import ProviderType, UserRecord

X_TOKEN_URL = "https://api.x.com/2/oauth2/token"
X_USERS_URL = "https://api.x.com/2/users/me"
REQUIRED_SCOPES = ("users.read", "tweet.read")


class XAuthHandler(AuthHandler):
    """Sign in with X handler."""

    provider_type = ProviderType.X
    error_family = XAuthError

    async def _validate(self, artifact: str, code_verifier: Optional[str] = None, **kwargs: Any) -> UserRecord:
        tokens = await self._exchange_code(
            X_TOKEN_URL,
            {
                "client_id": self.client_id,
                "redirect_uri": self.credentials.redirect_uri,
                "code": artifact,
                "grant_type": "authorization_code",
                "code_verifier": code_verifier or self.credentials.code_verifier,
            },
            headers=self.basic_auth_header(self.credentials.client_secret),
        )
        self._require_scopes(tokens, REQUIRED_SCOPES)

        payload = await self._request(
            "GET",
            X_USERS_URL,
            "User info request",
            headers={"Authorization": f"Bearer {tokens.access_token}"},
        )
        user = payload.get("data") or {}
        self._check_claims({"sub": user.get("id")}, check_audience=False)

        return UserRecord(
            provider=self.provider_type,
            sub=str(user["id"]),
            raw=payload,
            name=user.get("name"),
            username=user.get("username"),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        )
