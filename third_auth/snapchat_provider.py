# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Login with SnapChat credential handler.

The code is exchanged with HTTP Basic client authentication, then the user
is read from Snap Kit's GraphQL ``/v1/me`` endpoint.
"""

from typing import Any

from .errors import SnapChatAuthError
from .handler import AuthHandler
from .models import ProviderType, UserRecord

SNAPCHAT_TOKEN_URL = "https://accounts.snapchat.com/accounts/oauth2/token"
SNAPCHAT_ME_URL = "https://kit.snapchat.com/v1/me"
ME_QUERY = "{me{displayName bitmoji{avatar} externalId}}"


class SnapChatAuthHandler(AuthHandler):
    """Login with SnapChat handler."""

    provider_type = ProviderType.SNAPCHAT
    error_family = SnapChatAuthError

    async def _validate(self, artifact: str, **kwargs: Any) -> UserRecord:
        tokens = await self._exchange_code(
            SNAPCHAT_TOKEN_URL,
            {
                "redirect_uri": self.credentials.redirect_uri,
                "code": artifact,
                "grant_type": "authorization_code",
            },
            headers=self.basic_auth_header(self.credentials.client_secret),
        )

        payload = await self._request(
            "POST",
            SNAPCHAT_ME_URL,
            "User info request",
            json={"query": ME_QUERY},
            headers={"Authorization": f"Bearer {tokens.access_token}"},
        )
        me = (payload.get("data") or {}).get("me") or {}
        self._check_claims({"sub": me.get("externalId")}, check_audience=False)

        return UserRecord(
            provider=self.provider_type,
            sub=me["externalId"],
            raw=payload["data"],
            name=me.get("displayName"),
            avatar=(me.get("bitmoji") or {}).get("avatar"),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        )
