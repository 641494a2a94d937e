# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Data models for third-party sign-in.

This module defines the provider enumeration, the per-provider credential
models supplied by the host application, the transient token set returned
by a code exchange, and the normalized user record handed back to callers.
"""

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderType(str, Enum):
    """Closed set of supported identity providers."""

    APPLE = "Apple"
    GOOGLE = "Google"
    X = "X"
    LINKEDIN = "LinkedIn"
    SNAPCHAT = "SnapChat"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ProviderType"]:
        # Accept "apple", "LINKEDIN", ...
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None


class ProviderCredentials(BaseModel):
    """Base credential model.

    Credentials are frozen: once a handler is built from them they cannot
    be altered.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    client_id: str = Field(min_length=1)


class AppleCredentials(ProviderCredentials):
    """Sign in with Apple credentials.

    Attributes:
        client_id: Services ID or bundle ID
        team_id: Apple developer team ID (client secret issuer)
        key_id: ID of the Sign in with Apple private key
        private_key: PKCS#8 PEM encoded EC P-256 private key
    """

    team_id: str = Field(min_length=1)
    key_id: str = Field(min_length=1)
    private_key: str = Field(min_length=1, repr=False)


class GoogleCredentials(ProviderCredentials):
    client_secret: str = Field(min_length=1, repr=False)


class XCredentials(ProviderCredentials):
    """Sign in with X (OAuth 2.0 with PKCE) credentials.

    Attributes:
        code_verifier: PKCE verifier matching the challenge sent by the
            client app; X's "plain" method reuses the challenge itself
    """

    client_secret: str = Field(min_length=1, repr=False)
    redirect_uri: str = Field(min_length=1)
    code_verifier: str = "challenge"


class LinkedInCredentials(ProviderCredentials):
    client_secret: str = Field(min_length=1, repr=False)
    redirect_uri: str = Field(min_length=1)


class SnapChatCredentials(ProviderCredentials):
    client_secret: str = Field(min_length=1, repr=False)
    redirect_uri: str = Field(min_length=1)


CREDENTIAL_MODELS: Dict[ProviderType, type] = {
    ProviderType.APPLE: AppleCredentials,
    ProviderType.GOOGLE: GoogleCredentials,
    ProviderType.X: XCredentials,
    ProviderType.LINKEDIN: LinkedInCredentials,
    ProviderType.SNAPCHAT: SnapChatCredentials,
}


@dataclass
class TokenSet:
    """Tokens obtained by exchanging an authorization code.

    Lives only for the duration of one validation call.
    """

    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "TokenSet":
        """Build a token set from a provider's token endpoint JSON.

        Raises:
            KeyError: If the response carries no access token
        """
        access_token = data.get("access_token")
        if not access_token:
            raise KeyError("access_token")

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            scope=data.get("scope"),
            token_type=data.get("token_type"),
            expires_in=data.get("expires_in"),
        )

    @property
    def scopes(self) -> set[str]:
        """Granted scope entries. Providers separate them with spaces or commas."""
        if not self.scope:
            return set()
        return {s for s in re.split(r"[\s,]+", self.scope) if s}


@dataclass
class UserRecord:
    """Provider-agnostic user data returned after successful validation.

    ``sub`` and ``raw`` are always present; the other fields are filled in
    by the providers that supply them.

    Attributes:
        provider: Provider that authenticated the user
        sub: Stable subject identifier at the provider
        raw: Decoded claims or user-info payload, as returned by the provider
    """

    provider: ProviderType
    sub: str
    raw: Dict[str, Any] = field(default_factory=dict)
    email: Optional[str] = None
    email_verified: Optional[bool] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    avatar: Optional[str] = None
    audience: Optional[str] = None
    is_private_email: Optional[bool] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert the record to a dictionary, dropping unset optional fields."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data["provider"] = self.provider.value
        return data


@dataclass
class RotationResult:
    """Outcome of regenerating one Apple handler's client secret."""

    client_id: str
    ok: bool
    error: Optional[BaseException] = None
