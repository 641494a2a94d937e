# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Configuration helpers.

Hosts usually build credential models directly. For twelve-factor style
deployments, :func:`credentials_from_env` reads them from environment
variables and :class:`ClientSettings` configures the shared HTTP client.
"""

import os
from typing import Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .models import CREDENTIAL_MODELS, ProviderCredentials, ProviderType

DEFAULT_USER_AGENT = "third-auth/0.1"

_ENV_PREFIXES = {
    ProviderType.APPLE: "APPLE",
    ProviderType.GOOGLE: "GOOGLE",
    ProviderType.X: "X",
    ProviderType.LINKEDIN: "LINKEDIN",
    ProviderType.SNAPCHAT: "SNAPCHAT",
}


class ClientSettings(BaseModel):
    """Settings for the HTTP client used for all provider calls.

    Attributes:
        timeout: Per-request timeout in seconds
        user_agent: User-Agent header sent to providers
    """

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=10.0, gt=0)
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        """Load settings from THIRD_AUTH_HTTP_TIMEOUT and THIRD_AUTH_USER_AGENT."""
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get("THIRD_AUTH_HTTP_TIMEOUT"):
            values["timeout"] = environ["THIRD_AUTH_HTTP_TIMEOUT"]
        if environ.get("THIRD_AUTH_USER_AGENT"):
            values["user_agent"] = environ["THIRD_AUTH_USER_AGENT"]
        return cls.model_validate(values)

    def build_client(self) -> httpx.AsyncClient:
        """Create an async HTTP client configured with these settings."""
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
        )


def credentials_from_env(
    provider_type: ProviderType | str,
    environ: Optional[Mapping[str, str]] = None,
) -> ProviderCredentials:
    """Build a provider's credential model from environment variables.

    Variables are ``<PREFIX>_CLIENT_ID``, ``<PREFIX>_CLIENT_SECRET`` and
    ``<PREFIX>_REDIRECT_URI``; Apple instead uses ``APPLE_TEAM_ID``,
    ``APPLE_KEY_ID`` and ``APPLE_PRIVATE_KEY``. Escaped ``\\n`` sequences in
    the private key are expanded so a PEM fits on one line.

    Args:
        provider_type: Provider to load credentials for
        environ: Mapping to read from (default: os.environ)

    Returns:
        Credential model for the provider

    Raises:
        ValueError: If the provider type is unknown
        pydantic.ValidationError: If a required variable is missing
    """
    environ = os.environ if environ is None else environ
    provider_type = ProviderType(provider_type)
    prefix = _ENV_PREFIXES[provider_type]
    model = CREDENTIAL_MODELS[provider_type]

    values = {
        "client_id": environ.get(f"{prefix}_CLIENT_ID"),
        "client_secret": environ.get(f"{prefix}_CLIENT_SECRET"),
        "redirect_uri": environ.get(f"{prefix}_REDIRECT_URI"),
        "team_id": environ.get(f"{prefix}_TEAM_ID"),
        "key_id": environ.get(f"{prefix}_KEY_ID"),
        "private_key": environ.get(f"{prefix}_PRIVATE_KEY"),
    }
    if values["private_key"]:
        values["private_key"] = values["private_key"].replace("\\n", "\n")

    # Only pass keys the model knows about; absent required ones fail validation
    fields = model.model_fields
    return model.model_validate(
        {k: v for k, v in values.items() if k in fields and v is not None}
    )
