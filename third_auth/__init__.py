# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Third-Auth: server-side third-party sign-in validation.

Validates authorization codes and identity tokens issued by Apple, Google,
X, LinkedIn and SnapChat, and returns one normalized user record shape for
all of them. A :class:`HandlerRegistry` keeps one handler per provider and
client ID so a host can serve several tenant configurations at once.
"""

__version__ = "0.1.0"

from .apple_provider import AppleAuthHandler
from .config import ClientSettings, credentials_from_env
from .errors import (
    AppleAuthError,
    ClaimValidationError,
    ClientSecretError,
    GoogleAuthError,
    HandlerNotFoundError,
    InsufficientScopeError,
    KeyFetchError,
    KeyNotFoundError,
    LinkedInAuthError,
    NotInitializedError,
    ProviderExchangeError,
    SecretRotationError,
    SnapChatAuthError,
    ThirdAuthError,
    UnsupportedProviderError,
    XAuthError,
)
from .google_provider import GoogleAuthHandler
from .handler import AuthHandler
from .keys import JWKSCache
from .linkedin_provider import LinkedInAuthHandler
from .log import Logger, create_logger
from .models import (
    AppleCredentials,
    GoogleCredentials,
    LinkedInCredentials,
    ProviderCredentials,
    ProviderType,
    RotationResult,
    SnapChatCredentials,
    TokenSet,
    UserRecord,
    XCredentials,
)
from .registry import HandlerRegistry
from .snapchat_provider import SnapChatAuthHandler
from .x_provider import XAuthHandler

__all__ = [
    # Version
    "__version__",
    # Models
    "ProviderType",
    "ProviderCredentials",
    "AppleCredentials",
    "GoogleCredentials",
    "XCredentials",
    "LinkedInCredentials",
    "SnapChatCredentials",
    "TokenSet",
    "UserRecord",
    "RotationResult",
    # Handlers
    "AuthHandler",
    "AppleAuthHandler",
    "GoogleAuthHandler",
    "XAuthHandler",
    "LinkedInAuthHandler",
    "SnapChatAuthHandler",
    "JWKSCache",
    # Registry
    "HandlerRegistry",
    # Configuration
    "ClientSettings",
    "credentials_from_env",
    # Logging
    "Logger",
    "create_logger",
    # Exceptions
    "ThirdAuthError",
    "ProviderExchangeError",
    "InsufficientScopeError",
    "KeyFetchError",
    "KeyNotFoundError",
    "ClaimValidationError",
    "NotInitializedError",
    "ClientSecretError",
    "HandlerNotFoundError",
    "UnsupportedProviderError",
    "SecretRotationError",
    "AppleAuthError",
    "GoogleAuthError",
    "XAuthError",
    "LinkedInAuthError",
    "SnapChatAuthError",
]
