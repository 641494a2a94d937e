# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Error taxonomy for third-party credential validation.

Every failure surfaced by this package is a ``ThirdAuthError``. The concrete
class tells the caller *what* went wrong (a failed token exchange, a missing
scope, a bad claim, ...), while the provider family (``AppleAuthError``,
``XAuthError``, ...) tells it *where*. Handlers raise provider-qualified
classes built by :func:`qualify`, so both ``except ClaimValidationError`` and
``except AppleAuthError`` catch an ``AppleClaimValidationError``.
"""

from functools import lru_cache
from typing import Any, Optional


class ThirdAuthError(Exception):
    """Base class for all third-auth errors.

    Attributes:
        provider: Provider name the failure belongs to, if any
        status_code: HTTP status returned by the provider, if any
        body: Raw response body returned by the provider, if any
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message


class ProviderExchangeError(ThirdAuthError):
    """Raised when a provider endpoint is unreachable or returns a non-2xx status."""
    pass


class InsufficientScopeError(ThirdAuthError):
    """Raised when the granted scope is missing a required entry."""
    pass


class KeyFetchError(ThirdAuthError):
    """Raised when a provider's published signing keys cannot be fetched."""
    pass


class KeyNotFoundError(ThirdAuthError):
    """Raised when no signing key matches a token's key identifier."""
    pass


class ClaimValidationError(ThirdAuthError):
    """Raised when an identity token or user payload fails a claim check."""
    pass


class NotInitializedError(ThirdAuthError):
    """Raised when an operation needs state that was never initialized."""
    pass


class ClientSecretError(ThirdAuthError):
    """Raised when a signed client secret cannot be generated."""
    pass


class HandlerNotFoundError(ThirdAuthError):
    """Raised when looking up an unregistered (provider, client_id) pair."""
    pass


class UnsupportedProviderError(ThirdAuthError):
    """Raised when dispatching on a provider type outside the supported set.

    This is a configuration error and is not expected to be recoverable.
    """
    pass


class SecretRotationError(ThirdAuthError):
    """Raised when bulk client secret rotation fails.

    Attributes:
        results: Per-handler rotation results
    """

    def __init__(self, message: str, results: list, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.results = results


# Provider families

class AppleAuthError(ThirdAuthError):
    """Base class for Sign in with Apple failures."""
    pass


class GoogleAuthError(ThirdAuthError):
    """Base class for Sign in with Google failures."""
    pass


class XAuthError(ThirdAuthError):
    """Base class for Sign in with X failures."""
    pass


class LinkedInAuthError(ThirdAuthError):
    """Base class for Sign in with LinkedIn failures."""
    pass


class SnapChatAuthError(ThirdAuthError):
    """Base class for Login with SnapChat failures."""
    pass


@lru_cache(maxsize=None)
def qualify(family: type, kind: type) -> type:
    """Return the provider-qualified subclass of an error kind.

    Args:
        family: Provider error family (e.g. ``AppleAuthError``)
        kind: Error kind (e.g. ``ClaimValidationError``)

    Returns:
        A class deriving from both, named e.g. ``AppleClaimValidationError``.
        The same class object is returned for repeated calls.
    """
    if issubclass(kind, family):
        return kind

    prefix = family.__name__[: -len("AuthError")]
    return type(f"{prefix}{kind.__name__}", (kind, family), {"__module__": __name__})
