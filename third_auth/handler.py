# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Abstract credential validator interface.

Each provider handler turns a raw sign-in artifact (an authorization code or
an identity token) into a verified :class:`~third_auth.models.UserRecord`.
This module holds the contract plus the pieces every provider shares: the
HTTP helpers that classify provider responses, signed-token verification
against a :class:`~third_auth.keys.JWKSCache`, the common claim checks, and
the boundary that turns any internal failure into one provider-named error.
"""

import base64
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional

import httpx
import jwt

from .errors import (
    ClaimValidationError,
    InsufficientScopeError,
    ProviderExchangeError,
    ThirdAuthError,
    qualify,
)
from .keys import JWKSCache
from .log import BoundLogger, create_logger
from .models import ProviderCredentials, ProviderType, TokenSet, UserRecord

logger = create_logger(name="third_auth.handler")

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class AuthHandler(ABC):
    """Base class for provider credential validators.

    Subclasses set ``provider_type`` and ``error_family`` and implement
    :meth:`_validate`.

    Attributes:
        credentials: Immutable provider credentials
        http_client: Async HTTP client for all provider calls
    """

    provider_type: ProviderType
    error_family: type = ThirdAuthError

    def __init__(self, credentials: ProviderCredentials, http_client: Optional[httpx.AsyncClient] = None):
        """Initialize the handler.

        Args:
            credentials: Provider credentials
            http_client: Shared async HTTP client. If omitted, a private one
                is created and closed by :meth:`aclose`.
        """
        self.credentials = credentials
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=10.0)

    @property
    def client_id(self) -> str:
        return self.credentials.client_id

    @property
    def provider(self) -> str:
        return self.provider_type.value

    @property
    def log(self) -> BoundLogger:
        """Module logger bound to this handler's provider and client ID."""
        return logger.bind(provider=self.provider, client_id=self.client_id)

    async def initialize(self) -> None:
        """Perform provider-specific asynchronous setup. No-op by default."""
        return None

    async def aclose(self) -> None:
        """Close the HTTP client if the handler created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def validate_user_credentials(self, artifact: str, **kwargs: Any) -> UserRecord:
        """Validate a sign-in artifact and return the user's identity.

        Args:
            artifact: Authorization code, or identity token for Google
            **kwargs: Provider-specific options (e.g. X's ``code_verifier``)

        Returns:
            Normalized user record

        Raises:
            ThirdAuthError: A provider-qualified subclass describing the
                failure; the underlying exception is chained as ``__cause__``
        """
        try:
            if not artifact or not isinstance(artifact, str):
                raise ClaimValidationError("Sign-in artifact must be a non-empty string")
            return await self._validate(artifact, **kwargs)
        except ThirdAuthError as e:
            self.log.error(
                "User credentials validation failed",
                error_type=type(e).__name__,
                error=e.message,
                status_code=e.status_code,
            )
            qualified = self._qualified(e)
            if qualified is e:
                raise
            raise qualified from (e.__cause__ or e)
        except (httpx.HTTPError, jwt.PyJWTError, AttributeError, KeyError, TypeError, ValueError) as e:
            self.log.error(
                "User credentials validation failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            raise self._error(
                ClaimValidationError, f"Malformed provider response: {e}"
            ) from e

    @abstractmethod
    async def _validate(self, artifact: str, **kwargs: Any) -> UserRecord:
        """Provider-specific validation flow."""
        pass

    # Errors

    def _error(self, kind: type, message: str, **kwargs: Any) -> ThirdAuthError:
        """Build a provider-qualified error of the given kind."""
        return qualify(self.error_family, kind)(message, provider=self.provider, **kwargs)

    def _qualified(self, error: ThirdAuthError) -> ThirdAuthError:
        if isinstance(error, self.error_family):
            return error
        return qualify(self.error_family, type(error))(
            error.message,
            provider=self.provider,
            status_code=error.status_code,
            body=error.body,
        )

    # HTTP

    def basic_auth_header(self, client_secret: str) -> Dict[str, str]:
        """Authorization header for HTTP Basic client authentication."""
        raw = f"{self.client_id}:{client_secret}".encode("utf-8")
        return {"Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}"}

    async def _request(self, method: str, url: str, what: str, **kwargs: Any) -> Dict[str, Any]:
        """Send a request and return the JSON body of a 2xx response.

        Args:
            method: HTTP method
            url: Target URL
            what: Short description for error messages (e.g. "token exchange")
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Raises:
            ProviderExchangeError: On transport failure, timeout, non-2xx
                status, or a body that is not a JSON object
        """
        try:
            response = await self.http_client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise self._error(ProviderExchangeError, f"{what} failed: {e}") from e

        self.log.debug(what, method=method, url=url, status_code=response.status_code)
        if not response.is_success:
            raise self._error(
                ProviderExchangeError,
                f"{what} failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise self._error(
                ProviderExchangeError,
                f"{what} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(data, dict):
            raise self._error(
                ProviderExchangeError,
                f"{what} returned an unexpected body",
                status_code=response.status_code,
                body=response.text,
            )
        return data

    async def _exchange_code(self, url: str, form: Dict[str, str], headers: Optional[Dict[str, str]] = None) -> TokenSet:
        """Trade an authorization code for a token set."""
        data = await self._request(
            "POST",
            url,
            "Token exchange",
            data=form,
            headers={**FORM_HEADERS, **(headers or {})},
        )
        try:
            return TokenSet.from_response(data)
        except KeyError as e:
            raise self._error(
                ProviderExchangeError, "Token exchange response has no access token", body=data
            ) from e

    # Claims

    def _require_scopes(self, tokens: TokenSet, required: Iterable[str]) -> None:
        missing = sorted(set(required) - tokens.scopes)
        if missing:
            raise self._error(
                InsufficientScopeError,
                f"Required scopes not granted: {', '.join(missing)}",
                body=tokens.scope,
            )

    async def _verify_id_token(self, id_token: Optional[str], key_cache: JWKSCache) -> Dict[str, Any]:
        """Verify an identity token's signature and expiry.

        Issuer and audience are not checked here; see :meth:`_check_claims`.
        """
        if not id_token:
            raise self._error(ClaimValidationError, "Token response has no identity token")

        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as e:
            raise self._error(ClaimValidationError, f"Failed to decode token header: {e}") from e

        kid = header.get("kid")
        if not kid:
            raise self._error(ClaimValidationError, "Token header has no key ID")

        signing_key = await key_cache.get_key(kid)
        algorithm = signing_key.algorithm_name or header.get("alg", "RS256")

        try:
            return jwt.decode(
                id_token,
                key=signing_key.key,
                algorithms=[algorithm],
                options={"verify_aud": False, "verify_iss": False},
                leeway=60,
            )
        except jwt.PyJWTError as e:
            raise self._error(ClaimValidationError, f"Invalid identity token: {e}") from e

    def _check_claims(
        self,
        claims: Dict[str, Any],
        issuer_ok: Optional[bool] = None,
        check_audience: bool = True,
    ) -> None:
        """Apply the issuer, audience and subject checks.

        Args:
            claims: Decoded claims
            issuer_ok: Result of the provider's issuer rule, or None to skip
            check_audience: Whether ``aud`` must equal the client ID
        """
        if issuer_ok is not None and not issuer_ok:
            raise self._error(ClaimValidationError, "Token issuer is invalid")

        if check_audience:
            # Exact match; a multi-party aud list is not ours alone
            if claims.get("aud") != self.client_id:
                raise self._error(ClaimValidationError, "Token audience is invalid")

        if not claims.get("sub"):
            raise self._error(ClaimValidationError, "Token subject is invalid")


def is_true(value: Any) -> bool:
    """Interpret a boolean claim that some providers send as a string."""
    if isinstance(value, str):
        return value.lower() == "true"
    return value is True
