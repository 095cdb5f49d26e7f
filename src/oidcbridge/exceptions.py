"""Exception hierarchy for oidcbridge.

All exceptions inherit from :class:`OidcBridgeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oidcbridge.exit_codes`.
Every failure is terminal for the login attempt in which it is raised; the
host renders a generic error page while the message (error codes, claim
names, endpoint URLs) goes to the server-side log.

Subclass hierarchy::

    OidcBridgeError (exit 1)
    +-- ConfigError                 (exit 2)
    |   +-- UnsupportedStrategy     (exit 2)
    +-- AuthenticationDisabled      (exit 2)
    +-- InvalidRedirectUri          (exit 2)
    +-- ProviderUnreachable         (exit 6)
    +-- ProviderError               (exit 5)
    |   +-- InvalidProviderMetadata (exit 5)
    |   +-- IssuerMismatch          (exit 5)
    |   +-- TokenExchangeFailed     (exit 5)
    |   +-- UserInfoFailed          (exit 5)
    +-- InvalidIdToken              (exit 7)
    +-- AuthenticationError         (exit 3)
        +-- AuthorizationFailed     (exit 3)
        +-- CallbackParseError      (exit 3)
        +-- CsrfVerificationFailed  (exit 3)
        +-- MissingClaim            (exit 3)
"""

from __future__ import annotations

from typing import Optional

from oidcbridge.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PROVIDER_ERROR,
    EXIT_TOKEN_ERROR,
)

PROXY_HINT = (
    "identity provider not reachable - check the outbound proxy settings "
    "(HTTP_PROXY, HTTPS_PROXY, NO_PROXY)"
)
"""Suffix appended to every diagnostic about an unreachable identity provider."""


class OidcBridgeError(Exception):
    """Base exception for all oidcbridge errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`oidcbridge.exit_codes`. The CLI entry point
    catches this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(OidcBridgeError):
    """Raised for configuration problems (missing keys, invalid values, unreadable settings files)."""

    exit_code = EXIT_INVALID_USAGE


class UnsupportedStrategy(ConfigError):
    """Raised when the configured login strategy is not one of the known strategies."""

    def __init__(self, strategy: str):
        super().__init__(f"Login strategy not supported: {strategy}")
        self.strategy = strategy


class AuthenticationDisabled(OidcBridgeError):
    """Raised when a login is started while OpenID Connect authentication is disabled."""

    exit_code = EXIT_INVALID_USAGE


class InvalidRedirectUri(OidcBridgeError):
    """Raised when the host's callback URL is not an absolute URI."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, uri: str):
        super().__init__(f"Callback URL is not a valid absolute URI: {uri!r}")
        self.uri = uri


class ProviderUnreachable(OidcBridgeError):
    """Raised on network-level failures talking to any identity provider endpoint.

    The message always carries :data:`PROXY_HINT`, since a missing proxy
    exclusion is the most common cause in real deployments.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, operation: str, url: str, reason: str = ""):
        detail = f" ({reason})" if reason else ""
        super().__init__(f"{operation} failed: {PROXY_HINT} [{url}]{detail}")
        self.operation = operation
        self.url = url


class ProviderError(OidcBridgeError):
    """Base class for explicit rejections or unusable answers from the identity provider."""

    exit_code = EXIT_PROVIDER_ERROR


class InvalidProviderMetadata(ProviderError):
    """Raised when the discovery document cannot be fetched as JSON or lacks required fields."""


class IssuerMismatch(ProviderError):
    """Raised when the discovery document's ``issuer`` differs from the configured issuer URI."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            "Retrieving OpenID Connect provider metadata failed: issuer URL in provider "
            f"metadata ({actual!r}) doesn't match the issuer URI in the configuration "
            f"({expected!r})"
        )
        self.expected = expected
        self.actual = actual


class _EndpointRejection(ProviderError):
    """Shared shape for token and userinfo endpoint errors.

    When the provider returned an error without an OAuth2 error code the
    message explains that the provider was most likely never reached, which
    is how a misrouted proxy usually presents itself.
    """

    _operation = "Request"

    def __init__(
        self,
        error_code: Optional[str] = None,
        description: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            if error_code is None:
                message = f"{self._operation} failed: No error code returned ({PROXY_HINT})"
            else:
                message = f"{self._operation} failed: {error_code}"
                if description:
                    message += f" - {description}"
        super().__init__(message)
        self.error_code = error_code
        self.description = description


class TokenExchangeFailed(_EndpointRejection):
    """Raised when the token endpoint rejects the authorization code exchange."""

    _operation = "Token request"


class UserInfoFailed(_EndpointRejection):
    """Raised when the userinfo endpoint rejects the lookup or answers unusably."""

    _operation = "UserInfo request"


class InvalidIdToken(OidcBridgeError):
    """Raised when the ID token fails signature, issuer, audience, or claims validation."""

    exit_code = EXIT_TOKEN_ERROR


class AuthenticationError(OidcBridgeError):
    """Base class for failures of the login attempt itself."""

    exit_code = EXIT_AUTH_FAILURE


class AuthorizationFailed(AuthenticationError):
    """Raised when the provider redirects back with an ``error`` instead of a ``code``."""

    def __init__(
        self,
        error: str,
        description: Optional[str] = None,
        error_uri: Optional[str] = None,
    ):
        message = f"Authentication request failed: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description
        self.error_uri = error_uri


class CallbackParseError(AuthenticationError):
    """Raised when the callback request cannot be parsed."""


class CsrfVerificationFailed(AuthenticationError):
    """Raised when the host reports that the anti-forgery state did not verify."""


CLAIM_HINT = (
    "make sure your OIDC provider supports this claim in the id token or at the "
    "user info endpoint"
)


class MissingClaim(AuthenticationError):
    """Raised when a claim required by the login policy is absent from the user info.

    Args:
        claim: The claim name (``"name|preferred_username"`` for the display
            name fallback pair).
        reason: Optional override of the "is missing" wording, e.g. when the
            claim is present with an unusable shape.
        message: Optional override of the whole message.
    """

    def __init__(
        self,
        claim: str,
        reason: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"Claim '{claim}' {reason or 'is missing in user info'} - {CLAIM_HINT}"
        super().__init__(message)
        self.claim = claim
