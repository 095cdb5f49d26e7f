"""Tests for the exception hierarchy and its exit codes."""

from __future__ import annotations

import pytest

from oidcbridge.exceptions import (
    AuthenticationDisabled,
    AuthenticationError,
    AuthorizationFailed,
    CallbackParseError,
    ConfigError,
    CsrfVerificationFailed,
    InvalidIdToken,
    InvalidProviderMetadata,
    InvalidRedirectUri,
    IssuerMismatch,
    MissingClaim,
    OidcBridgeError,
    ProviderError,
    ProviderUnreachable,
    TokenExchangeFailed,
    UnsupportedStrategy,
    UserInfoFailed,
)
from oidcbridge.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_PROVIDER_ERROR,
    EXIT_TOKEN_ERROR,
)


class TestExitCodes:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (ConfigError("x"), EXIT_INVALID_USAGE),
            (UnsupportedStrategy("xxx"), EXIT_INVALID_USAGE),
            (AuthenticationDisabled("x"), EXIT_INVALID_USAGE),
            (InvalidRedirectUri("/cb"), EXIT_INVALID_USAGE),
            (ProviderUnreachable("Token request", "https://oidc.org/token"), EXIT_CONNECTION_ERROR),
            (InvalidProviderMetadata("x"), EXIT_PROVIDER_ERROR),
            (IssuerMismatch("https://a", "https://b"), EXIT_PROVIDER_ERROR),
            (TokenExchangeFailed("invalid_grant"), EXIT_PROVIDER_ERROR),
            (UserInfoFailed("invalid_token"), EXIT_PROVIDER_ERROR),
            (InvalidIdToken("x"), EXIT_TOKEN_ERROR),
            (AuthorizationFailed("access_denied"), EXIT_AUTH_FAILURE),
            (CallbackParseError("x"), EXIT_AUTH_FAILURE),
            (CsrfVerificationFailed("x"), EXIT_AUTH_FAILURE),
            (MissingClaim("email"), EXIT_AUTH_FAILURE),
        ],
    )
    def test_exit_code(self, exc: OidcBridgeError, code: int) -> None:
        assert exc.exit_code == code

    def test_override(self) -> None:
        assert OidcBridgeError("x", exit_code=42).exit_code == 42


class TestHierarchy:
    def test_endpoint_rejections_are_provider_errors(self) -> None:
        assert issubclass(TokenExchangeFailed, ProviderError)
        assert issubclass(UserInfoFailed, ProviderError)

    def test_login_failures(self) -> None:
        for cls in (AuthorizationFailed, CallbackParseError, CsrfVerificationFailed, MissingClaim):
            assert issubclass(cls, AuthenticationError)


class TestMessages:
    def test_issuer_mismatch(self) -> None:
        exc = IssuerMismatch("https://oidc.org", "https://other.org")
        assert "doesn't match" in str(exc)
        assert exc.expected == "https://oidc.org"
        assert exc.actual == "https://other.org"

    def test_token_error_with_description(self) -> None:
        assert str(TokenExchangeFailed("invalid_grant", "Code expired")) == (
            "Token request failed: invalid_grant - Code expired"
        )

    def test_token_error_without_code(self) -> None:
        message = str(TokenExchangeFailed())
        assert message.startswith("Token request failed: No error code returned (")
        assert "proxy" in message

    def test_authorization_failed(self) -> None:
        exc = AuthorizationFailed("access_denied", "User cancelled", "https://oidc.org/err")
        assert str(exc) == "Authentication request failed: access_denied - User cancelled"
        assert exc.error_uri == "https://oidc.org/err"

    def test_missing_claim(self) -> None:
        exc = MissingClaim("email")
        assert str(exc).startswith("Claim 'email' is missing in user info - make sure")
        assert exc.claim == "email"

    def test_unreachable(self) -> None:
        exc = ProviderUnreachable("Token request", "https://oidc.org/token", "timed out")
        assert str(exc).endswith("[https://oidc.org/token] (timed out)")
