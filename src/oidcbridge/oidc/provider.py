"""The OpenID Connect identity provider.

:class:`OidcIdentityProvider` drives one login attempt through the
authorization code flow::

    IDLE -> INITIATING -> AWAITING_CALLBACK        (init)
    AWAITING_CALLBACK -> VALIDATING -> RESOLVING
        -> MAPPING -> COMMITTED                    (callback)

Any failure moves the attempt to ``FAILED``: it is logged with its
diagnostics at warning level and re-raised unchanged. Every external call is
single-shot and nothing is retried.

The protocol components are injected; when omitted they are built from the
settings and share one :class:`~oidcbridge.client.transport.HttpTransport`.
"""

from __future__ import annotations

import logging
from typing import Optional

from oidcbridge.auth.base import CallbackContext, Display, IdentityProvider, InitContext
from oidcbridge.client.transport import HttpTransport
from oidcbridge.config import PROVIDER_KEY
from oidcbridge.exceptions import AuthenticationDisabled, CsrfVerificationFailed
from oidcbridge.models import AuthenticationRequestContext, FlowState, OidcSettings
from oidcbridge.oidc.callback import CallbackExtractor
from oidcbridge.oidc.identity import IdentityMapper
from oidcbridge.oidc.metadata import ProviderMetadataResolver
from oidcbridge.oidc.request import AuthorizationRequestBuilder
from oidcbridge.oidc.tokens import IdTokenValidator, TokenExchanger
from oidcbridge.oidc.userinfo import UserInfoResolver

logger = logging.getLogger(__name__)


class _FlowTrace:
    """State of a single login attempt."""

    def __init__(self, state: FlowState) -> None:
        self.state = state

    def advance(self, state: FlowState) -> None:
        logger.debug("Login flow: %s -> %s", self.state.value, state.value)
        self.state = state

    def fail(self, exc: BaseException) -> None:
        logger.warning(
            "OpenID Connect login failed during %s: %s: %s",
            self.state.value,
            type(exc).__name__,
            exc,
        )
        self.state = FlowState.FAILED


class OidcIdentityProvider(IdentityProvider):
    """Authenticate users against an OpenID Connect identity provider.

    Args:
        settings: The OpenID Connect settings.
        transport: Shared HTTP transport for the default components.
        metadata_resolver: Discovery component.
        request_builder: Authorization URL builder.
        callback_extractor: Callback parser.
        token_exchanger: Code exchange component.
        userinfo_resolver: Claim resolution component.
        identity_mapper: Claims to identity mapping.

    Example::

        provider = OidcIdentityProvider(settings)
        provider.init(init_context)          # redirects to the IdP
        provider.callback(callback_context)  # authenticates and redirects back
    """

    def __init__(
        self,
        settings: OidcSettings,
        transport: Optional[HttpTransport] = None,
        metadata_resolver: Optional[ProviderMetadataResolver] = None,
        request_builder: Optional[AuthorizationRequestBuilder] = None,
        callback_extractor: Optional[CallbackExtractor] = None,
        token_exchanger: Optional[TokenExchanger] = None,
        userinfo_resolver: Optional[UserInfoResolver] = None,
        identity_mapper: Optional[IdentityMapper] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport or HttpTransport(settings.http)
        self._metadata_resolver = metadata_resolver or ProviderMetadataResolver(
            self._transport, cache_seconds=settings.metadata_cache_seconds
        )
        self._request_builder = request_builder or AuthorizationRequestBuilder()
        self._callback_extractor = callback_extractor or CallbackExtractor()
        if token_exchanger is None:
            validator = None
            if settings.id_token_sign_algorithm:
                validator = IdTokenValidator(self._transport, settings.id_token_sign_algorithm)
            token_exchanger = TokenExchanger(self._transport, validator)
        self._token_exchanger = token_exchanger
        self._userinfo_resolver = userinfo_resolver or UserInfoResolver(self._transport)
        self._identity_mapper = identity_mapper or IdentityMapper()

    # ------------------------------------------------------------------ #
    # Host-facing descriptors
    # ------------------------------------------------------------------ #

    @property
    def key(self) -> str:
        return PROVIDER_KEY

    @property
    def name(self) -> str:
        return self._settings.login_button_text

    @property
    def display(self) -> Display:
        return Display(
            icon_path=self._settings.icon_path,
            background_color=self._settings.background_color,
        )

    @property
    def settings(self) -> OidcSettings:
        return self._settings

    def is_enabled(self) -> bool:
        return self._settings.is_enabled

    def allows_users_to_sign_up(self) -> bool:
        return self._settings.allow_users_to_sign_up

    def close(self) -> None:
        """Close the HTTP transport."""
        self._transport.close()

    # ------------------------------------------------------------------ #
    # Flow
    # ------------------------------------------------------------------ #

    def init(self, context: InitContext) -> None:
        """Redirect the user to the identity provider's authorization endpoint.

        Raises:
            AuthenticationDisabled: If the provider is not enabled.
            ProviderUnreachable: If discovery cannot reach the provider.
            InvalidProviderMetadata: If the discovery document is unusable.
            IssuerMismatch: If the discovery issuer differs from the
                configured one.
            InvalidRedirectUri: If the host's callback URL is not absolute.
        """
        trace = _FlowTrace(FlowState.IDLE)
        try:
            trace.advance(FlowState.INITIATING)
            self._ensure_enabled()
            request = AuthenticationRequestContext(
                state=context.generate_csrf_state(),
                callback_url=context.callback_url,
            )
            metadata = self._metadata_resolver.resolve(self._settings.issuer_uri or "")
            url = self._request_builder.build(
                request.callback_url,
                request.state,
                metadata,
                self._settings.client_id or "",
                self._settings.scopes,
            )
            trace.advance(FlowState.AWAITING_CALLBACK)
            logger.debug("Redirecting to authentication endpoint")
            context.redirect_to(url)
        except Exception as exc:
            trace.fail(exc)
            raise

    def callback(self, context: CallbackContext) -> None:
        """Complete the login from the identity provider's redirect.

        Raises:
            AuthenticationDisabled: If the provider is not enabled.
            CsrfVerificationFailed: If the host rejects the ``state``.
            AuthorizationFailed: If the provider reported an error.
            CallbackParseError: If the callback is malformed.
            TokenExchangeFailed: If the token endpoint rejects the code.
            InvalidIdToken: If the ID token fails validation.
            UserInfoFailed: If the userinfo lookup fails.
            MissingClaim: If a claim required by the login policy is absent.
            ProviderUnreachable: If any endpoint cannot be reached.
        """
        trace = _FlowTrace(FlowState.AWAITING_CALLBACK)
        try:
            self._ensure_enabled()
            if not context.verify_csrf_state():
                raise CsrfVerificationFailed("CSRF state verification failed")

            trace.advance(FlowState.VALIDATING)
            request = context.http_request
            code = self._callback_extractor.extract(request.request_url, request.query_string)
            metadata = self._metadata_resolver.resolve(self._settings.issuer_uri or "")
            tokens = self._token_exchanger.exchange(
                code,
                context.callback_url,
                metadata,
                self._settings.client_id or "",
                self._settings.client_secret,
            )

            trace.advance(FlowState.RESOLVING)
            claims = self._userinfo_resolver.resolve(tokens, metadata, self._settings.groups_claim)

            trace.advance(FlowState.MAPPING)
            identity = self._identity_mapper.map(
                claims,
                self._settings.login_strategy,
                custom_claim=self._settings.custom_claim_name,
                sync_groups=self._settings.groups_sync,
                groups_claim=self._settings.groups_claim_name,
            )

            logger.debug(
                "Authenticating user '%s' with groups %s",
                identity.provider_login,
                sorted(identity.groups) if identity.groups is not None else None,
            )
            context.authenticate(identity)
            trace.advance(FlowState.COMMITTED)
            logger.debug("Redirecting to requested page")
            context.redirect_to_requested_page()
        except Exception as exc:
            trace.fail(exc)
            raise

    def _ensure_enabled(self) -> None:
        if not self.is_enabled():
            raise AuthenticationDisabled("OpenID Connect authentication is disabled")
