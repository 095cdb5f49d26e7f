"""OpenID Connect protocol components and the login flow.

Leaves first:

- :class:`ProviderMetadataResolver` -- discovery document resolution.
- :class:`AuthorizationRequestBuilder` -- authorization URL construction.
- :class:`CallbackExtractor` -- authorization code extraction.
- :class:`TokenExchanger` and :class:`IdTokenValidator` -- code exchange
  and ID token validation.
- :class:`UserInfoResolver` -- claims with the userinfo fallback.
- :class:`IdentityMapper` -- claims to identity under a login strategy.
- :class:`OidcIdentityProvider` -- drives a login attempt end to end.
- :class:`AutoLoginFilter` -- login page redirect.
"""

from oidcbridge.oidc.autologin import AutoLoginFilter
from oidcbridge.oidc.callback import CallbackExtractor, parse_query_string
from oidcbridge.oidc.identity import IdentityMapper
from oidcbridge.oidc.metadata import ProviderMetadataResolver
from oidcbridge.oidc.provider import OidcIdentityProvider
from oidcbridge.oidc.request import AuthorizationRequestBuilder
from oidcbridge.oidc.tokens import IdTokenValidator, TokenExchanger
from oidcbridge.oidc.userinfo import UserInfoResolver

__all__ = [
    "AuthorizationRequestBuilder",
    "AutoLoginFilter",
    "CallbackExtractor",
    "IdTokenValidator",
    "IdentityMapper",
    "OidcIdentityProvider",
    "ProviderMetadataResolver",
    "TokenExchanger",
    "UserInfoResolver",
    "parse_query_string",
]
