"""Authorization request URLs.

:class:`AuthorizationRequestBuilder` builds the URL the user's browser is
sent to when a login starts::

    https://idp/auth?response_type=code&client_id=sonar
        &redirect_uri=https%3A%2F%2Fhost%2Fcallback&scope=openid+email&state=xyz

The response type is always ``code``. The builder is deterministic and has
no side effects.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode, urlsplit

from oidcbridge.exceptions import InvalidRedirectUri
from oidcbridge.models import ProviderMetadata

logger = logging.getLogger(__name__)

RESPONSE_TYPE = "code"


def is_absolute_uri(uri: str) -> bool:
    """Return ``True`` if *uri* parses and has both a scheme and a host."""
    try:
        parts = urlsplit(uri)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


class AuthorizationRequestBuilder:
    """Build OpenID Connect authorization request URLs."""

    def build(
        self,
        callback_url: str,
        state: str,
        metadata: ProviderMetadata,
        client_id: str,
        scope: str,
    ) -> str:
        """Return the authorization URL for one login attempt.

        Args:
            callback_url: Absolute URL the provider redirects back to.
            state: The anti-forgery state issued by the host.
            metadata: The provider metadata.
            client_id: The OAuth2 client id.
            scope: Space-delimited scopes; runs of whitespace are collapsed.

        Returns:
            The authorization endpoint with the request parameters appended
            as a form-urlencoded query.

        Raises:
            InvalidRedirectUri: If *callback_url* is not an absolute URI.
        """
        if not is_absolute_uri(callback_url):
            raise InvalidRedirectUri(callback_url)

        query = urlencode(
            [
                ("response_type", RESPONSE_TYPE),
                ("client_id", client_id),
                ("redirect_uri", callback_url),
                ("scope", " ".join(scope.split())),
                ("state", state),
            ]
        )
        endpoint = metadata.authorization_endpoint
        if endpoint.endswith(("?", "&")):
            separator = ""
        elif urlsplit(endpoint).query:
            separator = "&"
        else:
            separator = "?"
        url = f"{endpoint}{separator}{query}"
        logger.debug("Authentication request URI: %s", url)
        return url
