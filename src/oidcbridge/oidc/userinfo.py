"""Claim resolution with the userinfo endpoint as fallback.

The ID token claims are used as they are unless they lack the display name
(neither ``name`` nor ``preferred_username``) or, with group sync enabled,
the groups claim. In that case the userinfo endpoint is queried with the
access token and its answer replaces the ID token claims entirely.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from oidcbridge.client.transport import HttpTransport
from oidcbridge.exceptions import UserInfoFailed
from oidcbridge.models import ClaimsBundle, ClaimSource, ProviderMetadata, TokenSet

logger = logging.getLogger(__name__)

_OPERATION = "UserInfo request"
_CHALLENGE_PARAM = re.compile(r'([A-Za-z_]+)\s*=\s*(?:"([^"]*)"|([^\s,]+))')


def parse_bearer_challenge(header: Optional[str]) -> dict[str, str]:
    """Return the auth-params of a ``WWW-Authenticate: Bearer ...`` challenge.

    >>> parse_bearer_challenge('Bearer realm="x", error="invalid_token"')
    {'realm': 'x', 'error': 'invalid_token'}
    """
    if not header:
        return {}
    scheme, _, params = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return {}
    return {m.group(1): m.group(2) if m.group(2) is not None else m.group(3) for m in _CHALLENGE_PARAM.finditer(params)}


def needs_lookup(claims: ClaimsBundle, groups_claim: Optional[str] = None) -> bool:
    """Return ``True`` if *claims* lack the display name or the groups claim."""
    if "name" not in claims and "preferred_username" not in claims:
        return True
    return bool(groups_claim) and groups_claim not in claims


class UserInfoResolver:
    """Resolve the claims of the authenticated user."""

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    def resolve(
        self,
        token_set: TokenSet,
        metadata: ProviderMetadata,
        groups_claim: Optional[str] = None,
    ) -> ClaimsBundle:
        """Return the claims to map, querying the userinfo endpoint if needed.

        Args:
            token_set: The tokens from the exchange.
            metadata: The provider metadata.
            groups_claim: Name of the groups claim when group sync is
                enabled, else ``None``.

        Returns:
            The ID token claims, or the userinfo claims when a lookup ran.

        Raises:
            ProviderUnreachable: If the userinfo endpoint cannot be reached.
            UserInfoFailed: If the endpoint rejects the lookup, answers with
                something other than a JSON object, reports a different
                ``sub``, or the provider has no userinfo endpoint.
        """
        claims = ClaimsBundle(claims=dict(token_set.id_token_claims), source=ClaimSource.ID_TOKEN)
        if not needs_lookup(claims, groups_claim):
            logger.debug("Using ID token claims: %s", sorted(claims.claims))
            return claims

        endpoint = metadata.userinfo_endpoint
        if not endpoint:
            raise UserInfoFailed(
                message="UserInfo request failed: provider metadata has no 'userinfo_endpoint'"
            )
        logger.debug("Retrieving user info from %s", endpoint)
        response = self._transport.get(
            endpoint,
            operation=_OPERATION,
            headers={
                "Authorization": f"Bearer {token_set.access_token}",
                "Accept": "application/json",
            },
        )
        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            challenge = parse_bearer_challenge(response.headers.get("WWW-Authenticate"))
            error_code = challenge.get("error") or None
            description = challenge.get("error_description")
            if error_code is None and isinstance(body, dict) and isinstance(body.get("error"), str):
                error_code = body["error"] or None
                if isinstance(body.get("error_description"), str):
                    description = body["error_description"]
            logger.debug("UserInfo endpoint answered HTTP %d (error=%s)", response.status_code, error_code)
            raise UserInfoFailed(error_code, description)

        if not isinstance(body, dict):
            raise UserInfoFailed(
                message="UserInfo request failed: malformed response (expected a JSON object)"
            )

        expected = claims.subject
        if expected is not None and body.get("sub") != expected:
            raise UserInfoFailed(
                message="UserInfo request failed: 'sub' claim of user info doesn't match the ID token"
            )

        resolved = ClaimsBundle(claims=body, source=ClaimSource.USERINFO)
        logger.debug("Using user info claims: %s", sorted(resolved.claims))
        return resolved
