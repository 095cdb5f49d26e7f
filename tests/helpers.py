"""Shared constants and builders for the oidcbridge test suite.

Holds the fake identity provider served through :class:`httpx.MockTransport`,
discovery documents, ID token claims and settings factories. Fixtures built
on top of these live in ``conftest.py``.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Union

import httpx
import jwt

from oidcbridge.client.transport import HttpTransport
from oidcbridge.models import OidcSettings

ISSUER = "https://oidc.org"
CLIENT_ID = "id"
CLIENT_SECRET = "secret"
CALLBACK_URL = "http://localhost/callback/oidc"
KEY_ID = "test-key"

SUBJECT = "8f63a486-6699-4f25-beef-118dd240bef8"
USER_CLAIMS: dict[str, Any] = {
    "sub": SUBJECT,
    "preferred_username": "jdoo",
    "name": "John Doo",
    "email": "john.doo@acme.com",
    "groups": ["admins", "internal"],
}

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------


class FakeProvider:
    """Routes ``(method, url-without-query)`` to canned responses and records requests."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, response: Responder) -> None:
        self.routes[(method.upper(), url)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, str(request.url).split("?")[0]))
        if route is None:
            return httpx.Response(404, json={"error": "not_found"})
        if callable(route):
            return route(request)
        return route

    def requests_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).split("?")[0] == url]

    def transport(self) -> HttpTransport:
        return HttpTransport(client=httpx.Client(transport=httpx.MockTransport(self)))


def metadata_document(issuer: Optional[str] = ISSUER, **overrides: Any) -> dict[str, Any]:
    """A Keycloak-style discovery document for *issuer*.

    Endpoints are always rooted at *issuer* (or :data:`ISSUER` when it is
    ``None``). Any key set to ``None``, ``issuer`` included, is left out of
    the document.
    """
    base = (issuer or ISSUER).rstrip("/")
    document: dict[str, Any] = {
        "issuer": issuer,
        "authorization_endpoint": f"{base}/protocol/openid-connect/auth",
        "token_endpoint": f"{base}/protocol/openid-connect/token",
        "userinfo_endpoint": f"{base}/protocol/openid-connect/userinfo",
        "jwks_uri": f"{base}/protocol/openid-connect/certs",
        "scopes_supported": ["openid", "email", "profile"],
    }
    document.update(overrides)
    return {k: v for k, v in document.items() if v is not None}


# ---------------------------------------------------------------------------
# ID tokens
# ---------------------------------------------------------------------------


def id_token_claims(**overrides: Any) -> dict[str, Any]:
    """Claims of a valid ID token for :data:`CLIENT_ID` issued by :data:`ISSUER`."""
    now = int(time.time())
    claims: dict[str, Any] = {
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "iat": now,
        "exp": now + 300,
        **USER_CLAIMS,
    }
    claims.update(overrides)
    return {k: v for k, v in claims.items() if v is not None}


def unsigned_id_token(claims: dict[str, Any]) -> str:
    """An ID token whose signature is never checked (HS256 with a throwaway key)."""
    return jwt.encode(claims, "unverified-signing-key-for-tests-000000", algorithm="HS256")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> OidcSettings:
    """Enabled settings for ``https://oidc.org`` overridden by *overrides*."""
    values: dict[str, Any] = {
        "enabled": True,
        "issuer_uri": ISSUER,
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "base_url": "http://localhost:9000",
    }
    values.update(overrides)
    return OidcSettings(**values)
