"""Tests for provider metadata discovery and its cache."""

from __future__ import annotations

import httpx
import pytest

from helpers import ISSUER, FakeProvider, metadata_document
from oidcbridge.exceptions import InvalidProviderMetadata, IssuerMismatch, ProviderUnreachable
from oidcbridge.oidc.metadata import ProviderMetadataResolver, discovery_url

DISCOVERY = f"{ISSUER}/.well-known/openid-configuration"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _serve(document: object, status_code: int = 200) -> FakeProvider:
    provider = FakeProvider()
    if isinstance(document, (dict, list)):
        response = httpx.Response(status_code, json=document)
    else:
        response = httpx.Response(status_code, text=str(document))
    provider.add("GET", DISCOVERY, response)
    return provider


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolve:
    def test_discovery_url_strips_trailing_slash(self) -> None:
        assert discovery_url("https://idp.example.com/realms/acme/") == (
            "https://idp.example.com/realms/acme/.well-known/openid-configuration"
        )

    def test_resolves_endpoints(self) -> None:
        provider = _serve(metadata_document())
        metadata = ProviderMetadataResolver(provider.transport()).resolve(ISSUER)

        assert metadata.issuer == ISSUER
        assert metadata.authorization_endpoint == f"{ISSUER}/protocol/openid-connect/auth"
        assert metadata.token_endpoint == f"{ISSUER}/protocol/openid-connect/token"
        assert metadata.userinfo_endpoint == f"{ISSUER}/protocol/openid-connect/userinfo"
        assert metadata.jwks_uri == f"{ISSUER}/protocol/openid-connect/certs"

    def test_unknown_fields_are_preserved(self) -> None:
        provider = _serve(metadata_document())
        metadata = ProviderMetadataResolver(provider.transport()).resolve(ISSUER)
        assert metadata.model_extra == {"scopes_supported": ["openid", "email", "profile"]}

    def test_optional_endpoints_may_be_absent(self) -> None:
        provider = _serve(metadata_document(userinfo_endpoint=None, jwks_uri=None))
        metadata = ProviderMetadataResolver(provider.transport()).resolve(ISSUER)
        assert metadata.userinfo_endpoint is None
        assert metadata.jwks_uri is None

    def test_issuer_with_trailing_slash_must_match_exactly(self) -> None:
        provider = FakeProvider()
        provider.add(
            "GET",
            DISCOVERY,
            httpx.Response(200, json=metadata_document(issuer=ISSUER + "/")),
        )
        metadata = ProviderMetadataResolver(provider.transport()).resolve(ISSUER + "/")
        assert metadata.issuer == ISSUER + "/"


class TestResolveFailures:
    def test_issuer_mismatch(self) -> None:
        provider = _serve(metadata_document(issuer="https://other.org"))
        with pytest.raises(IssuerMismatch) as exc_info:
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)
        assert exc_info.value.expected == ISSUER
        assert exc_info.value.actual == "https://other.org"
        assert "doesn't match" in str(exc_info.value)

    def test_issuer_mismatch_wins_over_missing_endpoints(self) -> None:
        provider = _serve({"issuer": "https://other.org"})
        with pytest.raises(IssuerMismatch):
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)

    @pytest.mark.parametrize("field", ["issuer", "authorization_endpoint", "token_endpoint"])
    def test_missing_required_field(self, field: str) -> None:
        document = metadata_document(**{field: None})
        assert field not in document
        provider = _serve(document)
        with pytest.raises(InvalidProviderMetadata) as exc_info:
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)
        assert f"document is missing '{field}' [" in str(exc_info.value)

    def test_non_json_body(self) -> None:
        provider = _serve("<html>login</html>")
        with pytest.raises(InvalidProviderMetadata, match="not JSON"):
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)

    def test_json_array_body(self) -> None:
        provider = _serve(["issuer"])
        with pytest.raises(InvalidProviderMetadata, match="JSON object"):
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)

    def test_error_status(self) -> None:
        provider = _serve(metadata_document(), status_code=503)
        with pytest.raises(InvalidProviderMetadata, match="503"):
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)

    def test_unreachable_provider_mentions_proxy(self) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = FakeProvider()
        provider.add("GET", DISCOVERY, _refuse)
        with pytest.raises(ProviderUnreachable) as exc_info:
            ProviderMetadataResolver(provider.transport()).resolve(ISSUER)
        assert "HTTPS_PROXY" in str(exc_info.value)
        assert DISCOVERY in str(exc_info.value)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_disabled_by_default(self) -> None:
        provider = _serve(metadata_document())
        resolver = ProviderMetadataResolver(provider.transport())
        resolver.resolve(ISSUER)
        resolver.resolve(ISSUER)
        assert len(provider.requests) == 2

    def test_reuses_metadata_within_ttl(self) -> None:
        clock = _Clock()
        provider = _serve(metadata_document())
        resolver = ProviderMetadataResolver(provider.transport(), cache_seconds=60, clock=clock)

        first = resolver.resolve(ISSUER)
        clock.now += 59
        second = resolver.resolve(ISSUER)

        assert first is second
        assert len(provider.requests) == 1

    def test_refetches_after_ttl(self) -> None:
        clock = _Clock()
        provider = _serve(metadata_document())
        resolver = ProviderMetadataResolver(provider.transport(), cache_seconds=60, clock=clock)

        resolver.resolve(ISSUER)
        clock.now += 61
        resolver.resolve(ISSUER)
        assert len(provider.requests) == 2

    def test_failures_are_not_cached(self) -> None:
        provider = _serve(metadata_document(issuer="https://other.org"))
        resolver = ProviderMetadataResolver(provider.transport(), cache_seconds=60)
        for _ in range(2):
            with pytest.raises(IssuerMismatch):
                resolver.resolve(ISSUER)
        assert len(provider.requests) == 2

    def test_clear_cache(self) -> None:
        provider = _serve(metadata_document())
        resolver = ProviderMetadataResolver(provider.transport(), cache_seconds=60)
        resolver.resolve(ISSUER)
        resolver.clear_cache()
        resolver.resolve(ISSUER)
        assert len(provider.requests) == 2
