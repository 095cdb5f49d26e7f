"""Provider metadata discovery.

:class:`ProviderMetadataResolver` fetches the identity provider's discovery
document from ``<issuer>/.well-known/openid-configuration`` and turns it into
a :class:`~oidcbridge.models.ProviderMetadata`. The declared ``issuer`` must
equal the configured issuer URI exactly.

Resolved metadata can be kept in a per-process cache for
``metadata_cache_seconds``; with the default of ``0`` every call goes to the
network.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from pydantic import ValidationError

from oidcbridge.client.transport import HttpTransport
from oidcbridge.exceptions import InvalidProviderMetadata, IssuerMismatch
from oidcbridge.models import ProviderMetadata

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"
_OPERATION = "Discovery request"
_REQUIRED_FIELDS = ("issuer", "authorization_endpoint", "token_endpoint")


def discovery_url(issuer_uri: str) -> str:
    """Return the discovery document URL for *issuer_uri*."""
    return issuer_uri.rstrip("/") + WELL_KNOWN_PATH


class ProviderMetadataResolver:
    """Resolve :class:`~oidcbridge.models.ProviderMetadata` for an issuer.

    Args:
        transport: The HTTP transport.
        cache_seconds: How long resolved metadata is reused. ``0`` disables
            the cache.
        clock: Monotonic clock used for cache expiry.
    """

    def __init__(
        self,
        transport: HttpTransport,
        cache_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._transport = transport
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, ProviderMetadata]] = {}
        self._lock = threading.Lock()

    def resolve(self, issuer_uri: str) -> ProviderMetadata:
        """Fetch, validate, and return the provider metadata.

        Args:
            issuer_uri: The configured issuer URI.

        Returns:
            The provider metadata.

        Raises:
            ProviderUnreachable: If the discovery document cannot be fetched.
            InvalidProviderMetadata: On a non-2xx status, a non-JSON body, or
                a document without the required endpoints.
            IssuerMismatch: If the document's ``issuer`` differs from
                *issuer_uri*.
        """
        if self._cache_seconds > 0:
            with self._lock:
                cached = self._cache.get(issuer_uri)
                if cached is not None and self._clock() < cached[0]:
                    logger.debug("Using cached provider metadata for %s", issuer_uri)
                    return cached[1]

        metadata = self._fetch(issuer_uri)

        if self._cache_seconds > 0:
            with self._lock:
                self._cache[issuer_uri] = (self._clock() + self._cache_seconds, metadata)
        return metadata

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _fetch(self, issuer_uri: str) -> ProviderMetadata:
        url = discovery_url(issuer_uri)
        logger.debug("Retrieving provider metadata from %s", url)
        response = self._transport.get(
            url, operation=_OPERATION, headers={"Accept": "application/json"}
        )
        if not response.is_success:
            raise InvalidProviderMetadata(
                "Retrieving OpenID Connect provider metadata failed with status "
                f"{response.status_code} [{url}]"
            )
        try:
            document: Any = response.json()
        except ValueError as exc:
            raise InvalidProviderMetadata(
                f"Retrieving OpenID Connect provider metadata failed: response is not JSON [{url}]"
            ) from exc
        if not isinstance(document, dict):
            raise InvalidProviderMetadata(
                "Retrieving OpenID Connect provider metadata failed: "
                f"expected a JSON object [{url}]"
            )

        declared: Optional[Any] = document.get("issuer")
        if isinstance(declared, str) and declared and declared != issuer_uri:
            raise IssuerMismatch(issuer_uri, declared)

        missing = [f for f in _REQUIRED_FIELDS if not isinstance(document.get(f), str) or not document[f]]
        if missing:
            raise InvalidProviderMetadata(
                "Retrieving OpenID Connect provider metadata failed: document is missing "
                + ", ".join(f"'{f}'" for f in missing)
                + f" [{url}]"
            )
        try:
            metadata = ProviderMetadata.model_validate(document)
        except ValidationError as exc:
            raise InvalidProviderMetadata(
                f"Retrieving OpenID Connect provider metadata failed: {exc} [{url}]"
            ) from exc
        logger.debug(
            "Provider metadata: authorization=%s token=%s userinfo=%s jwks=%s",
            metadata.authorization_endpoint,
            metadata.token_endpoint,
            metadata.userinfo_endpoint,
            metadata.jwks_uri,
        )
        return metadata
