"""Blocking HTTP transport shared by the protocol components.

This module provides :class:`HttpTransport`, a thin wrapper around
:class:`httpx.Client` that every outbound call to the identity provider
goes through (discovery, token, userinfo, and key set requests). It adds:

- **Transport settings** -- timeout and SSL verification from
  :class:`~oidcbridge.models.HttpSettings`.
- **Error translation** -- httpx request errors and invalid URLs
  become :class:`~oidcbridge.exceptions.ProviderUnreachable`, whose message
  points at the outbound proxy settings.

Calls are single-shot. The caller decides what an HTTP status means, since
each endpoint reports errors differently.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from oidcbridge.exceptions import ProviderUnreachable
from oidcbridge.models import HttpSettings

logger = logging.getLogger(__name__)


class HttpTransport:
    """Synchronous HTTP transport for identity provider calls.

    Args:
        settings: Timeout and SSL settings. Ignored when *client* is given.
        client: A preconfigured :class:`httpx.Client` to use instead of
            building one (tests pass a client over :class:`httpx.MockTransport`).

    Example::

        with HttpTransport(settings.http) as transport:
            response = transport.get(url, operation="Discovery request")
    """

    def __init__(
        self,
        settings: Optional[HttpSettings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if client is None:
            settings = settings or HttpSettings()
            client = httpx.Client(
                timeout=settings.timeout,
                verify=settings.verify_ssl,
                follow_redirects=True,
            )
        self._client = client

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        url: str,
        operation: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a single request and return the response, whatever its status.

        Args:
            method: HTTP method.
            url: Absolute URL.
            operation: Human-readable name of the call, used in diagnostics
                (e.g. ``"Token request"``).
            **kwargs: Forwarded to :meth:`httpx.Client.request`.

        Returns:
            The :class:`httpx.Response`.

        Raises:
            ProviderUnreachable: On any httpx request error, including
                redirect loops, or when *url* is not a valid URL.
        """
        logger.debug("%s: %s %s", operation, method.upper(), url)
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ProviderUnreachable(operation, url, str(exc) or type(exc).__name__) from exc
        logger.debug("%s: HTTP %d", operation, response.status_code)
        return response

    def get(self, url: str, operation: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request. See :meth:`request`."""
        return self.request("GET", url, operation, **kwargs)

    def post(self, url: str, operation: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request. See :meth:`request`."""
        return self.request("POST", url, operation, **kwargs)
