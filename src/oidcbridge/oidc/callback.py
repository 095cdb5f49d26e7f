"""Callback request parsing.

When the identity provider redirects back, the authorization response is in
the query string: ``code`` (and ``state``) on success, ``error`` with an
optional ``error_description`` and ``error_uri`` on failure.

:func:`parse_query_string` decodes the raw query the same way servlet
containers do, with one difference: malformed percent escapes are rejected
instead of passed through.
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import unquote_plus

from oidcbridge.exceptions import AuthorizationFailed, CallbackParseError
from oidcbridge.oidc.request import is_absolute_uri

logger = logging.getLogger(__name__)

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _decode(component: str) -> str:
    if _MALFORMED_ESCAPE.search(component):
        raise CallbackParseError(
            f"Error while processing callback request: malformed percent escape in {component!r}"
        )
    try:
        return unquote_plus(component, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise CallbackParseError(
            f"Error while processing callback request: invalid UTF-8 in {component!r}"
        ) from exc


def parse_query_string(query: Optional[str]) -> dict[str, list[str]]:
    """Decode a raw query string into ``name -> [values]``.

    The query is split on ``&``. A pair without ``=``, or with ``=`` as its
    first character, is ignored. Names and values are percent-decoded as
    UTF-8 with ``+`` meaning space. Repeated names keep every value in order.

    Args:
        query: The raw query string, or ``None``.

    Returns:
        The decoded parameters. Empty for ``None`` or ``""``.

    Raises:
        CallbackParseError: On a malformed percent escape or invalid UTF-8.
    """
    params: dict[str, list[str]] = {}
    if not query:
        return params
    for pair in query.split("&"):
        idx = pair.find("=")
        if idx <= 0:
            continue
        key = _decode(pair[:idx])
        value = _decode(pair[idx + 1 :])
        params.setdefault(key, []).append(value)
    return params


def _first(params: dict[str, list[str]], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


class CallbackExtractor:
    """Extract the authorization code from a callback request."""

    def extract(self, callback_request_uri: str, raw_query_string: Optional[str]) -> str:
        """Return the authorization code carried by the callback.

        Args:
            callback_request_uri: The absolute callback URL as received.
            raw_query_string: The raw query string of the callback request.

        Returns:
            The authorization code, percent-decoded.

        Raises:
            AuthorizationFailed: If the provider returned an ``error``.
            CallbackParseError: If the request URI is not absolute, the query
                cannot be decoded, or no ``code`` is present.
        """
        logger.debug("Retrieving authorization code from callback request %s", callback_request_uri)
        if not is_absolute_uri(callback_request_uri):
            raise CallbackParseError(
                f"Error while processing callback request: invalid request URI {callback_request_uri!r}"
            )
        params = parse_query_string(raw_query_string)

        error = _first(params, "error")
        if error:
            raise AuthorizationFailed(
                error,
                description=_first(params, "error_description"),
                error_uri=_first(params, "error_uri"),
            )

        code = _first(params, "code")
        if not code:
            raise CallbackParseError(
                "Error while processing callback request: missing authorization code"
            )
        return code
