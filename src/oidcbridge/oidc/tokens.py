"""Authorization code exchange and ID token validation.

This module provides two components:

- :class:`TokenExchanger` -- POSTs the authorization code to the token
  endpoint with HTTP Basic client authentication and returns a
  :class:`~oidcbridge.models.TokenSet`.
- :class:`IdTokenValidator` -- checks the ID token's signature, issuer,
  audience, ``sub`` and time claims with PyJWT. Asymmetric algorithms use
  the provider's JWK set from ``jwks_uri``; ``HS*`` algorithms use the
  client secret.

When no signing algorithm is configured the ID token is decoded without any
verification. This reduced-security mode exists for providers that issue
unsigned tokens and is logged as a warning.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional
from urllib.parse import quote_plus

import jwt

from oidcbridge.client.transport import HttpTransport
from oidcbridge.exceptions import InvalidIdToken, TokenExchangeFailed
from oidcbridge.models import ProviderMetadata, TokenSet

logger = logging.getLogger(__name__)

CLOCK_SKEW_SECONDS = 60
_TOKEN_OPERATION = "Token request"
_JWKS_OPERATION = "JWK set request"
_KEY_TYPES = (("RS", "RSA"), ("PS", "RSA"), ("ES", "EC"), ("EdDSA", "OKP"))


def basic_auth_header(client_id: str, client_secret: Optional[str]) -> str:
    """Return the ``Authorization`` header value for HTTP Basic client authentication.

    The id and secret are form-urlencoded before base64 encoding (RFC 6749,
    section 2.3.1). A missing secret is sent as the empty string.
    """
    credentials = f"{quote_plus(client_id)}:{quote_plus(client_secret or '')}"
    return "Basic " + base64.b64encode(credentials.encode("utf-8")).decode("ascii")


class IdTokenValidator:
    """Validate signed ID tokens.

    Args:
        transport: HTTP transport used to fetch the JWK set.
        algorithm: The expected JWS algorithm (``"RS256"``, ``"ES256"``,
            ``"HS256"``, ...).
        leeway: Allowed clock skew in seconds for ``exp``, ``iat``, and
            ``nbf``.
    """

    def __init__(
        self,
        transport: HttpTransport,
        algorithm: str,
        leeway: int = CLOCK_SKEW_SECONDS,
    ) -> None:
        self._transport = transport
        self._algorithm = algorithm
        self._leeway = leeway

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def validate(
        self,
        id_token: str,
        metadata: ProviderMetadata,
        client_id: str,
        client_secret: Optional[str] = None,
    ) -> dict[str, Any]:
        """Verify *id_token* and return its claims.

        Args:
            id_token: The compact serialized JWT.
            metadata: Provider metadata; supplies the expected issuer and the
                ``jwks_uri``.
            client_id: The expected audience.
            client_secret: HMAC key for ``HS*`` algorithms.

        Returns:
            The validated claims.

        Raises:
            InvalidIdToken: On any signature, algorithm, issuer, audience,
                time, or ``sub`` failure, or if no matching key exists.
            ProviderUnreachable: If the JWK set cannot be fetched.
        """
        logger.debug(
            "Validating ID token with %s and key set from %s", self._algorithm, metadata.jwks_uri
        )
        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as exc:
            raise InvalidIdToken(f"Invalid ID token: {exc}") from exc

        declared = header.get("alg")
        if declared != self._algorithm:
            raise InvalidIdToken(
                f"Invalid ID token: signed with {declared!r}, expected {self._algorithm!r}"
            )

        if self._algorithm.upper().startswith("HS"):
            keys: list[Any] = [(client_secret or "").encode("utf-8")]
        else:
            keys = self._signing_keys(metadata, header.get("kid"))

        # Without a kid every compatible key is a candidate; the first one whose
        # signature matches wins.
        failure: Optional[Exception] = None
        for key in keys:
            try:
                claims = jwt.decode(
                    id_token,
                    key,
                    algorithms=[self._algorithm],
                    audience=client_id,
                    issuer=metadata.issuer,
                    leeway=self._leeway,
                    options={"require": ["sub"]},
                )
            except (jwt.InvalidSignatureError, jwt.InvalidKeyError, TypeError, ValueError) as exc:
                failure = exc
                continue
            except jwt.PyJWTError as exc:
                raise InvalidIdToken(f"Invalid ID token: {exc}") from exc
            break
        else:
            raise InvalidIdToken(f"Invalid ID token: {failure}") from failure

        if not isinstance(claims.get("sub"), str) or not claims["sub"]:
            raise InvalidIdToken("Invalid ID token: 'sub' claim must be a non-empty string")
        return claims

    def _signing_keys(self, metadata: ProviderMetadata, kid: Optional[str]) -> list[Any]:
        """Fetch the JWK set and return the verification keys usable for *kid*.

        Keys are kept in the order of the set when their ``kid`` matches (or
        the token has none), their ``use`` is ``sig`` or absent, and their key
        type fits the configured algorithm.
        """
        if not metadata.jwks_uri:
            raise InvalidIdToken(
                "Invalid ID token: provider metadata has no 'jwks_uri' to validate the signature"
            )
        response = self._transport.get(
            metadata.jwks_uri, operation=_JWKS_OPERATION, headers={"Accept": "application/json"}
        )
        if not response.is_success:
            raise InvalidIdToken(
                f"Retrieving JWK set failed with status {response.status_code} [{metadata.jwks_uri}]"
            )
        try:
            key_set = jwt.PyJWKSet.from_dict(response.json())
        except (ValueError, jwt.PyJWTError) as exc:
            raise InvalidIdToken(f"Invalid JWK set at {metadata.jwks_uri}: {exc}") from exc

        key_type = _key_type(self._algorithm)
        candidates = [
            k.key
            for k in key_set.keys
            if (kid is None or k.key_id == kid)
            and k.public_key_use in (None, "sig")
            and (key_type is None or k.key_type == key_type)
        ]
        if not candidates:
            raise InvalidIdToken(
                f"Invalid ID token: no {self._algorithm} signing key with kid {kid!r} "
                f"in {metadata.jwks_uri}"
            )
        logger.debug("%d candidate signing key(s) for kid %r", len(candidates), kid)
        return candidates


def _key_type(algorithm: str) -> Optional[str]:
    """Return the JWK ``kty`` that can verify *algorithm*, or ``None`` if unknown."""
    for prefix, key_type in _KEY_TYPES:
        if algorithm.startswith(prefix):
            return key_type
    return None


class TokenExchanger:
    """Exchange authorization codes for tokens.

    Args:
        transport: The HTTP transport.
        validator: Validator for signed ID tokens. ``None`` selects the
            unverified decoding mode.
    """

    def __init__(
        self,
        transport: HttpTransport,
        validator: Optional[IdTokenValidator] = None,
    ) -> None:
        self._transport = transport
        self._validator = validator
        self._warned_unsigned = False

    def exchange(
        self,
        code: str,
        callback_url: str,
        metadata: ProviderMetadata,
        client_id: str,
        client_secret: Optional[str],
    ) -> TokenSet:
        """Redeem *code* at the token endpoint.

        Args:
            code: The authorization code from the callback.
            callback_url: The redirect URI used in the authorization request.
            metadata: The provider metadata.
            client_id: The OAuth2 client id.
            client_secret: The OAuth2 client secret.

        Returns:
            The tokens, with ``id_token_claims`` populated.

        Raises:
            ProviderUnreachable: If the token endpoint cannot be reached.
            TokenExchangeFailed: If the endpoint rejects the exchange or
                answers with a malformed response.
            InvalidIdToken: If the ID token fails validation.
        """
        logger.debug("Retrieving OIDC tokens from %s", metadata.token_endpoint)
        response = self._transport.post(
            metadata.token_endpoint,
            operation=_TOKEN_OPERATION,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": callback_url,
            },
            headers={
                "Authorization": basic_auth_header(client_id, client_secret),
                "Accept": "application/json",
            },
        )
        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            error_code = None
            description = None
            if isinstance(body, dict):
                if isinstance(body.get("error"), str) and body["error"]:
                    error_code = body["error"]
                if isinstance(body.get("error_description"), str):
                    description = body["error_description"]
            logger.debug("Token endpoint answered HTTP %d (error=%s)", response.status_code, error_code)
            raise TokenExchangeFailed(error_code, description)

        if not isinstance(body, dict):
            raise TokenExchangeFailed(
                message="Token request failed: malformed token response (expected a JSON object)"
            )
        for field in ("access_token", "id_token"):
            if not isinstance(body.get(field), str) or not body[field]:
                raise TokenExchangeFailed(
                    message=f"Token request failed: malformed token response (missing '{field}')"
                )

        id_token: str = body["id_token"]
        if self._validator is not None:
            claims = self._validator.validate(id_token, metadata, client_id, client_secret)
        else:
            claims = self._decode_unverified(id_token)

        return TokenSet(
            access_token=body["access_token"],
            id_token=id_token,
            token_type=body["token_type"] if isinstance(body.get("token_type"), str) else "Bearer",
            refresh_token=body.get("refresh_token") if isinstance(body.get("refresh_token"), str) else None,
            expires_in=_as_int(body.get("expires_in")),
            id_token_claims=claims,
        )

    def _decode_unverified(self, id_token: str) -> dict[str, Any]:
        if not self._warned_unsigned:
            logger.warning(
                "No ID token signing algorithm configured: ID token claims are accepted "
                "without signature validation"
            )
            self._warned_unsigned = True
        try:
            return jwt.decode(id_token, options={"verify_signature": False})
        except jwt.PyJWTError as exc:
            raise InvalidIdToken(f"Parsing ID token failed: {exc}") from exc


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None
