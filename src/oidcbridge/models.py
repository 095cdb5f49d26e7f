"""Canonical Pydantic models shared across all oidcbridge modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- built by :func:`oidcbridge.config.load_settings`
from the host's key lookup:
    :class:`LoginStrategy`, :class:`HttpSettings`, and :class:`OidcSettings`.

**Protocol models** -- created and consumed within a single login attempt:
    :class:`ProviderMetadata`, :class:`AuthenticationRequestContext`,
    :class:`TokenSet`, :class:`ClaimSource`, :class:`ClaimsBundle`,
    :class:`CanonicalIdentity`, and :class:`FlowState`.

Protocol models are frozen. A step that needs different data produces a new
instance instead of mutating the one it was given.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oidcbridge.exceptions import UnsupportedStrategy


# --- Configuration ---


class LoginStrategy(str, enum.Enum):
    """Policy choosing which claim becomes the provider login.

    ``CUSTOM_CLAIM`` takes its claim name from
    :attr:`OidcSettings.custom_claim_name`.
    """

    PREFERRED_USERNAME = "preferred-username"
    PROVIDER_ID = "provider-id"
    EMAIL = "email"
    UNIQUE = "unique"
    CUSTOM_CLAIM = "custom-claim"

    @classmethod
    def parse(cls, value: "str | LoginStrategy") -> "LoginStrategy":
        """Return the strategy named by *value*.

        Raises:
            UnsupportedStrategy: If *value* names no known strategy.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedStrategy(str(value)) from None


class HttpSettings(BaseModel):
    """Transport settings applied to every call to the identity provider."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OidcSettings(BaseModel):
    """Typed view of the ``auth.oidc.*`` configuration surface.

    Read-only for the lifetime of a login attempt. The presentation fields
    (``icon_path``, ``background_color``, ``login_button_text``) only feed the
    host's login button.

    Example::

        OidcSettings(
            enabled=True,
            issuer_uri="https://idp.example.com/realms/acme",
            client_id="sonar",
            client_secret="s3cret",
            id_token_sign_algorithm="RS256",
        )
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    issuer_uri: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = Field(default=None, repr=False)
    scopes: str = "openid email profile"
    id_token_sign_algorithm: Optional[str] = Field(
        default=None,
        description="JWS algorithm of the ID token; unset disables signature validation",
    )
    login_strategy: LoginStrategy = LoginStrategy.PREFERRED_USERNAME
    custom_claim_name: str = "upn"
    groups_sync: bool = False
    groups_claim_name: str = "groups"
    auto_login: bool = False
    allow_users_to_sign_up: bool = True
    icon_path: Optional[str] = None
    background_color: str = "#236a97"
    login_button_text: str = "OpenID Connect"
    metadata_cache_seconds: float = Field(
        default=0.0, description="Per-process metadata cache TTL, 0 disables caching"
    )
    base_url: str = ""
    context_path: str = ""
    http: HttpSettings = Field(default_factory=HttpSettings)

    @field_validator("login_strategy", mode="before")
    @classmethod
    def _parse_login_strategy(cls, value: Any) -> LoginStrategy:
        return LoginStrategy.parse(value)

    @property
    def is_enabled(self) -> bool:
        """``True`` only when enabled AND an issuer URI AND a client id are configured."""
        return self.enabled and bool(self.issuer_uri) and bool(self.client_id)

    @property
    def groups_claim(self) -> Optional[str]:
        """The groups claim to resolve, or ``None`` when group sync is off."""
        return self.groups_claim_name if self.groups_sync else None


# --- Protocol values ---


class ProviderMetadata(BaseModel):
    """Endpoint set of an identity provider, from its discovery document.

    Unknown document fields (``scopes_supported``, ``claims_supported``, ...)
    are preserved in ``model_extra``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: Optional[str] = None
    jwks_uri: Optional[str] = None


class AuthenticationRequestContext(BaseModel):
    """The ephemeral data of one outbound authorization request."""

    model_config = ConfigDict(frozen=True)

    state: str
    callback_url: str


class TokenSet(BaseModel):
    """Tokens returned by the token endpoint.

    ``id_token_claims`` holds the ID token payload after validation, or after
    unverified decoding when no signing algorithm is configured.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    id_token: str = Field(repr=False)
    token_type: str = "Bearer"
    refresh_token: Optional[str] = Field(default=None, repr=False)
    expires_in: Optional[int] = None
    id_token_claims: dict[str, Any] = Field(default_factory=dict)


class ClaimSource(str, enum.Enum):
    """Where a :class:`ClaimsBundle` came from."""

    ID_TOKEN = "id_token"
    USERINFO = "userinfo"


class ClaimsBundle(BaseModel):
    """Immutable snapshot of the claims asserted about the user."""

    model_config = ConfigDict(frozen=True)

    claims: dict[str, Any] = Field(default_factory=dict)
    source: ClaimSource = ClaimSource.ID_TOKEN

    def __contains__(self, name: object) -> bool:
        return self.claims.get(name) is not None  # type: ignore[call-overload]

    def get(self, name: str) -> Any:  # noqa: ANN401
        """Return the raw claim value, or ``None`` when absent."""
        return self.claims.get(name)

    def string(self, name: str) -> Optional[str]:
        """Return the claim as a non-empty string, or ``None`` if absent, empty, or not a string."""
        value = self.claims.get(name)
        if isinstance(value, str) and value:
            return value
        return None

    @property
    def subject(self) -> Optional[str]:
        """The ``sub`` claim."""
        return self.string("sub")


class CanonicalIdentity(BaseModel):
    """The identity handed to the host's authentication commit.

    ``groups`` is ``None`` when group sync is disabled and a (possibly empty)
    set otherwise.
    """

    model_config = ConfigDict(frozen=True)

    provider_login: str = Field(min_length=1)
    provider_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    groups: Optional[frozenset[str]] = None


class FlowState(str, enum.Enum):
    """Stages of a login attempt driven by :class:`~oidcbridge.oidc.provider.OidcIdentityProvider`."""

    IDLE = "idle"
    INITIATING = "initiating"
    AWAITING_CALLBACK = "awaiting_callback"
    VALIDATING = "validating"
    RESOLVING = "resolving"
    MAPPING = "mapping"
    COMMITTED = "committed"
    FAILED = "failed"
