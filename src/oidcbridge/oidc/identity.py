"""Claims to identity mapping.

:class:`IdentityMapper` derives the host identity from a
:class:`~oidcbridge.models.ClaimsBundle`. The login comes from the claim
selected by the :class:`~oidcbridge.models.LoginStrategy`:

====================  ==============================
Strategy              Login
====================  ==============================
preferred-username    ``preferred_username``
provider-id           ``sub``
email                 ``email``
unique                ``"<sub>@oidc"``
custom-claim          the configured claim
====================  ==============================

The display name is ``name``, falling back to ``preferred_username``.
Groups are mapped only when group sync is enabled.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from oidcbridge.exceptions import CLAIM_HINT, ConfigError, MissingClaim
from oidcbridge.models import CanonicalIdentity, ClaimsBundle, LoginStrategy

logger = logging.getLogger(__name__)

UNIQUE_LOGIN_SUFFIX = "oidc"


class IdentityMapper:
    """Map claims to a :class:`~oidcbridge.models.CanonicalIdentity`."""

    def map(
        self,
        claims: ClaimsBundle,
        strategy: Union[LoginStrategy, str],
        custom_claim: Optional[str] = None,
        sync_groups: bool = False,
        groups_claim: str = "groups",
    ) -> CanonicalIdentity:
        """Build the identity for *claims*.

        Args:
            claims: The resolved claims.
            strategy: The login strategy, or its configuration name.
            custom_claim: Claim name for :attr:`LoginStrategy.CUSTOM_CLAIM`.
            sync_groups: Whether to map group memberships.
            groups_claim: Name of the groups claim.

        Returns:
            The identity.

        Raises:
            UnsupportedStrategy: If *strategy* names no known strategy.
            MissingClaim: If a claim the policy needs is absent, empty, or
                has the wrong shape.
            ConfigError: If the custom-claim strategy has no claim name.
        """
        strategy = LoginStrategy.parse(strategy)
        login = self._login(claims, strategy, custom_claim)
        identity = CanonicalIdentity(
            provider_login=login,
            provider_id=claims.subject,
            name=self._name(claims),
            email=claims.string("email"),
            groups=self._groups(claims, groups_claim) if sync_groups else None,
        )
        logger.debug(
            "Mapped identity: login=%s strategy=%s groups=%s",
            identity.provider_login,
            strategy.value,
            sorted(identity.groups) if identity.groups is not None else None,
        )
        return identity

    # ------------------------------------------------------------------ #
    # Login strategies
    # ------------------------------------------------------------------ #

    def _login(self, claims: ClaimsBundle, strategy: LoginStrategy, custom_claim: Optional[str]) -> str:
        if strategy is LoginStrategy.PREFERRED_USERNAME:
            return self._preferred_username_login(claims)
        if strategy is LoginStrategy.PROVIDER_ID:
            return self._provider_id_login(claims)
        if strategy is LoginStrategy.EMAIL:
            return self._email_login(claims)
        if strategy is LoginStrategy.UNIQUE:
            return self._unique_login(claims)
        return self._custom_claim_login(claims, custom_claim)

    @staticmethod
    def _required(claims: ClaimsBundle, name: str) -> str:
        value = claims.string(name)
        if value is None:
            raise MissingClaim(name)
        return value

    def _preferred_username_login(self, claims: ClaimsBundle) -> str:
        return self._required(claims, "preferred_username")

    def _provider_id_login(self, claims: ClaimsBundle) -> str:
        return self._required(claims, "sub")

    def _email_login(self, claims: ClaimsBundle) -> str:
        return self._required(claims, "email")

    def _unique_login(self, claims: ClaimsBundle) -> str:
        return f"{self._required(claims, 'sub')}@{UNIQUE_LOGIN_SUFFIX}"

    def _custom_claim_login(self, claims: ClaimsBundle, custom_claim: Optional[str]) -> str:
        if not custom_claim:
            raise ConfigError("The custom-claim login strategy requires a claim name")
        value = claims.string(custom_claim)
        if value is None:
            raise MissingClaim(
                custom_claim,
                message=f"Custom claim '{custom_claim}' is missing in user info - {CLAIM_HINT}",
            )
        return value

    # ------------------------------------------------------------------ #
    # Profile
    # ------------------------------------------------------------------ #

    @staticmethod
    def _name(claims: ClaimsBundle) -> str:
        name = claims.string("name") or claims.string("preferred_username")
        if name is None:
            raise MissingClaim(
                "name|preferred_username",
                message=(
                    "Claims 'name' and 'preferred_username' are missing in user info - make sure "
                    "your OIDC provider supports these claims in the id token or at the user "
                    "info endpoint"
                ),
            )
        return name

    @staticmethod
    def _groups(claims: ClaimsBundle, groups_claim: str) -> frozenset[str]:
        value: Any = claims.get(groups_claim)
        if value is None or value == "":
            raise MissingClaim(groups_claim)
        if isinstance(value, str):
            return frozenset([value])
        if isinstance(value, list) and all(isinstance(g, str) for g in value):
            return frozenset(value)
        raise MissingClaim(groups_claim, reason="must be a string or a list of strings")
