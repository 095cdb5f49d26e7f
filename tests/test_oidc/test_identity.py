"""Tests for mapping claims to a canonical identity."""

from __future__ import annotations

from typing import Any

import pytest

from helpers import SUBJECT, USER_CLAIMS
from oidcbridge.exceptions import ConfigError, MissingClaim, UnsupportedStrategy
from oidcbridge.models import ClaimsBundle, LoginStrategy
from oidcbridge.oidc.identity import IdentityMapper


def _claims(**overrides: Any) -> ClaimsBundle:
    claims = dict(USER_CLAIMS)
    claims.update(overrides)
    return ClaimsBundle(claims={k: v for k, v in claims.items() if v is not None})


# ---------------------------------------------------------------------------
# Login strategies
# ---------------------------------------------------------------------------


class TestLoginStrategies:
    @pytest.mark.parametrize(
        "strategy, expected",
        [
            (LoginStrategy.PREFERRED_USERNAME, "jdoo"),
            (LoginStrategy.PROVIDER_ID, SUBJECT),
            (LoginStrategy.EMAIL, "john.doo@acme.com"),
            (LoginStrategy.UNIQUE, f"{SUBJECT}@oidc"),
        ],
    )
    def test_login(self, strategy: LoginStrategy, expected: str) -> None:
        identity = IdentityMapper().map(_claims(), strategy)
        assert identity.provider_login == expected
        assert identity.provider_id == SUBJECT

    def test_custom_claim(self) -> None:
        identity = IdentityMapper().map(
            _claims(upn="jdoo@acme.com"), LoginStrategy.CUSTOM_CLAIM, custom_claim="upn"
        )
        assert identity.provider_login == "jdoo@acme.com"

    def test_strategy_given_by_name(self) -> None:
        assert IdentityMapper().map(_claims(), " Email ").provider_login == "john.doo@acme.com"

    def test_unknown_strategy(self) -> None:
        with pytest.raises(UnsupportedStrategy) as exc_info:
            IdentityMapper().map(_claims(), "xxx")
        assert exc_info.value.strategy == "xxx"
        assert str(exc_info.value) == "Login strategy not supported: xxx"


class TestMissingLoginClaims:
    def test_preferred_username_missing(self) -> None:
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(_claims(preferred_username=None), LoginStrategy.PREFERRED_USERNAME)
        assert exc_info.value.claim == "preferred_username"
        assert str(exc_info.value).startswith("Claim 'preferred_username' is missing in user info")

    @pytest.mark.parametrize("value", ["", 42, ["jdoo"]])
    def test_preferred_username_unusable(self, value: Any) -> None:
        with pytest.raises(MissingClaim):
            IdentityMapper().map(_claims(preferred_username=value, name="John"), "preferred-username")

    def test_email_missing(self) -> None:
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(_claims(email=None), LoginStrategy.EMAIL)
        assert exc_info.value.claim == "email"

    @pytest.mark.parametrize("strategy", [LoginStrategy.PROVIDER_ID, LoginStrategy.UNIQUE])
    def test_sub_missing(self, strategy: LoginStrategy) -> None:
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(_claims(sub=None), strategy)
        assert exc_info.value.claim == "sub"

    def test_custom_claim_missing(self) -> None:
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(_claims(), LoginStrategy.CUSTOM_CLAIM, custom_claim="upn")
        assert exc_info.value.claim == "upn"
        assert str(exc_info.value).startswith("Custom claim 'upn' is missing")

    def test_custom_claim_without_name(self) -> None:
        with pytest.raises(ConfigError):
            IdentityMapper().map(_claims(), LoginStrategy.CUSTOM_CLAIM)

    def test_unique_needs_only_sub_and_name(self) -> None:
        claims = ClaimsBundle(claims={"sub": SUBJECT, "name": "John Doo"})
        identity = IdentityMapper().map(claims, LoginStrategy.UNIQUE)
        assert identity.provider_login == f"{SUBJECT}@oidc"
        assert identity.name == "John Doo"
        assert identity.email is None

    def test_unique_with_only_sub_still_needs_a_name(self) -> None:
        claims = ClaimsBundle(claims={"sub": SUBJECT})
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(claims, LoginStrategy.UNIQUE)
        assert exc_info.value.claim == "name|preferred_username"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class TestProfile:
    def test_name_and_email(self) -> None:
        identity = IdentityMapper().map(_claims(), LoginStrategy.PREFERRED_USERNAME)
        assert identity.name == "John Doo"
        assert identity.email == "john.doo@acme.com"

    def test_name_falls_back_to_preferred_username(self) -> None:
        identity = IdentityMapper().map(_claims(name=None), LoginStrategy.PROVIDER_ID)
        assert identity.name == "jdoo"

    def test_name_and_preferred_username_missing(self) -> None:
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(_claims(name=None, preferred_username=None), LoginStrategy.PROVIDER_ID)
        assert exc_info.value.claim == "name|preferred_username"
        assert str(exc_info.value).startswith("Claims 'name' and 'preferred_username' are missing")

    def test_email_is_optional(self) -> None:
        assert IdentityMapper().map(_claims(email=None), LoginStrategy.PROVIDER_ID).email is None


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class TestGroups:
    def test_not_synced_by_default(self) -> None:
        assert IdentityMapper().map(_claims(), LoginStrategy.PREFERRED_USERNAME).groups is None

    def test_list(self) -> None:
        identity = IdentityMapper().map(
            _claims(), LoginStrategy.PREFERRED_USERNAME, sync_groups=True
        )
        assert identity.groups == frozenset({"admins", "internal"})

    def test_single_string(self) -> None:
        identity = IdentityMapper().map(
            _claims(group="admins"),
            LoginStrategy.PREFERRED_USERNAME,
            sync_groups=True,
            groups_claim="group",
        )
        assert identity.groups == frozenset({"admins"})

    def test_empty_list(self) -> None:
        identity = IdentityMapper().map(_claims(groups=[]), "preferred-username", sync_groups=True)
        assert identity.groups == frozenset()

    def test_missing(self) -> None:
        with pytest.raises(MissingClaim) as exc_info:
            IdentityMapper().map(
                _claims(), LoginStrategy.PREFERRED_USERNAME, sync_groups=True, groups_claim="invalid"
            )
        assert exc_info.value.claim == "invalid"

    @pytest.mark.parametrize("value", [{"admins": True}, ["admins", 7], 3])
    def test_unusable_shape(self, value: Any) -> None:
        with pytest.raises(MissingClaim, match="must be a string or a list of strings"):
            IdentityMapper().map(_claims(groups=value), "preferred-username", sync_groups=True)
