"""Shared test fixtures for oidcbridge.

Provides a fake identity provider serving the ``https://oidc.org`` discovery
document, an RSA signing key with its JWK set, ID token signing, isolated
config environments, and output state management. These fixtures are
automatically discovered by pytest; plain builders live in ``helpers.py``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from helpers import ISSUER, KEY_ID, FakeProvider, metadata_document
from oidcbridge.models import ProviderMetadata
from oidcbridge.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. CliRunner swaps those streams during a test, so the
    cached references go stale once it finishes. The same holds for the
    log handler the CLI attaches to the ``oidcbridge`` logger.
    """
    yield
    reset_output()
    package_logger = logging.getLogger("oidcbridge")
    for handler in list(package_logger.handlers):
        if getattr(handler, "_oidcbridge_cli", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_provider() -> FakeProvider:
    """A fake provider serving the discovery document of ``https://oidc.org``."""
    provider = FakeProvider()
    provider.add(
        "GET",
        f"{ISSUER}/.well-known/openid-configuration",
        httpx.Response(200, json=metadata_document()),
    )
    return provider


@pytest.fixture
def provider_metadata() -> ProviderMetadata:
    return ProviderMetadata.model_validate(metadata_document())


# ---------------------------------------------------------------------------
# Signing keys and ID tokens
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(rsa_private_key: rsa.RSAPrivateKey) -> dict[str, Any]:
    """JWK set holding the public half of :func:`rsa_private_key`."""
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    jwk.update({"kid": KEY_ID, "use": "sig", "alg": "RS256"})
    return {"keys": [jwk]}


@pytest.fixture
def sign_id_token(rsa_private_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Return a function signing claims as an RS256 ID token with :data:`KEY_ID`.

    Passing ``kid=None`` leaves the ``kid`` header out.
    """

    def _sign(
        claims: dict[str, Any],
        key: Any = None,
        algorithm: str = "RS256",
        kid: Optional[str] = KEY_ID,
    ) -> str:
        return jwt.encode(
            claims,
            key if key is not None else rsa_private_key,
            algorithm=algorithm,
            headers={"kid": kid} if kid is not None else None,
        )

    return _sign


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME into tmp_path, clears every ``OIDCBRIDGE_*``
    environment variable, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    import os

    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr("oidcbridge.config._is_xdg_platform", lambda: True)
    for var in list(os.environ):
        if var.startswith("OIDCBRIDGE_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
