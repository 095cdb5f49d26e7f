"""Settings lookup, layered settings files, and credential references.

This module turns the host's configuration into an
:class:`~oidcbridge.models.OidcSettings`:

* **Key lookup** -- the core only needs ``get(key) -> str | None``. See
  :class:`SettingsSource` and the three stock sources
  :class:`MappingSource`, :class:`EnvironmentSource`, and
  :class:`ChainedSource`.
* **Typed settings** -- :func:`load_settings` reads every ``auth.oidc.*``
  key, coerces booleans and numbers, and validates the login strategy up
  front so that a bad value fails at startup rather than mid-login.
* **Settings files** -- JSON objects of key/value pairs, layered by
  :func:`resolve_settings_source` with the precedence documented there.
  The user file lives in the XDG config directory on Linux/BSD and in
  ``~/.oidcbridge/`` elsewhere (see :func:`get_config_dir`).
* **Credential references** -- :func:`resolve_credential` reads the client
  id and secret from ``env:VAR`` or ``file:/path`` references so that the
  secret itself does not have to sit in a settings file.
"""

from __future__ import annotations

import json
import os
import platform
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import urlsplit

from oidcbridge.exceptions import ConfigError
from oidcbridge.models import HttpSettings, LoginStrategy, OidcSettings

_APP_NAME = "oidcbridge"
_SETTINGS_FILENAME = "settings.json"
_PROJECT_SETTINGS_FILENAME = "oidcbridge.json"
_ENV_PREFIX = "OIDCBRIDGE_"
SETTINGS_PATH_ENV = "OIDCBRIDGE_SETTINGS"

PROVIDER_KEY = "oidc"
_PREFIX = f"auth.{PROVIDER_KEY}."

ENABLED = _PREFIX + "enabled"
ISSUER_URI = _PREFIX + "issuerUri"
CLIENT_ID = _PREFIX + "clientId.secured"
CLIENT_SECRET = _PREFIX + "clientSecret.secured"
SCOPES = _PREFIX + "scopes"
ID_TOKEN_SIG_ALG = _PREFIX + "idTokenSigAlg"
LOGIN_STRATEGY = _PREFIX + "loginStrategy"
LOGIN_STRATEGY_CUSTOM_CLAIM_NAME = _PREFIX + "loginStrategy.customClaim.name"
GROUPS_SYNC = _PREFIX + "groupsSync"
GROUPS_SYNC_CLAIM_NAME = _PREFIX + "groupsSync.claimName"
AUTO_LOGIN = _PREFIX + "autoLogin"
ALLOW_USERS_TO_SIGN_UP = _PREFIX + "allowUsersToSignUp"
ICON_PATH = _PREFIX + "iconPath"
BACKGROUND_COLOR = _PREFIX + "backgroundColor"
LOGIN_BUTTON_TEXT = _PREFIX + "loginButtonText"
METADATA_CACHE_SECONDS = _PREFIX + "metadataCacheSeconds"
SERVER_BASE_URL = "server.baseUrl"
SERVER_CONTEXT_PATH = "server.contextPath"
HTTP_TIMEOUT = "http.timeout"
HTTP_VERIFY_SSL = "http.verifySsl"

_TRUE = ("true", "1", "yes", "on")
_FALSE = ("false", "0", "no", "off")


# --- Settings sources ---


class SettingsSource(ABC):
    """A read-only key lookup over the host's settings storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the raw value stored under *key*, or ``None`` when unset."""
        ...


class MappingSource(SettingsSource):
    """Settings backed by a plain mapping (a host dict, a parsed settings file)."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)

    def get(self, key: str) -> Optional[str]:
        value = self._values.get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


class EnvironmentSource(SettingsSource):
    """Settings read from ``OIDCBRIDGE_*`` environment variables.

    ``auth.oidc.issuerUri`` is looked up as ``OIDCBRIDGE_AUTH_OIDC_ISSUERURI``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ if environ is not None else os.environ

    @staticmethod
    def variable_name(key: str) -> str:
        return _ENV_PREFIX + key.upper().replace(".", "_")

    def get(self, key: str) -> Optional[str]:
        value = self._environ.get(self.variable_name(key))
        return value or None


class ChainedSource(SettingsSource):
    """Consults each source in order; the first non-``None`` value wins."""

    def __init__(self, sources: Sequence[SettingsSource]) -> None:
        self._sources = list(sources)

    def get(self, key: str) -> Optional[str]:
        for source in self._sources:
            value = source.get(key)
            if value is not None:
                return value
        return None


# --- Typed settings ---


def _as_bool(source: SettingsSource, key: str, default: bool) -> bool:
    raw = source.get(key)
    if raw is None or not raw.strip():
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"Expected a boolean for '{key}', got: {raw!r}")


def _as_float(source: SettingsSource, key: str, default: float) -> float:
    raw = source.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"Expected a number for '{key}', got: {raw!r}") from None
    if value < 0:
        raise ConfigError(f"'{key}' must not be negative, got: {raw!r}")
    return value


def _as_str(source: SettingsSource, key: str, default: Optional[str] = None) -> Optional[str]:
    raw = source.get(key)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


def load_settings(source: SettingsSource) -> OidcSettings:
    """Build :class:`~oidcbridge.models.OidcSettings` from a key lookup.

    The client id and secret may be ``env:VAR`` / ``file:/path`` references
    (see :func:`resolve_credential`).

    Args:
        source: The host's settings lookup.

    Returns:
        The typed, frozen settings.

    Raises:
        ConfigError: If a boolean or numeric value cannot be parsed, or a
            credential reference cannot be resolved.
        UnsupportedStrategy: If ``auth.oidc.loginStrategy`` names no known
            strategy.
    """
    client_id = _as_str(source, CLIENT_ID)
    client_secret = _as_str(source, CLIENT_SECRET)
    strategy = LoginStrategy.parse(
        _as_str(source, LOGIN_STRATEGY, LoginStrategy.PREFERRED_USERNAME.value)
    )

    defaults = OidcSettings()
    return OidcSettings(
        enabled=_as_bool(source, ENABLED, False),
        issuer_uri=_as_str(source, ISSUER_URI),
        client_id=resolve_credential(client_id) if client_id else None,
        client_secret=resolve_credential(client_secret) if client_secret else None,
        scopes=_as_str(source, SCOPES, defaults.scopes),
        id_token_sign_algorithm=_as_str(source, ID_TOKEN_SIG_ALG),
        login_strategy=strategy,
        custom_claim_name=_as_str(
            source, LOGIN_STRATEGY_CUSTOM_CLAIM_NAME, defaults.custom_claim_name
        ),
        groups_sync=_as_bool(source, GROUPS_SYNC, False),
        groups_claim_name=_as_str(source, GROUPS_SYNC_CLAIM_NAME, defaults.groups_claim_name),
        auto_login=_as_bool(source, AUTO_LOGIN, False),
        allow_users_to_sign_up=_as_bool(source, ALLOW_USERS_TO_SIGN_UP, True),
        icon_path=_as_str(source, ICON_PATH),
        background_color=_as_str(source, BACKGROUND_COLOR, defaults.background_color),
        login_button_text=_as_str(source, LOGIN_BUTTON_TEXT, defaults.login_button_text),
        metadata_cache_seconds=_as_float(source, METADATA_CACHE_SECONDS, 0.0),
        base_url=(_as_str(source, SERVER_BASE_URL, "") or "").rstrip("/"),
        context_path=_as_str(source, SERVER_CONTEXT_PATH, "") or "",
        http=HttpSettings(
            timeout=_as_float(source, HTTP_TIMEOUT, 30.0),
            verify_ssl=_as_bool(source, HTTP_VERIFY_SSL, True),
        ),
    )


def validate_settings(settings: OidcSettings) -> list[str]:
    """Check the settings for problems that would break every login.

    Args:
        settings: The settings to validate.

    Returns:
        A list of human-readable error strings. Empty if valid.
    """
    errors: list[str] = []
    if not settings.issuer_uri:
        errors.append(f"'{ISSUER_URI}' is required")
    else:
        parts = urlsplit(settings.issuer_uri)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            errors.append(f"'{ISSUER_URI}' must be an absolute http(s) URL")
    if not settings.client_id:
        errors.append(f"'{CLIENT_ID}' is required")
    if "openid" not in settings.scopes.split():
        errors.append(f"'{SCOPES}' must include the 'openid' scope")
    if (
        settings.login_strategy is LoginStrategy.CUSTOM_CLAIM
        and not settings.custom_claim_name
    ):
        errors.append(
            f"'{LOGIN_STRATEGY_CUSTOM_CLAIM_NAME}' is required for the custom-claim strategy"
        )
    if settings.groups_sync and not settings.groups_claim_name:
        errors.append(f"'{GROUPS_SYNC_CLAIM_NAME}' is required when group sync is enabled")
    return errors


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory (it is not created).

    On Linux/BSD: ``$XDG_CONFIG_HOME/oidcbridge/`` (default ``~/.config/oidcbridge/``).
    On macOS/Windows: ``~/.oidcbridge/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        return base / _APP_NAME
    return Path.home() / f".{_APP_NAME}"


# --- Settings files ---


def load_settings_file(path: Path) -> dict[str, Any]:
    """Load a JSON settings file of ``key -> value`` pairs.

    Raises:
        ConfigError: If the file is missing, unreadable, not JSON, or not a
            JSON object.
    """
    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid settings file at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid settings file at {path}: expected a JSON object")
    return data


def resolve_settings_source(settings_path: Optional[str] = None) -> SettingsSource:
    """Build the layered settings lookup used by the CLI.

    Precedence (high to low):
        1. ``OIDCBRIDGE_*`` environment variables
        2. Explicit settings file (``settings_path``, else ``$OIDCBRIDGE_SETTINGS``)
        3. Project file (``./oidcbridge.json``)
        4. User file (``<config dir>/settings.json``)

    An explicit file must exist; the project and user files are optional.

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    sources: list[SettingsSource] = [EnvironmentSource()]

    explicit = settings_path or os.environ.get(SETTINGS_PATH_ENV)
    if explicit:
        sources.append(MappingSource(load_settings_file(Path(explicit).expanduser())))

    for candidate in (Path.cwd() / _PROJECT_SETTINGS_FILENAME, get_config_dir() / _SETTINGS_FILENAME):
        if candidate.is_file():
            sources.append(MappingSource(load_settings_file(candidate)))

    return ChainedSource(sources)


# --- Credential references ---


def resolve_credential(value: str) -> str:
    """Resolve a credential that may be given by reference.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else -- used literally

    Raises:
        ConfigError: If the reference can't be resolved.
    """
    if value.startswith("env:"):
        var_name = value[4:]
        resolved = os.environ.get(var_name)
        if resolved is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {value})"
            )
        return resolved

    if value.startswith("file:"):
        path = Path(value[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {value})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    return value
