"""Identity provider manager -- registry and lookup for login providers.

The :class:`IdentityProviderManager` maps provider keys (``"oidc"``) to
concrete :class:`~oidcbridge.auth.base.IdentityProvider` instances. The
host resolves the provider named in ``/sessions/init/<key>`` through
:meth:`~IdentityProviderManager.get_provider`.

For most use cases, call :func:`create_default_manager` to get a manager
holding the OpenID Connect provider built from settings.
"""

from __future__ import annotations

from typing import Optional

from oidcbridge.auth.base import IdentityProvider
from oidcbridge.exceptions import ConfigError
from oidcbridge.models import OidcSettings


class IdentityProviderManager:
    """Registry of identity providers, keyed by :attr:`~IdentityProvider.key`.

    Example::

        manager = IdentityProviderManager()
        manager.register(OidcIdentityProvider(settings))
        provider = manager.get_provider("oidc")
    """

    def __init__(self) -> None:
        self._providers: dict[str, IdentityProvider] = {}

    def register(self, provider: IdentityProvider) -> None:
        """Register a provider. A provider with the same key is replaced."""
        self._providers[provider.key] = provider

    def get_provider(self, key: str) -> IdentityProvider:
        """Retrieve a registered provider by key.

        Raises:
            ConfigError: If no provider is registered for *key*.
        """
        provider = self._providers.get(key)
        if provider is None:
            available = ", ".join(sorted(self._providers)) or "(none)"
            raise ConfigError(
                f"No identity provider registered for key '{key}'. "
                f"Available keys: {available}"
            )
        return provider

    def enabled_providers(self) -> list[IdentityProvider]:
        """Return the providers whose :meth:`~IdentityProvider.is_enabled` is true, sorted by key."""
        return [self._providers[k] for k in sorted(self._providers) if self._providers[k].is_enabled()]

    def list_keys(self) -> list[str]:
        return sorted(self._providers.keys())


def create_default_manager(
    settings: OidcSettings,
    manager: Optional[IdentityProviderManager] = None,
) -> IdentityProviderManager:
    """Create a manager holding the OpenID Connect provider.

    Args:
        settings: The OpenID Connect settings.
        manager: Existing manager to register into; a new one when omitted.

    Returns:
        The manager.
    """
    from oidcbridge.oidc.provider import OidcIdentityProvider

    manager = manager or IdentityProviderManager()
    manager.register(OidcIdentityProvider(settings))
    return manager
