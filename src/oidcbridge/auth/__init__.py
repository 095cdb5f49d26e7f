"""Identity provider interfaces and registry.

- :class:`IdentityProvider` -- abstract base class for login providers.
- :class:`IdentityProviderManager` -- registry mapping provider keys to
  provider instances.
- :func:`create_default_manager` -- factory returning a manager that holds
  the OpenID Connect provider.
- The host collaborator interfaces (:class:`InitContext`,
  :class:`CallbackContext`, :class:`HttpRequest`, :class:`HttpResponse`,
  :class:`FilterChain`) that hosts implement.
"""

from oidcbridge.auth.base import (
    CallbackContext,
    Display,
    FilterChain,
    HttpRequest,
    HttpResponse,
    IdentityProvider,
    InitContext,
)
from oidcbridge.auth.manager import IdentityProviderManager, create_default_manager

__all__ = [
    "CallbackContext",
    "Display",
    "FilterChain",
    "HttpRequest",
    "HttpResponse",
    "IdentityProvider",
    "IdentityProviderManager",
    "InitContext",
    "create_default_manager",
]
