"""Abstract interfaces between an identity provider and its host.

This module defines the types at the seam with the host application:

- :class:`IdentityProvider` -- the abstract base class every login provider
  extends. The host looks providers up by :attr:`~IdentityProvider.key` and
  calls :meth:`~IdentityProvider.init` and :meth:`~IdentityProvider.callback`.
- :class:`Display` -- how the host renders the provider's login button.
- :class:`InitContext` and :class:`CallbackContext` -- the host services
  available while a login starts and when the identity provider calls back
  (anti-forgery state, redirects, the final identity commit).
- :class:`HttpRequest`, :class:`HttpResponse` and :class:`FilterChain` --
  the minimal request/response surface used by servlet-style filters such as
  :class:`~oidcbridge.oidc.autologin.AutoLoginFilter`.

See Also:
    :mod:`oidcbridge.auth.manager` for provider registration and lookup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, ConfigDict

from oidcbridge.models import CanonicalIdentity


class Display(BaseModel):
    """Login button presentation.

    Args:
        icon_path: Path or URL of the button icon.
        background_color: CSS color of the button background.
    """

    model_config = ConfigDict(frozen=True)

    icon_path: Optional[str] = None
    background_color: str = "#236a97"


# --- Host request surface ---


class HttpRequest(ABC):
    """Read-only view of an incoming HTTP request."""

    @property
    @abstractmethod
    def request_url(self) -> str:
        """The absolute request URL, without the query string."""
        ...

    @property
    @abstractmethod
    def query_string(self) -> Optional[str]:
        """The raw (still percent-encoded) query string, or ``None``."""
        ...

    @abstractmethod
    def header(self, name: str) -> Optional[str]:
        """Return the value of header *name* (case-insensitive), or ``None``."""
        ...


class HttpResponse(ABC):
    """The part of an HTTP response a filter may drive."""

    @abstractmethod
    def send_redirect(self, url: str) -> None:
        ...


class FilterChain(ABC):
    """The remainder of the host's filter chain."""

    @abstractmethod
    def do_filter(self, request: HttpRequest, response: HttpResponse) -> None:
        ...


# --- Host login contexts ---


class InitContext(ABC):
    """Host services available when a login starts."""

    @property
    @abstractmethod
    def callback_url(self) -> str:
        """Absolute URL the identity provider must redirect back to."""
        ...

    @abstractmethod
    def generate_csrf_state(self) -> str:
        """Issue a fresh anti-forgery state bound to the user's session."""
        ...

    @abstractmethod
    def redirect_to(self, url: str) -> None:
        """Redirect the user's browser to *url*."""
        ...


class CallbackContext(ABC):
    """Host services available when the identity provider calls back."""

    @property
    @abstractmethod
    def callback_url(self) -> str:
        ...

    @property
    @abstractmethod
    def http_request(self) -> HttpRequest:
        ...

    @abstractmethod
    def verify_csrf_state(self) -> bool:
        """Check the ``state`` parameter against the one issued at login start.

        Hosts may raise their own exception instead of returning ``False``;
        either way the login is aborted.
        """
        ...

    @abstractmethod
    def authenticate(self, identity: CanonicalIdentity) -> None:
        """Commit *identity* as the authenticated user of the session."""
        ...

    @abstractmethod
    def redirect_to_requested_page(self) -> None:
        ...


# --- Providers ---


class IdentityProvider(ABC):
    """Abstract base class for login providers.

    Every concrete provider must supply:

    1. A :attr:`key` uniquely identifying it in host URLs
       (``/sessions/init/<key>``).
    2. :meth:`init`, which sends the user to the identity provider.
    3. :meth:`callback`, which completes the login when the identity
       provider redirects back.

    Providers are registered with
    :class:`~oidcbridge.auth.manager.IdentityProviderManager`.
    """

    @property
    @abstractmethod
    def key(self) -> str:
        """Return the unique provider key (e.g. ``"oidc"``)."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the login button text."""
        ...

    @property
    def display(self) -> Display:
        return Display()

    @abstractmethod
    def is_enabled(self) -> bool:
        ...

    def allows_users_to_sign_up(self) -> bool:
        """Whether users unknown to the host may be created on first login."""
        return True

    @abstractmethod
    def init(self, context: InitContext) -> None:
        """Start a login by redirecting the user to the identity provider.

        Args:
            context: Host services for the starting login.

        Raises:
            OidcBridgeError: If the login cannot be started.
        """
        ...

    @abstractmethod
    def callback(self, context: CallbackContext) -> None:
        """Complete a login from the identity provider's redirect.

        Args:
            context: Host services for the callback request.

        Raises:
            OidcBridgeError: If the login fails at any step.
        """
        ...
