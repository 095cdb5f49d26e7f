"""Automatic redirect from the host login page to the identity provider.

Installed on the host's login page (``/sessions/new``). While the provider is
enabled and auto-login is on, visitors are sent straight to
``<base url>/sessions/init/oidc?return_to=<context path>/projects``. A
referrer ending in ``auto-login=false`` opts out, which keeps the host's own
login form reachable.
"""

from __future__ import annotations

import logging

from oidcbridge.auth.base import FilterChain, HttpRequest, HttpResponse
from oidcbridge.config import PROVIDER_KEY
from oidcbridge.models import OidcSettings

logger = logging.getLogger(__name__)

LOGIN_URL = "/sessions/new"
SKIP_REQUEST_PARAM = "auto-login=false"


class AutoLoginFilter:
    """Redirect filter for the host login page."""

    url_pattern = LOGIN_URL

    def __init__(self, settings: OidcSettings) -> None:
        self._settings = settings

    def is_active(self) -> bool:
        return self._settings.is_enabled and self._settings.auto_login

    def login_page_url(self) -> str:
        """The provider's login start URL, returning to the projects page."""
        return (
            f"{self._settings.base_url}/sessions/init/{PROVIDER_KEY}"
            f"?return_to={self._settings.context_path}/projects"
        )

    def do_filter(self, request: HttpRequest, response: HttpResponse, chain: FilterChain) -> None:
        if self.is_active():
            referrer = request.header("referer")
            logger.debug("Referrer: %s", referrer)
            if referrer is None or not referrer.endswith(SKIP_REQUEST_PARAM):
                url = self.login_page_url()
                logger.debug("Redirecting to OIDC login page: %s", url)
                response.send_redirect(url)
                return
        chain.do_filter(request, response)
