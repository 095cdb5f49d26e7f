"""Provider commands -- discovery and authorization URLs.

Provides the ``oidcbridge provider`` sub-command group, which runs the first
half of a login against the configured identity provider without a host:

- ``discover`` resolves the discovery document and prints the endpoints.
- ``login-url`` prints the authorization URL a browser would be sent to.
"""

from __future__ import annotations

import secrets
from typing import Optional

import typer

from oidcbridge.client.transport import HttpTransport
from oidcbridge.commands.config import load_cli_settings
from oidcbridge.config import CLIENT_ID, ISSUER_URI
from oidcbridge.exceptions import ConfigError, OidcBridgeError
from oidcbridge.models import OidcSettings, ProviderMetadata
from oidcbridge.oidc.metadata import ProviderMetadataResolver
from oidcbridge.oidc.request import AuthorizationRequestBuilder
from oidcbridge.output import error, info, print_data, print_mapping

provider_app = typer.Typer(no_args_is_help=True)


def _discover(settings: OidcSettings) -> ProviderMetadata:
    if not settings.issuer_uri:
        raise ConfigError(f"'{ISSUER_URI}' is required")
    with HttpTransport(settings.http) as transport:
        return ProviderMetadataResolver(transport).resolve(settings.issuer_uri)


@provider_app.command("discover")
def provider_discover(ctx: typer.Context) -> None:
    """Resolve and print the provider metadata.

    Example::

        oidcbridge provider discover
        oidcbridge --json provider discover
    """
    settings = load_cli_settings(ctx)
    try:
        metadata = _discover(settings)
    except OidcBridgeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    print_mapping(metadata.model_dump(mode="json", exclude_none=True), title=metadata.issuer)


@provider_app.command("login-url")
def provider_login_url(
    ctx: typer.Context,
    callback_url: str = typer.Option(
        ..., "--callback-url", "-c", help="Absolute URL the provider redirects back to."
    ),
    state: Optional[str] = typer.Option(
        None, "--state", help="Anti-forgery state (random when omitted)."
    ),
) -> None:
    """Print the authorization URL for a login attempt.

    Args:
        callback_url: The redirect URI registered with the provider.
        state: The ``state`` parameter; a random value is generated when
            omitted.
    """
    settings = load_cli_settings(ctx)
    try:
        if not settings.client_id:
            raise ConfigError(f"'{CLIENT_ID}' is required")
        metadata = _discover(settings)
        if state is None:
            state = secrets.token_urlsafe(24)
            info(f"Generated state: {state}")
        url = AuthorizationRequestBuilder().build(
            callback_url, state, metadata, settings.client_id, settings.scopes
        )
    except OidcBridgeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    print_data(url)
