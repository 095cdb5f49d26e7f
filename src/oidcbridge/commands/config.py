"""Config commands -- show and validate the effective settings.

Provides the ``oidcbridge config`` sub-command group. Settings are resolved
exactly as the host resolves them (see
:func:`~oidcbridge.config.resolve_settings_source`), so what these commands
report is what a login attempt would use.
"""

from __future__ import annotations

from typing import Any

import typer

from oidcbridge import config as keys
from oidcbridge.exceptions import OidcBridgeError
from oidcbridge.exit_codes import EXIT_INVALID_USAGE
from oidcbridge.models import OidcSettings
from oidcbridge.output import error, info, print_mapping, success, warning

config_app = typer.Typer(no_args_is_help=True)

MASK = "********"


def load_cli_settings(ctx: typer.Context) -> OidcSettings:
    """Load the settings selected by the root ``--settings`` option.

    Raises:
        typer.Exit: With the error's exit code if the settings cannot be
            loaded.
    """
    settings_path = (ctx.obj or {}).get("settings_path")
    try:
        return keys.load_settings(keys.resolve_settings_source(settings_path))
    except OidcBridgeError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def describe_settings(settings: OidcSettings) -> dict[str, Any]:
    """Return the settings keyed by configuration key, with the client secret masked."""
    return {
        keys.ENABLED: settings.enabled,
        keys.ISSUER_URI: settings.issuer_uri,
        keys.CLIENT_ID: settings.client_id,
        keys.CLIENT_SECRET: MASK if settings.client_secret else None,
        keys.SCOPES: settings.scopes,
        keys.ID_TOKEN_SIG_ALG: settings.id_token_sign_algorithm,
        keys.LOGIN_STRATEGY: settings.login_strategy.value,
        keys.LOGIN_STRATEGY_CUSTOM_CLAIM_NAME: settings.custom_claim_name,
        keys.GROUPS_SYNC: settings.groups_sync,
        keys.GROUPS_SYNC_CLAIM_NAME: settings.groups_claim_name,
        keys.AUTO_LOGIN: settings.auto_login,
        keys.ALLOW_USERS_TO_SIGN_UP: settings.allow_users_to_sign_up,
        keys.ICON_PATH: settings.icon_path,
        keys.BACKGROUND_COLOR: settings.background_color,
        keys.LOGIN_BUTTON_TEXT: settings.login_button_text,
        keys.METADATA_CACHE_SECONDS: settings.metadata_cache_seconds,
        keys.SERVER_BASE_URL: settings.base_url,
        keys.SERVER_CONTEXT_PATH: settings.context_path,
        keys.HTTP_TIMEOUT: settings.http.timeout,
        keys.HTTP_VERIFY_SSL: settings.http.verify_ssl,
    }


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective settings.

    Example::

        oidcbridge config show
        oidcbridge --json config show
    """
    settings = load_cli_settings(ctx)
    info(f"Config directory: {keys.get_config_dir()}")
    print_mapping(describe_settings(settings), title="OpenID Connect settings")


@config_app.command("check")
def config_check(ctx: typer.Context) -> None:
    """Validate the effective settings.

    Raises:
        typer.Exit: With code 2 if any setting is invalid.
    """
    settings = load_cli_settings(ctx)
    problems = keys.validate_settings(settings)
    if problems:
        for problem in problems:
            error(problem)
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    if not settings.enabled:
        warning(f"'{keys.ENABLED}' is false: the login button is hidden")
    if not settings.id_token_sign_algorithm:
        warning(
            f"'{keys.ID_TOKEN_SIG_ALG}' is not set: ID token signatures will not be validated"
        )
    success("Settings are valid")
