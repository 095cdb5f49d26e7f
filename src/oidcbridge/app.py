"""Typer application and CLI entry point for oidcbridge.

The operator CLI inspects the same settings the host loads, so a broken
configuration or an unreachable identity provider shows up before users
try to log in::

    oidcbridge config show                 # effective settings, secrets masked
    oidcbridge config check                # exit 2 on invalid settings
    oidcbridge provider discover           # resolve the discovery document
    oidcbridge provider login-url --callback-url https://host/oauth2/callback/oidc

:func:`main` is the console-script entry point declared in
``pyproject.toml``.

See Also:
    :mod:`oidcbridge.config`: Settings resolution.
    :mod:`oidcbridge.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Optional

import typer

from oidcbridge import __version__
from oidcbridge.commands.config import config_app
from oidcbridge.commands.provider import provider_app
from oidcbridge.exit_codes import EXIT_GENERIC_FAILURE

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="oidcbridge",
    help="Check and exercise an OpenID Connect login configuration.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config", help="Inspect and validate settings.")
app.add_typer(provider_app, name="provider", help="Talk to the identity provider.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"oidcbridge {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    settings_path: Optional[str] = typer.Option(
        None, "--settings", "-s", help="Settings file to load (JSON)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~oidcbridge.output.OutputManager`, routes
    ``oidcbridge`` log records to stderr (DEBUG with ``--verbose``), and
    stores the settings path in ``ctx.obj`` for the sub-commands.
    """
    from oidcbridge.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    output.configure_logging()
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["settings_path"] = settings_path
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``oidcbridge`` console script.

    :class:`~oidcbridge.exceptions.OidcBridgeError` instances that escape a
    command exit with the error's ``exit_code``. Any other exception exits
    with :data:`~oidcbridge.exit_codes.EXIT_GENERIC_FAILURE`.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from oidcbridge.exceptions import OidcBridgeError
        from oidcbridge.output import error

        if isinstance(exc, OidcBridgeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logger.debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {type(exc).__name__}: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
