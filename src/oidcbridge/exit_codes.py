"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~oidcbridge.exceptions.OidcBridgeError` subclass.
Deployment scripts can inspect the exit code of ``oidcbridge`` commands to
tell a misconfiguration from an unreachable identity provider without
parsing stderr.

Example::

    $ oidcbridge provider discover
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- the identity provider could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or the settings are invalid."""

EXIT_AUTH_FAILURE = 3
"""The authentication flow was rejected (by the provider, the host, or identity mapping)."""

EXIT_PROVIDER_ERROR = 5
"""The identity provider answered with an error or an unusable document."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused, proxy)."""

EXIT_TOKEN_ERROR = 7
"""The ID token failed signature, issuer, audience, or claims validation."""
