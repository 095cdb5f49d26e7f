"""oidcbridge -- OpenID Connect authentication core for host applications.

The host delegates "please authenticate this user" to an
:class:`~oidcbridge.oidc.provider.OidcIdentityProvider` and receives either a
:class:`~oidcbridge.models.CanonicalIdentity` or a hard failure. The provider
drives the authorization-code flow against an external identity provider:
discovery, the authorization redirect, the callback, the token exchange, ID
token validation, the userinfo fallback, and the mapping of claims to an
identity under a configurable login strategy.

Modules:
    models: Pydantic models shared across the entire package.
    config: Settings sources, settings files, and credential references.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes used by the operator CLI.
    oidc: The protocol components and the flow orchestrator.
    app: Typer application for operators (settings checks, discovery).
"""

__version__ = "0.1.0"
