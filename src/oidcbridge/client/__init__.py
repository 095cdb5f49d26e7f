"""HTTP transport for calls to the identity provider.

:class:`HttpTransport` wraps :class:`httpx.Client` and translates
network-level failures into
:class:`~oidcbridge.exceptions.ProviderUnreachable`. Every protocol
component receives the transport by injection, so tests swap in an
:class:`httpx.MockTransport`.
"""

from oidcbridge.client.transport import HttpTransport

__all__ = ["HttpTransport"]
