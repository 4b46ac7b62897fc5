"""
Tunnel Package
==============

Outbound client that relays requests to the backend server with an injected
bearer credential and a per-call timeout.

Usage:
------
    from gateway.app.tunnel import TunnelClient
    client = TunnelClient(settings.backend_config)
    result = await client.forward("/health", None, 5000)
"""

from .client import (
    ForwardError,
    ForwardErrorKind,
    ForwardOptions,
    ForwardResponse,
    ForwardResult,
    TunnelClient,
    build_tunnel_headers,
)

__all__ = [
    "ForwardError",
    "ForwardErrorKind",
    "ForwardOptions",
    "ForwardResponse",
    "ForwardResult",
    "TunnelClient",
    "build_tunnel_headers",
]
