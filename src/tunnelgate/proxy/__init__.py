"""
CONNECT tunnel core.

Resolves tunnel targets, establishes connections and relays bytes in both
directions between a client and its destination.
"""

from tunnelgate.proxy.establisher import DestinationConnection, establish
from tunnelgate.proxy.relay import RelayDirection, relay_bidirectional
from tunnelgate.proxy.resolver import ResolvedTarget, resolve_target
from tunnelgate.proxy.session import (
    ConnectHandler,
    TunnelHost,
    TunnelSession,
)

__all__ = [
    "ConnectHandler",
    "DestinationConnection",
    "RelayDirection",
    "ResolvedTarget",
    "TunnelHost",
    "TunnelSession",
    "establish",
    "relay_bidirectional",
    "resolve_target",
]
