"""Data models for tunnelgate."""

from tunnelgate.models.enums import LogLevel, RelayState, SessionState, TunnelMode
from tunnelgate.models.request import ClientConnection, HeaderList, TunnelRequest

__all__ = [
    "ClientConnection",
    "HeaderList",
    "LogLevel",
    "RelayState",
    "SessionState",
    "TunnelMode",
    "TunnelRequest",
]
