"""Tunnel-related exception classes."""


class TunnelError(Exception):
    """Base exception for tunnel operations."""

    status: int = 500


class MalformedTargetError(TunnelError):
    """CONNECT target is not a usable host:port."""

    status = 500

    def __init__(self, target: str, reason: str = "expected host:port"):
        self.target = target
        super().__init__(f"Malformed tunnel target {target!r}: {reason}")


class DialFailureError(TunnelError):
    """Resolving or connecting to the tunnel target failed."""

    status = 502

    def __init__(self, host: str, port: int, reason: str = ""):
        self.host = host
        self.port = port
        message = f"Cannot connect to {host}:{port}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class HandshakeWriteError(TunnelError):
    """Writing or flushing the tunnel handshake failed."""

    status = 502


class RelayIOError(TunnelError):
    """Read or write failure inside a single relay direction."""

    def __init__(self, direction: str, reason: str):
        self.direction = direction
        super().__init__(f"Relay {direction} failed: {reason}")


class RequestParseError(TunnelError):
    """Request head could not be parsed."""

    status = 400
