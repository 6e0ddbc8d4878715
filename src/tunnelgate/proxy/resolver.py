"""Resolve where a CONNECT tunnel should be dialed."""

import re
from dataclasses import dataclass

from tunnelgate.config import TunnelConfig
from tunnelgate.exceptions import MalformedTargetError
from tunnelgate.models.enums import TunnelMode
from tunnelgate.models.request import TunnelRequest

PROXY_AUTHORIZATION = "Proxy-Authorization"

_PORT_RE = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class ResolvedTarget:
    """Dial target and handshake mode of a tunnel."""

    host: str
    port: int
    mode: TunnelMode

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def resolve_target(request: TunnelRequest, config: TunnelConfig) -> ResolvedTarget:
    """
    Decide the dial target for a CONNECT request.

    With an upstream proxy configured the tunnel is chained through it and
    the configured auth value, if any, is appended to ``request.headers`` as
    ``Proxy-Authorization``. Otherwise ``request.target`` is split on its
    first colon into host and port.

    Raises:
        MalformedTargetError: Direct target without a colon, with an empty
            host, or with a non-numeric port.
    """
    if config.proxy_host is not None:
        if config.auth is not None:
            request.headers.add(PROXY_AUTHORIZATION, config.auth)
        return ResolvedTarget(
            host=config.proxy_host,
            port=config.proxy_port,
            mode=TunnelMode.FORWARDING,
        )

    host, sep, port_str = request.target.partition(":")
    if not sep:
        raise MalformedTargetError(request.target, "missing port")
    if not host:
        raise MalformedTargetError(request.target, "missing host")
    if not _PORT_RE.fullmatch(port_str):
        raise MalformedTargetError(request.target, f"invalid port {port_str!r}")

    return ResolvedTarget(host=host, port=int(port_str), mode=TunnelMode.DIRECT)
