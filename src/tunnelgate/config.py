"""
Configuration for tunnelgate.

This module defines two kinds of configuration:

- ``TunnelConfig``: the immutable upstream-proxy settings handed to a
  ``ConnectHandler`` when it is constructed.
- ``ServerConfig``: the settings of the bundled TCP front-end. A global
  instance is modified by the CLI before the server starts.

Usage:
    from tunnelgate.config import config

    config.PORT = 3128
    config.PROXY_HOST = "proxy.internal"
    tunnel_config = config.get_tunnel_config()
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass

from tunnelgate.models.enums import LogLevel

DEFAULT_PROXY_PORT = 80

# Property names, looked up under a handler prefix (e.g. "tunnel.proxyHost")
PROXY_HOST = "proxyHost"
PROXY_PORT = "proxyPort"
AUTH = "auth"

_DECODE_RE = re.compile(r"([+-]?)(0[xX][0-9a-fA-F]+|#[0-9a-fA-F]+|0[0-7]+|0|[1-9][0-9]*)")


def decode_port(value: str | None, default: int = DEFAULT_PROXY_PORT) -> int:
    """
    Decode a port number given as a string.

    Accepts decimal, hex (``0x1F90``, ``#1F90``) and octal (``017620``)
    notation with an optional sign. Returns ``default`` when the value is
    missing, unparsable or outside 0-65535.
    """
    if value is None:
        return default

    match = _DECODE_RE.fullmatch(value.strip())
    if not match:
        return default

    sign, digits = match.groups()
    if digits[0] == "#":
        number = int(digits[1:], 16)
    elif digits[:2] in ("0x", "0X"):
        number = int(digits[2:], 16)
    elif len(digits) > 1 and digits[0] == "0":
        number = int(digits[1:], 8)
    else:
        number = int(digits)

    if sign == "-":
        number = -number
    if not 0 <= number <= 65535:
        return default
    return number


# =============================================================================
# Tunnel Configuration
# =============================================================================


@dataclass(frozen=True)
class TunnelConfig:
    """
    Upstream proxy settings for CONNECT tunnels.

    Attributes:
        proxy_host: Upstream proxy host. When None, tunnels dial the
            requested destination directly.
        proxy_port: Upstream proxy port.
        auth: Value of the Proxy-Authorization header sent upstream.
    """

    proxy_host: str | None = None
    proxy_port: int = DEFAULT_PROXY_PORT
    auth: str | None = None

    @property
    def is_chained(self) -> bool:
        return self.proxy_host is not None

    @classmethod
    def from_values(
        cls,
        proxy_host: str | None = None,
        proxy_port: str | None = None,
        auth: str | None = None,
    ) -> "TunnelConfig":
        """Build a config from raw string values, decoding the port."""
        return cls(
            proxy_host=proxy_host or None,
            proxy_port=decode_port(proxy_port),
            auth=auth or None,
        )

    @classmethod
    def from_properties(cls, props: Mapping[str, str], prefix: str = "") -> "TunnelConfig":
        """
        Build a config from a property mapping.

        Reads ``<prefix>proxyHost``, ``<prefix>proxyPort`` and ``<prefix>auth``.
        """
        return cls.from_values(
            proxy_host=props.get(prefix + PROXY_HOST),
            proxy_port=props.get(prefix + PROXY_PORT),
            auth=props.get(prefix + AUTH),
        )


# =============================================================================
# Server Configuration
# =============================================================================


@dataclass
class ServerConfig:
    """
    Tunnel server configuration.

    Attributes:
        BIND_IP: Address the server listens on.
        PORT: Listening port (0 picks a free port).
        HANDLER_PREFIX: Log prefix of the CONNECT handler.
        REQUEST_HEAD_TIMEOUT_SECONDS: Limit for receiving the request head.
            Tunnels themselves never time out.
        MAX_HEAD_SIZE: Largest accepted request head, in bytes.
        PROXY_HOST: Upstream proxy host (empty for direct tunnels).
        PROXY_PORT: Upstream proxy port, as given by the user.
        PROXY_AUTH: Proxy-Authorization value sent upstream.
        LOG_LEVEL: Logging verbosity level.
        LOG_FILE: Optional log file path.
    """

    # -------------------------------------------------------------------------
    # Network Configuration
    # -------------------------------------------------------------------------

    BIND_IP: str = "127.0.0.1"
    PORT: int = 8080
    HANDLER_PREFIX: str = "tunnel."
    REQUEST_HEAD_TIMEOUT_SECONDS: float = 10.0
    MAX_HEAD_SIZE: int = 65536

    # -------------------------------------------------------------------------
    # Upstream Proxy Configuration
    # -------------------------------------------------------------------------

    PROXY_HOST: str = ""
    PROXY_PORT: str = ""
    PROXY_AUTH: str = ""

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FILE: str = ""

    def get_tunnel_config(self) -> TunnelConfig:
        """Get the immutable tunnel settings derived from this config."""
        return TunnelConfig.from_values(
            proxy_host=self.PROXY_HOST,
            proxy_port=self.PROXY_PORT,
            auth=self.PROXY_AUTH,
        )


# Global config instance - modify before server startup
config = ServerConfig()
