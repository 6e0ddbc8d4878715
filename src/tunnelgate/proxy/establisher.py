"""
Tunnel establishment.

Dials the resolved target and performs the handshake that precedes raw
relaying: either the CONNECT request is forwarded to the upstream proxy, or
the client is told the tunnel is open.
"""

import asyncio

from tunnelgate.exceptions import DialFailureError, HandshakeWriteError
from tunnelgate.models.enums import TunnelMode
from tunnelgate.models.request import HEADER_ENCODING, TunnelRequest
from tunnelgate.utils.logger import get_logger

logger = get_logger(__name__)

CRLF = b"\r\n"
CONNECTION_ESTABLISHED = "200 Connection established"


class DestinationConnection:
    """Stream pair to the tunnel destination (or upstream proxy)."""

    def __init__(
        self,
        host: str,
        port: int,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ):
        self.host = host
        self.port = port
        self.reader = reader
        self.writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> bool:
        """
        Close the connection.

        Safe to call more than once; only the first call closes the socket.

        Returns:
            True if this call closed the connection.
        """
        if self._closed:
            return False
        self._closed = True

        self.writer.close()
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout=1.0)
        except (OSError, asyncio.TimeoutError):
            pass
        return True

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<DestinationConnection {self.host}:{self.port} {state}>"


async def open_destination(host: str, port: int) -> DestinationConnection:
    """
    Open a TCP connection to the tunnel target.

    No connect timeout is applied.

    Raises:
        DialFailureError: Name resolution or connection failed.
    """
    logger.debug(f"Connecting to {host}:{port}...")
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except (OSError, OverflowError) as e:
        raise DialFailureError(host, port, str(e) or type(e).__name__) from e

    logger.debug(f"Connection established to {host}:{port}.")
    return DestinationConnection(host, port, reader, writer)


def build_forward_request(request: TunnelRequest) -> bytes:
    """Serialize the CONNECT request for the upstream proxy."""
    request_line = f"{request.request_line}\r\n".encode(HEADER_ENCODING)
    return request_line + request.headers.to_bytes() + CRLF


def build_established_reply(protocol: str) -> bytes:
    """Reply telling the client the tunnel is open."""
    return f"{protocol} {CONNECTION_ESTABLISHED}\r\n\r\n".encode(HEADER_ENCODING)


async def perform_handshake(
    request: TunnelRequest,
    destination: DestinationConnection,
    mode: TunnelMode,
) -> None:
    """
    Write and flush the handshake for the given mode.

    Forwarding mode sends the request line, headers and a blank line to the
    upstream proxy. Direct mode sends the 200 reply to the client.

    Raises:
        HandshakeWriteError: The write or flush failed.
    """
    if mode == TunnelMode.FORWARDING:
        writer = destination.writer
        peer = "upstream proxy"
    else:
        writer = request.client.writer
        peer = "client"

    try:
        if mode == TunnelMode.FORWARDING:
            payload = build_forward_request(request)
        else:
            payload = build_established_reply(request.protocol)
        writer.write(payload)
        await writer.drain()
    except (OSError, UnicodeEncodeError) as e:
        raise HandshakeWriteError(f"Cannot send handshake to {peer}: {e}") from e

    logger.debug(f"Handshake sent to {peer} ({len(payload)} bytes).")


async def establish(
    request: TunnelRequest,
    host: str,
    port: int,
    mode: TunnelMode,
) -> DestinationConnection:
    """
    Dial the target and perform the handshake.

    The destination is closed again if the handshake fails or is cancelled.

    Raises:
        DialFailureError: The target could not be reached.
        HandshakeWriteError: The handshake could not be sent.
    """
    destination = await open_destination(host, port)
    try:
        await perform_handshake(request, destination, mode)
    except BaseException:
        await destination.close()
        raise
    return destination
