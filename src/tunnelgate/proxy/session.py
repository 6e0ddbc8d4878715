"""
CONNECT tunnel handler.

``ConnectHandler`` coordinates a tunnel session: it resolves the target,
dials it and sends the handshake, relays both directions until each one has
ended, then closes the destination connection. It talks to its host only
through the ``TunnelHost`` capability interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from tunnelgate.config import TunnelConfig
from tunnelgate.exceptions import TunnelError
from tunnelgate.models.enums import SessionState, TunnelMode
from tunnelgate.models.request import TunnelRequest
from tunnelgate.proxy.establisher import DestinationConnection, establish
from tunnelgate.proxy.relay import RelayDirection, relay_bidirectional
from tunnelgate.proxy.resolver import resolve_target
from tunnelgate.utils.logger import get_logger

logger = get_logger(__name__)

CONNECT_METHOD = "CONNECT"


class TunnelHost(ABC):
    """Services a handler needs from the server that dispatched the request."""

    @abstractmethod
    async def send_error(self, request: TunnelRequest, status: int, message: str) -> None:
        """Send an error response to the request's client."""

    @abstractmethod
    def log(self, prefix: str, message: str) -> None:
        """Record a session event under a handler prefix."""


@dataclass
class TunnelSession:
    """State of one CONNECT tunnel."""

    request: TunnelRequest
    state: SessionState = SessionState.INIT
    mode: TunnelMode | None = None
    destination: DestinationConnection | None = None
    upstream: RelayDirection | None = None
    downstream: RelayDirection | None = None
    error: TunnelError | None = None

    @property
    def directions(self) -> list[RelayDirection]:
        return [d for d in (self.upstream, self.downstream) if d is not None]


class ConnectHandler:
    """
    Handle CONNECT requests by opening an opaque tunnel.

    Args:
        config: Upstream proxy settings, fixed for the handler's lifetime.
        host: Host services for error responses and session logging.
        prefix: Tag passed along with every session log event.
    """

    def __init__(self, config: TunnelConfig, host: TunnelHost, prefix: str = ""):
        self.config = config
        self.host = host
        self.prefix = prefix

    async def handle(self, request: TunnelRequest) -> bool:
        """
        Handle a request.

        Returns:
            False for anything but CONNECT, True otherwise (whether the
            tunnel was relayed or an error response was sent).
        """
        if request.method != CONNECT_METHOD:
            return False

        await self.run_session(request)
        return True

    async def run_session(self, request: TunnelRequest) -> TunnelSession:
        """Run a full tunnel session for a CONNECT request."""
        session = TunnelSession(request=request)
        self.host.log(self.prefix, f"Tunnel connection to {request.target}")

        session.state = SessionState.HANDSHAKING
        try:
            target = resolve_target(request, self.config)
            session.mode = target.mode
            session.destination = await establish(
                request, target.host, target.port, target.mode
            )
        except TunnelError as e:
            session.error = e
            session.state = SessionState.CLOSED
            logger.warning(f"[{request.target}] Tunnel setup failed: {e}")
            await self.host.send_error(request, e.status, "Tunnel connection failure")
            return session

        destination = session.destination
        client = request.client
        session.upstream = RelayDirection(
            "client->destination", client.reader, destination.writer
        )
        session.downstream = RelayDirection(
            "destination->client", destination.reader, client.writer
        )

        session.state = SessionState.RELAYING
        logger.debug(
            f"[{request.target}] Relaying via {target.address} ({target.mode.value})."
        )
        try:
            await relay_bidirectional(session.upstream, session.downstream)
        finally:
            await destination.close()
            session.state = SessionState.CLOSED
            self.host.log(self.prefix, "Tunnel connection closed")

        return session
