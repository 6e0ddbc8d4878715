"""Shared fixtures: loopback peers, a fake host and session harnesses."""

import asyncio
import socket

import pytest

from tunnelgate.config import ServerConfig, TunnelConfig
from tunnelgate.models.request import ClientConnection, HeaderList, TunnelRequest
from tunnelgate.proxy.session import ConnectHandler, TunnelHost
from tunnelgate.server.app import build_error_response, create_server

LOCALHOST = "127.0.0.1"
ESTABLISHED = b"HTTP/1.1 200 Connection established\r\n\r\n"


def get_unused_port() -> int:
    """Port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((LOCALHOST, 0))
        return s.getsockname()[1]


class FakeHost(TunnelHost):
    """Host that records what the handler asked of it."""

    def __init__(self):
        self.errors: list[tuple[int, str]] = []
        self.events: list[tuple[str, str]] = []

    async def send_error(self, request, status, message):
        self.errors.append((status, message))
        request.client.writer.write(build_error_response(status, message))
        await request.client.writer.drain()

    def log(self, prefix, message):
        self.events.append((prefix, message))


class EchoServer:
    """Destination that echoes everything and closes on end-of-stream."""

    def __init__(self, close_after_first_chunk: bool = False):
        self.close_after_first_chunk = close_after_first_chunk
        self.connections = 0
        self.received = bytearray()
        self.disconnected = asyncio.Event()
        self._server: asyncio.Server | None = None

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    async def handle(self, reader, writer):
        self.connections += 1
        try:
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                self.received += data
                writer.write(data)
                await writer.drain()
                if self.close_after_first_chunk:
                    break
        except OSError:
            pass
        finally:
            writer.close()
            self.disconnected.set()

    async def start(self):
        self._server = await asyncio.start_server(self.handle, LOCALHOST, 0)

    def close(self):
        self._server.close()


class UpstreamProxy(EchoServer):
    """Upstream proxy stand-in: records the CONNECT head, accepts, then echoes."""

    def __init__(self):
        super().__init__()
        self.head = b""

    async def handle(self, reader, writer):
        self.head = await reader.readuntil(b"\r\n\r\n")
        writer.write(ESTABLISHED)
        await writer.drain()
        await super().handle(reader, writer)


class SessionHarness:
    """
    Loopback server running a ConnectHandler session per accepted client.

    The request is fixed up front, so no request parsing is involved.
    """

    def __init__(
        self,
        config: TunnelConfig,
        target: str,
        method: str = "CONNECT",
        protocol: str = "HTTP/1.1",
        headers: list[tuple[str, str]] | None = None,
        via_handle: bool = False,
    ):
        self.host = FakeHost()
        self.handler = ConnectHandler(config, self.host, prefix="test.")
        self.target = target
        self.method = method
        self.protocol = protocol
        self.headers = headers or []
        # Queue handle() results instead of sessions
        self.via_handle = via_handle
        self.sessions: asyncio.Queue = asyncio.Queue()
        self._server: asyncio.Server | None = None

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    async def _on_client(self, reader, writer):
        request = TunnelRequest(
            method=self.method,
            target=self.target,
            protocol=self.protocol,
            client=ClientConnection(reader, writer),
            headers=HeaderList(list(self.headers)),
        )
        try:
            if self.via_handle:
                result = await self.handler.handle(request)
            else:
                result = await self.handler.run_session(request)
        finally:
            writer.close()
        await self.sessions.put(result)

    async def start(self):
        self._server = await asyncio.start_server(self._on_client, LOCALHOST, 0)

    async def connect(self):
        return await asyncio.open_connection(LOCALHOST, self.port)

    async def next_session(self):
        return await asyncio.wait_for(self.sessions.get(), timeout=5)

    def close(self):
        self._server.close()


@pytest.fixture
def unused_port() -> int:
    return get_unused_port()


@pytest.fixture
async def echo_server():
    server = EchoServer()
    await server.start()
    yield server
    server.close()


@pytest.fixture
async def upstream_proxy():
    server = UpstreamProxy()
    await server.start()
    yield server
    server.close()


@pytest.fixture
async def session_harness():
    """Factory starting SessionHarness instances, closed at teardown."""
    harnesses = []

    async def _start(config: TunnelConfig, target: str, **kwargs) -> SessionHarness:
        harness = SessionHarness(config, target, **kwargs)
        await harness.start()
        harnesses.append(harness)
        return harness

    yield _start
    for harness in harnesses:
        harness.close()


@pytest.fixture
async def tunnel_server():
    """Factory starting full TunnelServer instances on free ports."""
    servers = []

    async def _start(**overrides):
        config = ServerConfig(BIND_IP=LOCALHOST, PORT=0, **overrides)
        server = create_server(config)
        await server.start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        server.close()
