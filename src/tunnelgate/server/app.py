"""
Tunnel proxy server.

Accepts client connections, reads the HTTP request head and hands the parsed
request to the registered handlers. Also provides the host services
(error responses, session logging) that handlers rely on.
"""

import asyncio
from http import HTTPStatus

from tunnelgate.config import ServerConfig
from tunnelgate.exceptions import RequestParseError
from tunnelgate.models.request import (
    HEADER_ENCODING,
    ClientConnection,
    HeaderList,
    TunnelRequest,
)
from tunnelgate.proxy.session import ConnectHandler, TunnelHost
from tunnelgate.utils.logger import get_logger

logger = get_logger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"
ERROR_PROTOCOL = "HTTP/1.1"


def parse_request_head(head: bytes, client: ClientConnection) -> TunnelRequest:
    """
    Parse a request head into a TunnelRequest.

    Raises:
        RequestParseError: Malformed request line or header field.
    """
    text = head.decode(HEADER_ENCODING)
    lines = text.split("\r\n")
    # Drop the empty lines left by the terminator
    while lines and not lines[-1]:
        lines.pop()
    if not lines:
        raise RequestParseError("Empty request")

    parts = lines[0].split(" ")
    if len(parts) != 3 or not all(parts):
        raise RequestParseError(f"Invalid request line: {lines[0]!r}")
    method, target, protocol = parts

    headers = HeaderList()
    for line in lines[1:]:
        name, sep, value = line.partition(":")
        if not sep or not name or name != name.strip():
            raise RequestParseError(f"Invalid header line: {line!r}")
        headers.add(name, value.strip())

    return TunnelRequest(
        method=method,
        target=target,
        protocol=protocol,
        client=client,
        headers=headers,
    )


def build_error_response(status: int, message: str) -> bytes:
    """Build a plain-text error response."""
    try:
        reason = HTTPStatus(status).phrase
    except ValueError:
        reason = "Error"
    status = int(status)
    body = f"{message}\n".encode("utf-8")
    head = (
        f"{ERROR_PROTOCOL} {status} {reason}\r\n"
        "Content-Type: text/plain; charset=utf-8\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n"
        "\r\n"
    )
    return head.encode(HEADER_ENCODING) + body


class TunnelServer(TunnelHost):
    """TCP front-end dispatching parsed requests to handlers."""

    def __init__(self, config: ServerConfig):
        self.config = config
        self.handlers: list[ConnectHandler] = []
        self._server: asyncio.Server | None = None

    def add_handler(self, handler: ConnectHandler) -> None:
        self.handlers.append(handler)

    @property
    def port(self) -> int:
        """Port the server is bound to."""
        if not self._server or not self._server.sockets:
            return self.config.PORT
        return self._server.sockets[0].getsockname()[1]

    # =========================================================================
    # Host services
    # =========================================================================

    async def send_error(self, request: TunnelRequest, status: int, message: str) -> None:
        await self._write_error(request.client.writer, status, message)

    def log(self, prefix: str, message: str) -> None:
        logger.info(f"[{prefix.rstrip('.') or 'tunnel'}] {message}")

    async def _write_error(
        self, writer: asyncio.StreamWriter, status: int, message: str
    ) -> None:
        try:
            writer.write(build_error_response(status, message))
            await writer.drain()
        except OSError as e:
            logger.debug(f"Could not send {status} response: {e}")

    # =========================================================================
    # Connection handling
    # =========================================================================

    async def _read_head(self, reader: asyncio.StreamReader) -> bytes:
        return await asyncio.wait_for(
            reader.readuntil(HEAD_TERMINATOR),
            timeout=self.config.REQUEST_HEAD_TIMEOUT_SECONDS,
        )

    async def handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle a single client connection."""
        client = ClientConnection(reader, writer)
        log_prefix = f"[Client {client.peername}]"
        logger.debug(f"{log_prefix} New connection.")

        try:
            try:
                head = await self._read_head(reader)
                request = parse_request_head(head, client)
            except asyncio.IncompleteReadError:
                logger.debug(f"{log_prefix} Closed before sending a request.")
                return
            except asyncio.TimeoutError:
                logger.warning(f"{log_prefix} Timeout waiting for request head.")
                await self._write_error(
                    writer, HTTPStatus.REQUEST_TIMEOUT, "Request head timeout"
                )
                return
            except asyncio.LimitOverrunError:
                logger.warning(f"{log_prefix} Request head too large.")
                await self._write_error(
                    writer,
                    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE,
                    "Request head too large",
                )
                return
            except RequestParseError as e:
                logger.warning(f"{log_prefix} {e}")
                await self._write_error(writer, e.status, "Bad request")
                return

            logger.debug(f"{log_prefix} {request.request_line}")
            for handler in self.handlers:
                if await handler.handle(request):
                    break
            else:
                await self._write_error(
                    writer,
                    HTTPStatus.METHOD_NOT_ALLOWED,
                    f"Method {request.method} not supported",
                )

        except Exception as e:
            logger.exception(f"{log_prefix} Unexpected error in connection handler: {e}")
            await self._write_error(
                writer, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error"
            )

        finally:
            writer.close()
            try:
                await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
            except (OSError, asyncio.TimeoutError):
                pass
            logger.debug(f"{log_prefix} Connection handler finished.")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Bind the listening socket."""
        self._server = await asyncio.start_server(
            self.handle_connection,
            self.config.BIND_IP,
            self.config.PORT,
            limit=self.config.MAX_HEAD_SIZE,
        )
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets)
        logger.info(f"Tunnel proxy listening on {addrs}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        async with self._server:
            await self._server.serve_forever()

    def close(self) -> None:
        """Stop accepting connections."""
        if self._server:
            self._server.close()
            logger.info(f"Tunnel proxy shutting down on port {self.port}.")


def create_server(config: ServerConfig) -> TunnelServer:
    """Create a server with a CONNECT handler configured from ``config``."""
    server = TunnelServer(config)
    server.add_handler(
        ConnectHandler(config.get_tunnel_config(), server, prefix=config.HANDLER_PREFIX)
    )
    return server


async def start_server(config: ServerConfig) -> None:
    """
    Run the tunnel proxy until cancelled.

    Args:
        config: Server configuration.
    """
    server = create_server(config)
    try:
        await server.serve_forever()
    except asyncio.CancelledError:
        logger.info("Tunnel proxy server task cancelled.")
        raise
    except Exception as e:
        logger.opt(exception=e).critical(
            f"FATAL: Tunnel proxy failed on {config.BIND_IP}:{config.PORT}: {e}"
        )
        raise
