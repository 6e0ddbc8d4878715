"""
Request models handed to tunnel handlers.

A ``TunnelRequest`` is produced by the host from the parsed request head and
carries the client's stream pair so a handler can take the connection over.
"""

import asyncio
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

HEADER_ENCODING = "latin-1"


class HeaderList:
    """
    Ordered, case-preserving collection of HTTP header fields.

    Duplicate names are allowed; lookups are case-insensitive.
    """

    def __init__(self, items: list[tuple[str, str]] | None = None):
        self._items: list[tuple[str, str]] = list(items or [])

    def add(self, name: str, value: str) -> None:
        """Append a header field after the existing ones."""
        self._items.append((name, value))

    def get(self, name: str, default: str | None = None) -> str | None:
        """Get the first value for a header name."""
        lowered = name.lower()
        for key, value in self._items:
            if key.lower() == lowered:
                return value
        return default

    def get_all(self, name: str) -> list[str]:
        lowered = name.lower()
        return [value for key, value in self._items if key.lower() == lowered]

    def to_bytes(self) -> bytes:
        """Serialize as ``Name: value\\r\\n`` lines in insertion order."""
        return "".join(f"{key}: {value}\r\n" for key, value in self._items).encode(
            HEADER_ENCODING
        )

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __repr__(self) -> str:
        return f"HeaderList({self._items!r})"


@dataclass
class ClientConnection:
    """Stream pair of the client that sent the request."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @property
    def peername(self) -> Any:
        return self.writer.get_extra_info("peername")


@dataclass
class TunnelRequest:
    """
    A parsed request as seen by tunnel handlers.

    Attributes:
        method: Request method, e.g. ``CONNECT``.
        target: Request target, ``host:port`` for CONNECT.
        protocol: Protocol version string, e.g. ``HTTP/1.1``.
        headers: Header fields in received order.
        client: Client stream pair.
    """

    method: str
    target: str
    protocol: str
    client: ClientConnection
    headers: HeaderList = field(default_factory=HeaderList)

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.target} {self.protocol}"
