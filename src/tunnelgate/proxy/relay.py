"""
Bidirectional stream relay.

A tunnel is relayed by two ``RelayDirection`` instances, each copying one
connection's reader into the other connection's writer from its own task.
A direction never touches the sibling direction; it ends on end-of-stream
or on the first I/O error.
"""

import asyncio

from tunnelgate.exceptions import RelayIOError
from tunnelgate.models.enums import RelayState
from tunnelgate.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)

BUFFER_SIZE = 4096


class RelayDirection:
    """
    One half of a tunnel: copies ``reader`` into ``writer`` until EOF.

    Attributes:
        name: Label used in log messages, e.g. ``client->destination``.
        state: RUNNING until the copy loop ends, then CLOSED_NORMAL or
            CLOSED_ERROR.
        bytes_relayed: Number of bytes written to the sink so far.
        error: The failure that ended the direction, if any.
    """

    def __init__(
        self,
        name: str,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        buffer_size: int = BUFFER_SIZE,
    ):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.name = name
        self.reader = reader
        self.writer = writer
        self.buffer_size = buffer_size
        self.state = RelayState.RUNNING
        self.bytes_relayed = 0
        self.error: RelayIOError | None = None

    async def run(self) -> RelayState:
        """
        Copy data until the source ends or an I/O error occurs.

        Errors are logged and recorded, never raised.

        Returns:
            The terminal state.
        """
        log_prefix = f"[Relay {self.name}]"
        try:
            while True:
                data = await self.reader.read(self.buffer_size)
                if not data:
                    break
                self.writer.write(data)
                await self.writer.drain()
                self.bytes_relayed += len(data)

            await self.writer.drain()
            # Let the peer observe end-of-stream
            if self.writer.can_write_eof():
                self.writer.write_eof()

        except OSError as e:
            self.error = RelayIOError(self.name, str(e) or type(e).__name__)
            self.state = RelayState.CLOSED_ERROR
            logger.warning(f"{log_prefix} {self.error}")
            logger.debug(f"{log_prefix} Traceback:\n{format_traceback(e)}")
            return self.state

        self.state = RelayState.CLOSED_NORMAL
        logger.debug(f"{log_prefix} End of stream after {self.bytes_relayed} bytes.")
        return self.state

    def __repr__(self) -> str:
        return f"<RelayDirection {self.name} {self.state.value}>"


async def relay_bidirectional(
    upstream: RelayDirection,
    downstream: RelayDirection,
) -> None:
    """Run both directions concurrently and wait until both are terminal."""
    task_upstream = asyncio.create_task(upstream.run())
    task_downstream = asyncio.create_task(downstream.run())

    await asyncio.gather(task_upstream, task_downstream, return_exceptions=True)
