"""Client-side request/response helpers for the UDP and TCP wire formats."""

from __future__ import annotations

import asyncio

MAX_DATAGRAM = 1024
ENCODING = "utf-8"


class DatagramTooLarge(ValueError):
    """Raised when a payload does not fit in one datagram."""

    def __init__(self, size: int) -> None:
        super().__init__(f"Datagrama de {size} bytes excede o limite de {MAX_DATAGRAM} bytes.")
        self.size = size


class _ReplyProtocol(asyncio.DatagramProtocol):
    def __init__(self, reply: asyncio.Future) -> None:
        self._reply = reply

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self._reply.done():
            self._reply.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self._reply.done():
            self._reply.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self._reply.done():
            self._reply.set_exception(exc or ConnectionError("datagram socket closed"))


async def exchange_datagram(
    address: tuple[str, int], payload: bytes, timeout: float
) -> bytes:
    """Send one datagram from a transient socket and wait for the first reply.

    Raises ``DatagramTooLarge`` for payloads over ``MAX_DATAGRAM`` bytes,
    ``asyncio.TimeoutError`` when no reply arrives in time and ``OSError``
    when the peer is unreachable.
    """
    if len(payload) > MAX_DATAGRAM:
        raise DatagramTooLarge(len(payload))
    loop = asyncio.get_running_loop()
    reply: asyncio.Future = loop.create_future()
    transport, _ = await loop.create_datagram_endpoint(
        lambda: _ReplyProtocol(reply), remote_addr=address
    )
    try:
        transport.sendto(payload)
        return await asyncio.wait_for(reply, timeout)
    finally:
        transport.close()


async def exchange_line(address: tuple[str, int], line: str, timeout: float) -> str:
    """Open a transient TCP connection, write one line and read one line back.

    The whole exchange shares a single deadline. An empty string means the
    peer closed the connection without answering.
    """

    async def _exchange() -> str:
        reader, writer = await asyncio.open_connection(*address)
        try:
            writer.write(line.rstrip("\n").encode(ENCODING) + b"\n")
            await writer.drain()
            raw = await reader.readline()
            return raw.decode(ENCODING).rstrip("\r\n")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    return await asyncio.wait_for(_exchange(), timeout)
