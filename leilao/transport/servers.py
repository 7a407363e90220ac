"""Line-oriented TCP and datagram UDP listeners shared by gateway and workers."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Awaitable, Callable

from .wire import ENCODING, MAX_DATAGRAM, DatagramTooLarge

logger = logging.getLogger(__name__)

LineHandler = Callable[[str], Awaitable[str]]

LINE_TOO_LONG = "Erro: Linha excede o tamanho máximo permitido."


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket, raising ``OSError`` when the port is taken."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.set_inheritable(True)
    except OSError:
        sock.close()
        raise
    return sock


class LineServer:
    """Reads one newline-terminated request per connection and writes one line back."""

    def __init__(
        self,
        handler: LineHandler,
        *,
        host: str,
        port: int,
        max_concurrency: int = 10,
        read_timeout: float = 5.0,
        name: str = "TCP",
    ) -> None:
        self._handler = handler
        self._host = host
        self._port = port
        self._read_timeout = read_timeout
        self._name = name
        self._slots = asyncio.Semaphore(max_concurrency)
        self._server: asyncio.AbstractServer | None = None

    @property
    def port(self) -> int:
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._port

    @property
    def running(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, self._host, self._port)
        logger.info("%s iniciado na porta %s", self._name, self.port)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("%s parado na porta %s", self._name, self._port)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        async with self._slots:
            try:
                try:
                    raw = await asyncio.wait_for(reader.readline(), self._read_timeout)
                except asyncio.TimeoutError:
                    logger.warning("%s: nenhuma linha recebida em %.1fs", self._name, self._read_timeout)
                    return
                except ValueError:
                    # line longer than the stream buffer limit
                    logger.warning("%s: linha excede o limite do buffer", self._name)
                    reply = LINE_TOO_LONG
                else:
                    if not raw:
                        logger.debug("%s: conexão fechada sem dados", self._name)
                        return
                    text = raw.decode(ENCODING, errors="replace").rstrip("\r\n")
                    logger.info("%s recebeu: %s", self._name, text)
                    reply = await self._handler(text)
                writer.write(reply.rstrip("\n").encode(ENCODING) + b"\n")
                await writer.drain()
            except OSError as exc:
                logger.error("%s: erro ao processar a requisição: %s", self._name, exc)
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError:
                    pass


class _DatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, server: "DatagramServer") -> None:
        self._server = server

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._server.dispatch(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.error("%s: erro no socket: %s", self._server.name, exc)


class DatagramServer:
    """Treats each datagram as one request and answers the sender's address."""

    def __init__(
        self,
        handler: LineHandler,
        *,
        host: str,
        port: int,
        max_concurrency: int = 10,
        name: str = "UDP",
    ) -> None:
        self._handler = handler
        self._host = host
        self._port = port
        self.name = name
        self._slots = asyncio.Semaphore(max_concurrency)
        self._transport: asyncio.DatagramTransport | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def port(self) -> int:
        if self._transport is not None:
            return self._transport.get_extra_info("sockname")[1]
        return self._port

    @property
    def running(self) -> bool:
        return self._transport is not None

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _DatagramProtocol(self), local_addr=(self._host, self._port)
        )
        logger.info("%s iniciado na porta %s", self.name, self.port)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        logger.info("%s parado na porta %s", self.name, self._port)

    def dispatch(self, data: bytes, addr: tuple[str, int]) -> None:
        task = asyncio.create_task(self._handle(data, addr))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, data: bytes, addr: tuple[str, int]) -> None:
        async with self._slots:
            if len(data) > MAX_DATAGRAM:
                logger.warning("%s: datagrama de %d bytes recusado de %s:%s", self.name, len(data), addr[0], addr[1])
                reply = f"Erro: {DatagramTooLarge(len(data))}"
            else:
                text = data.decode(ENCODING, errors="replace")
                logger.info("%s recebeu de %s:%s: %s", self.name, addr[0], addr[1], text)
                reply = await self._handler(text)
            payload = reply.encode(ENCODING)
            if len(payload) > MAX_DATAGRAM:
                logger.error("%s: resposta de %d bytes não cabe em um datagrama", self.name, len(payload))
                payload = f"Erro: {DatagramTooLarge(len(payload))}".encode(ENCODING)
            if self._transport is not None:
                self._transport.sendto(payload, addr)
