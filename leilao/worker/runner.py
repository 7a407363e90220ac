"""Worker process lifecycle: listen on one transport, register, answer heartbeats."""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Any

import httpx
import uvicorn

from ..auction.service import AuctionService
from ..registry.probes import TCP_PONG, UDP_PONG
from ..registry.registry import Protocol
from ..transport.commands import is_ping
from ..transport.servers import DatagramServer, LineServer, bind_socket
from .http import create_worker_app

logger = logging.getLogger(__name__)

REGISTER_PATH = "/registerServer"


class _HTTPListener:
    """Runs the worker FastAPI app on an embedded uvicorn server."""

    def __init__(self, service: AuctionService, *, host: str, port: int) -> None:
        config = uvicorn.Config(
            create_worker_app(service),
            host=host,
            port=port,
            log_level="warning",
            log_config=None,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._host = host
        self._port = port
        self._socket: socket.socket | None = None
        self._task: asyncio.Task | None = None

    @property
    def port(self) -> int:
        return self._port

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        # uvicorn exits the process on bind errors, so bind here and hand over the socket
        self._socket = bind_socket(self._host, self._port)
        self._port = self._socket.getsockname()[1]
        self._task = asyncio.create_task(
            self._server.serve(sockets=[self._socket]), name=f"http-worker-{self._port}"
        )
        while not self._server.started:
            if self._task.done():
                self._task.result()
                raise OSError(f"servidor HTTP na porta {self._port} não iniciou")
            await asyncio.sleep(0.05)
        logger.info("Servidor HTTP rodando na porta %s", self._port)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._task = None
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        logger.info("Servidor HTTP parado na porta %s", self._port)


class Worker:
    def __init__(
        self,
        protocol: Protocol,
        port: int,
        service: AuctionService,
        *,
        host: str = "127.0.0.1",
        gateway_url: str = "http://127.0.0.1:9000",
        register: bool = True,
        max_concurrency: int = 10,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.protocol = protocol
        self.service = service
        self._gateway_url = gateway_url.rstrip("/")
        self._register = register
        self._client = client
        self._listener: Any
        if protocol is Protocol.HTTP:
            self._listener = _HTTPListener(service, host=host, port=port)
        elif protocol is Protocol.TCP:
            self._listener = LineServer(
                self._answer_tcp,
                host=host,
                port=port,
                max_concurrency=max_concurrency,
                name="Servidor TCP",
            )
        else:
            self._listener = DatagramServer(
                self._answer_udp,
                host=host,
                port=port,
                max_concurrency=max_concurrency,
                name="Servidor UDP",
            )

    @property
    def port(self) -> int:
        return self._listener.port

    @property
    def running(self) -> bool:
        return self._listener.running

    async def start(self) -> None:
        await self._listener.start()
        if self._register:
            await self.register()

    async def stop(self) -> None:
        await self._listener.stop()

    async def register(self) -> bool:
        """Announce this worker to the gateway. Failures are logged, not raised."""
        body = f"{self.protocol.value};{self.port}"
        try:
            if self._client is not None:
                response = await self._client.post(
                    f"{self._gateway_url}{REGISTER_PATH}", content=body, timeout=5.0
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        f"{self._gateway_url}{REGISTER_PATH}", content=body, timeout=5.0
                    )
        except httpx.HTTPError as exc:
            logger.error("Erro ao registrar servidor %s no Gateway: %s", self.protocol.label, exc)
            return False
        logger.info(
            "Servidor %s registrado no Gateway com status: %s",
            self.protocol.label,
            response.status_code,
        )
        return response.status_code == 200

    async def _answer_tcp(self, text: str) -> str:
        if is_ping(text):
            return TCP_PONG
        return await self.service.handle_line(text)

    async def _answer_udp(self, text: str) -> str:
        if is_ping(text):
            return UDP_PONG
        return await self.service.handle_line(text)
