"""Transport-specific liveness probes for worker endpoints."""

from __future__ import annotations

import asyncio
import logging

import httpx

from ..transport.commands import PING
from ..transport.wire import ENCODING, exchange_datagram, exchange_line
from .registry import Endpoint, Protocol

logger = logging.getLogger(__name__)

HEARTBEAT_PATH = "/heartbeat"
TCP_PONG = "pong"
UDP_PONG = "Pong"


class Prober:
    """Checks whether a worker endpoint is alive.

    ``timeout`` bounds HTTP connect and read separately and the TCP exchange as
    a whole; ``udp_timeout`` bounds the wait for a UDP reply. With
    ``tcp_handshake`` a TCP probe sends ``ping`` and expects ``pong``; without
    it a successful connect is enough.
    """

    def __init__(
        self,
        *,
        timeout: float,
        udp_timeout: float,
        tcp_handshake: bool = False,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._udp_timeout = udp_timeout
        self._tcp_handshake = tcp_handshake
        self._client = client or httpx.AsyncClient()

    async def close(self) -> None:
        await self._client.aclose()

    async def check(self, endpoint: Endpoint) -> bool:
        try:
            if endpoint.protocol is Protocol.HTTP:
                await self._check_http(endpoint)
            elif endpoint.protocol is Protocol.TCP:
                await self._check_tcp(endpoint)
            else:
                await self._check_udp(endpoint)
        except (httpx.HTTPError, OSError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning(
                "Servidor %s em %s inativo: %s",
                endpoint.protocol.label,
                endpoint.describe(),
                str(exc) or type(exc).__name__,
            )
            return False
        logger.debug("Servidor %s em %s ativo", endpoint.protocol.label, endpoint.describe())
        return True

    async def _check_http(self, endpoint: Endpoint) -> None:
        response = await self._client.get(
            f"{endpoint.url}{HEARTBEAT_PATH}",
            timeout=httpx.Timeout(self._timeout),
        )
        if response.status_code != 200:
            raise ValueError(f"resposta HTTP inválida: {response.status_code}")

    async def _check_tcp(self, endpoint: Endpoint) -> None:
        if self._tcp_handshake:
            reply = await exchange_line(endpoint.address, PING, self._timeout)
            if reply.strip().lower() != TCP_PONG:
                raise ValueError(f"resposta inesperada: {reply!r}")
            return
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(*endpoint.address), self._timeout
        )
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

    async def _check_udp(self, endpoint: Endpoint) -> None:
        raw = await exchange_datagram(endpoint.address, PING.encode(ENCODING), self._udp_timeout)
        reply = raw.decode(ENCODING, errors="replace").strip()
        if reply.lower() != UDP_PONG.lower():
            raise ValueError(f"resposta inesperada: {reply!r}")
