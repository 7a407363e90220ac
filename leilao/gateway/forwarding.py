"""Forwarding of client requests to the worker picked by the dispatcher."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from ..registry.registry import Endpoint, Protocol
from ..transport.commands import ParseError, parse_command
from ..transport.wire import ENCODING, MAX_DATAGRAM, DatagramTooLarge, exchange_datagram, exchange_line
from .dispatcher import Dispatcher, NoBackend

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Erro:"


class BackendTimeout(RuntimeError):
    """Raised when a worker does not answer within the forwarding timeout."""

    def __init__(self, protocol: Protocol) -> None:
        super().__init__(f"Timeout ao processar a requisição via {protocol.label}.")
        self.protocol = protocol


class BackendFailure(RuntimeError):
    """Raised when the exchange with a worker breaks before a reply arrives."""

    def __init__(self, protocol: Protocol) -> None:
        super().__init__(f"Falha ao comunicar com o servidor {protocol.label} interno.")
        self.protocol = protocol


def error_line(exc: Exception) -> str:
    return f"{ERROR_PREFIX} {exc}"


@dataclass(frozen=True)
class BackendReply:
    status_code: int
    body: str


class Forwarder:
    """Sends one request to one worker and returns its reply.

    Failures here never eject the worker; only liveness probes do.
    """

    def __init__(self, *, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._client = client or httpx.AsyncClient()

    async def close(self) -> None:
        await self._client.aclose()

    async def forward_http(self, endpoint: Endpoint, path: str, body: bytes) -> BackendReply:
        try:
            response = await self._client.post(
                f"{endpoint.url}{path}",
                content=body,
                headers={"Content-Type": "text/plain; charset=UTF-8"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise BackendTimeout(Protocol.HTTP) from exc
        except httpx.HTTPError as exc:
            logger.error("Erro ao comunicar com %s: %s", endpoint.describe(), exc)
            raise BackendFailure(Protocol.HTTP) from exc
        return BackendReply(response.status_code, response.text)

    async def forward_tcp(self, endpoint: Endpoint, line: str) -> str:
        try:
            reply = await exchange_line(endpoint.address, line, self._timeout)
        except asyncio.TimeoutError as exc:
            raise BackendTimeout(Protocol.TCP) from exc
        except OSError as exc:
            logger.error("Erro ao comunicar com %s: %s", endpoint.describe(), exc)
            raise BackendFailure(Protocol.TCP) from exc
        except ValueError as exc:
            # undecodable reply or a line over the stream limit
            logger.error("Resposta inválida de %s: %s", endpoint.describe(), exc)
            raise BackendFailure(Protocol.TCP) from exc
        if not reply:
            raise BackendFailure(Protocol.TCP)
        return reply

    async def forward_udp(self, endpoint: Endpoint, payload: bytes) -> str:
        try:
            raw = await exchange_datagram(endpoint.address, payload, self._timeout)
        except asyncio.TimeoutError as exc:
            raise BackendTimeout(Protocol.UDP) from exc
        except OSError as exc:
            logger.error("Erro ao comunicar com %s: %s", endpoint.describe(), exc)
            raise BackendFailure(Protocol.UDP) from exc
        return raw.decode(ENCODING, errors="replace")


class Relay:
    """Dispatch plus forward, as used by the line-oriented ingress listeners."""

    def __init__(self, dispatcher: Dispatcher, forwarder: Forwarder) -> None:
        self._dispatcher = dispatcher
        self._forwarder = forwarder

    async def relay_http(self, path: str, body: bytes) -> BackendReply:
        endpoint = await self._dispatcher.next(Protocol.HTTP)
        logger.info("Encaminhando %s para %s", path, endpoint.describe())
        return await self._forwarder.forward_http(endpoint, path, body)

    async def relay_line(self, protocol: Protocol, text: str) -> str:
        """Answer one TCP line or UDP datagram; every failure becomes an error line."""
        try:
            command = parse_command(text)
        except ParseError as exc:
            logger.warning("Comando %s inválido: %r", protocol.label, text)
            return error_line(exc)
        payload = text.strip().encode(ENCODING)
        if protocol is Protocol.UDP and len(payload) > MAX_DATAGRAM:
            return error_line(DatagramTooLarge(len(payload)))
        try:
            endpoint = await self._dispatcher.next(protocol)
            logger.info("Encaminhando %s para %s", type(command).__name__, endpoint.describe())
            if protocol is Protocol.TCP:
                return await self._forwarder.forward_tcp(endpoint, text.strip())
            return await self._forwarder.forward_udp(endpoint, payload)
        except (NoBackend, BackendTimeout, BackendFailure) as exc:
            logger.error("Requisição %s falhou: %s", protocol.label, exc)
            return error_line(exc)
