"""Service registry of worker endpoints, populated by self-registration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"


class Protocol(str, Enum):
    HTTP = "http"
    TCP = "tcp"
    UDP = "udp"

    @classmethod
    def parse(cls, value: str) -> "Protocol":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Protocolo desconhecido: {value!r}") from exc

    @property
    def label(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class Endpoint:
    protocol: Protocol
    host: str
    port: int

    @property
    def address(self) -> tuple[str, int]:
        return self.host, self.port

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def describe(self) -> str:
        if self.protocol is Protocol.HTTP:
            return self.url
        return f"{self.protocol.value}://{self.host}:{self.port}"


class ServiceRegistry:
    """Per-protocol ordered endpoint table with a round-robin cursor.

    Each protocol's endpoints live in an immutable tuple that is replaced on
    every mutation, so readers holding a snapshot never observe a partial
    update. The cursor is an index into the current tuple and is kept in range
    whenever the tuple shrinks.
    """

    def __init__(self, default_host: str = DEFAULT_HOST) -> None:
        self._default_host = default_host
        self._endpoints: dict[Protocol, tuple[Endpoint, ...]] = {p: () for p in Protocol}
        self._cursors: dict[Protocol, int] = {p: 0 for p in Protocol}
        self._lock = asyncio.Lock()

    def endpoint(self, protocol: Protocol, port: int, host: str | None = None) -> Endpoint:
        return Endpoint(protocol, host or self._default_host, port)

    async def register(self, protocol: Protocol, port: int, host: str | None = None) -> bool:
        """Append the endpoint. Returns False when it was already registered."""
        endpoint = self.endpoint(protocol, port, host)
        async with self._lock:
            current = self._endpoints[protocol]
            if endpoint in current:
                return False
            self._endpoints[protocol] = current + (endpoint,)
        logger.info("Servidor %s registrado em %s", protocol.label, endpoint.describe())
        return True

    async def remove(self, protocol: Protocol, port: int, host: str | None = None) -> bool:
        """Remove the endpoint if present. Returns False when it was absent."""
        return await self.discard(self.endpoint(protocol, port, host))

    async def discard(self, endpoint: Endpoint) -> bool:
        protocol = endpoint.protocol
        async with self._lock:
            current = self._endpoints[protocol]
            if endpoint not in current:
                return False
            index = current.index(endpoint)
            remaining = current[:index] + current[index + 1 :]
            self._endpoints[protocol] = remaining
            cursor = self._cursors[protocol]
            if index < cursor:
                cursor -= 1
            self._cursors[protocol] = cursor if cursor < len(remaining) else 0
        logger.info("Servidor %s removido: %s", protocol.label, endpoint.describe())
        return True

    async def snapshot(self, protocol: Protocol) -> tuple[Endpoint, ...]:
        async with self._lock:
            return self._endpoints[protocol]

    async def advance(self, protocol: Protocol) -> Endpoint | None:
        """Return the endpoint under the cursor and move the cursor past it."""
        async with self._lock:
            current = self._endpoints[protocol]
            if not current:
                self._cursors[protocol] = 0
                return None
            index = self._cursors[protocol] % len(current)
            self._cursors[protocol] = (index + 1) % len(current)
            return current[index]

    async def cursor(self, protocol: Protocol) -> int:
        async with self._lock:
            return self._cursors[protocol]

    async def all(self) -> dict[Protocol, tuple[Endpoint, ...]]:
        async with self._lock:
            return dict(self._endpoints)
