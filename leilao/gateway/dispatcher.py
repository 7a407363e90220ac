"""Round-robin endpoint selection with inline liveness probing."""

from __future__ import annotations

import logging

from ..registry.probes import Prober
from ..registry.registry import Endpoint, Protocol, ServiceRegistry

logger = logging.getLogger(__name__)


class NoBackend(RuntimeError):
    """Raised when no live worker of the requested protocol is available."""

    def __init__(self, protocol: Protocol) -> None:
        super().__init__(f"Nenhum servidor {protocol.label} disponível.")
        self.protocol = protocol


class Dispatcher:
    def __init__(self, registry: ServiceRegistry, prober: Prober) -> None:
        self._registry = registry
        self._prober = prober

    async def next(self, protocol: Protocol) -> Endpoint:
        """Pick the next live endpoint, ejecting every dead one met on the way.

        The cursor moves past an endpoint before it is probed. The loop stops
        once it meets an endpoint it already tried in this call, which means
        the cursor has wrapped around without finding a live worker.
        """
        tried: set[Endpoint] = set()
        while True:
            endpoint = await self._registry.advance(protocol)
            if endpoint is None or endpoint in tried:
                raise NoBackend(protocol)
            tried.add(endpoint)
            if await self._prober.check(endpoint):
                return endpoint
            logger.warning(
                "Servidor %s em %s não respondeu ao probe; removendo",
                protocol.label,
                endpoint.describe(),
            )
            await self._registry.discard(endpoint)
