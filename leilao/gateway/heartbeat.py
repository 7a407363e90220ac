"""Periodic heartbeat that ejects unresponsive worker endpoints."""

from __future__ import annotations

import asyncio
import logging

from ..registry.probes import Prober
from ..registry.registry import Endpoint, Protocol, ServiceRegistry

logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    def __init__(
        self,
        registry: ServiceRegistry,
        prober: Prober,
        interval_seconds: float = 10.0,
    ) -> None:
        self._registry = registry
        self._prober = prober
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="heartbeat")
        logger.info("Heartbeat iniciado (intervalo %.1fs)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Heartbeat parado")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Falha inesperada no heartbeat")

    async def tick(self) -> list[Endpoint]:
        """Probe every registered endpoint once and eject the ones that fail."""
        endpoints: list[Endpoint] = []
        for protocol in Protocol:
            endpoints.extend(await self._registry.snapshot(protocol))
        if not endpoints:
            return []
        results = await asyncio.gather(*(self._prober.check(endpoint) for endpoint in endpoints))
        ejected = []
        for endpoint, alive in zip(endpoints, results):
            if alive:
                continue
            if await self._registry.discard(endpoint):
                ejected.append(endpoint)
        if ejected:
            logger.info(
                "Heartbeat removeu %d servidor(es): %s",
                len(ejected),
                ", ".join(endpoint.describe() for endpoint in ejected),
            )
        return ejected
