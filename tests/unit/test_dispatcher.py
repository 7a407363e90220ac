"""Unit tests for the dispatcher and the heartbeat monitor using fake probes."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from leilao.gateway.dispatcher import Dispatcher, NoBackend
from leilao.gateway.heartbeat import HeartbeatMonitor
from leilao.registry.registry import Protocol, ServiceRegistry


def fake_prober(dead_ports: set[int]):
    prober = AsyncMock()

    async def check(endpoint):
        return endpoint.port not in dead_ports

    prober.check = AsyncMock(side_effect=check)
    return prober


async def build_registry(protocol: Protocol, ports) -> ServiceRegistry:
    registry = ServiceRegistry()
    for port in ports:
        await registry.register(protocol, port)
    return registry


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_empty_protocol_raises_no_backend(self):
        dispatcher = Dispatcher(ServiceRegistry(), fake_prober(set()))
        with pytest.raises(NoBackend, match="Nenhum servidor TCP disponível."):
            await dispatcher.next(Protocol.TCP)

    @pytest.mark.asyncio
    async def test_round_robin_fairness(self):
        registry = await build_registry(Protocol.HTTP, [8081, 8082, 8083])
        dispatcher = Dispatcher(registry, fake_prober(set()))
        picks = [(await dispatcher.next(Protocol.HTTP)).port for _ in range(3)]
        assert sorted(picks) == [8081, 8082, 8083]

    @pytest.mark.asyncio
    async def test_dead_endpoint_is_ejected_and_next_one_returned(self):
        registry = await build_registry(Protocol.HTTP, [8081, 8082])
        prober = fake_prober({8081})
        dispatcher = Dispatcher(registry, prober)

        endpoint = await dispatcher.next(Protocol.HTTP)

        assert endpoint.port == 8082
        assert [e.port for e in await registry.snapshot(Protocol.HTTP)] == [8082]
        assert prober.check.await_count == 2

    @pytest.mark.asyncio
    async def test_all_dead_empties_the_list(self):
        registry = await build_registry(Protocol.UDP, [6001, 6002, 6003])
        dispatcher = Dispatcher(registry, fake_prober({6001, 6002, 6003}))
        with pytest.raises(NoBackend):
            await dispatcher.next(Protocol.UDP)
        assert await registry.snapshot(Protocol.UDP) == ()

    @pytest.mark.asyncio
    async def test_wraps_without_looping_forever_when_eject_is_lost(self):
        registry = await build_registry(Protocol.TCP, [7001, 7002])
        dispatcher = Dispatcher(registry, fake_prober({7001, 7002}))
        # a registry whose removals never land must not spin the dispatcher
        registry.discard = AsyncMock(return_value=False)
        with pytest.raises(NoBackend):
            await dispatcher.next(Protocol.TCP)
        assert len(await registry.snapshot(Protocol.TCP)) == 2

    @pytest.mark.asyncio
    async def test_registered_endpoint_becomes_reachable(self):
        registry = ServiceRegistry()
        dispatcher = Dispatcher(registry, fake_prober(set()))
        await registry.register(Protocol.TCP, 7005)
        assert (await dispatcher.next(Protocol.TCP)).port == 7005


class TestHeartbeatMonitor:
    @pytest.mark.asyncio
    async def test_tick_ejects_only_failed_endpoints(self):
        registry = ServiceRegistry()
        await registry.register(Protocol.HTTP, 8081)
        await registry.register(Protocol.TCP, 7001)
        await registry.register(Protocol.UDP, 6001)
        monitor = HeartbeatMonitor(registry, fake_prober({7001, 6001}), interval_seconds=10)

        ejected = await monitor.tick()

        assert {(e.protocol, e.port) for e in ejected} == {(Protocol.TCP, 7001), (Protocol.UDP, 6001)}
        assert [e.port for e in await registry.snapshot(Protocol.HTTP)] == [8081]
        assert await registry.snapshot(Protocol.TCP) == ()
        assert await registry.snapshot(Protocol.UDP) == ()

    @pytest.mark.asyncio
    async def test_tick_with_empty_registry(self):
        prober = fake_prober(set())
        monitor = HeartbeatMonitor(ServiceRegistry(), prober)
        assert await monitor.tick() == []
        prober.check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_periodic_task_runs_and_stops(self):
        registry = await build_registry(Protocol.HTTP, [8081])
        monitor = HeartbeatMonitor(registry, fake_prober({8081}), interval_seconds=0.01)
        monitor.start()
        assert monitor.running
        for _ in range(100):
            if not await registry.snapshot(Protocol.HTTP):
                break
            await asyncio.sleep(0.01)
        await monitor.stop()
        assert not monitor.running
        assert await registry.snapshot(Protocol.HTTP) == ()
