"""Construction of the gateway's shared collaborators."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import ServerConfig
from ..registry.probes import Prober
from ..registry.registry import ServiceRegistry
from .dispatcher import Dispatcher
from .forwarding import Forwarder, Relay
from .heartbeat import HeartbeatMonitor


@dataclass
class GatewayServices:
    registry: ServiceRegistry
    dispatcher: Dispatcher
    forwarder: Forwarder
    relay: Relay
    heartbeat: HeartbeatMonitor
    probers: tuple[Prober, ...] = ()

    async def close(self) -> None:
        await self.heartbeat.stop()
        await self.forwarder.close()
        for prober in self.probers:
            await prober.close()


def build_services(config: ServerConfig) -> GatewayServices:
    timeouts = config.timeouts
    registry = ServiceRegistry(default_host=config.gateway.advertise_host)
    dispatch_prober = Prober(
        timeout=timeouts.probe_ms / 1000,
        udp_timeout=timeouts.udp_probe_ms / 1000,
    )
    heartbeat_prober = Prober(
        timeout=timeouts.heartbeat_probe_ms / 1000,
        udp_timeout=timeouts.heartbeat_probe_ms / 1000,
        tcp_handshake=True,
    )
    dispatcher = Dispatcher(registry, dispatch_prober)
    forwarder = Forwarder(timeout=timeouts.forward_ms / 1000)
    return GatewayServices(
        registry=registry,
        dispatcher=dispatcher,
        forwarder=forwarder,
        relay=Relay(dispatcher, forwarder),
        heartbeat=HeartbeatMonitor(
            registry, heartbeat_prober, config.heartbeat.interval_seconds
        ),
        probers=(dispatch_prober, heartbeat_prober),
    )
