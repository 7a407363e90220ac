"""Configuration helpers for the gateway and its workers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"


@dataclass(frozen=True)
class GatewayConfig:
    host: str
    advertise_host: str
    http_port: int
    tcp_port: int
    udp_port: int
    max_concurrency: int


@dataclass(frozen=True)
class WorkerConfig:
    host: str
    gateway_url: str
    register: bool


@dataclass(frozen=True)
class TimeoutConfig:
    probe_ms: int
    udp_probe_ms: int
    heartbeat_probe_ms: int
    forward_ms: int


@dataclass(frozen=True)
class HeartbeatConfig:
    interval_seconds: float
    enabled: bool


@dataclass(frozen=True)
class StoreConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    format: str


@dataclass(frozen=True)
class ServerConfig:
    gateway: GatewayConfig
    worker: WorkerConfig
    timeouts: TimeoutConfig
    heartbeat: HeartbeatConfig
    store: StoreConfig
    logging: LoggingConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def parse_server_config(data: Mapping[str, Any]) -> ServerConfig:
    gateway = data.get("gateway", {})
    worker = data.get("worker", {})
    timeouts = data.get("timeouts", {})
    heartbeat = data.get("heartbeat", {})
    store = data.get("store", {})
    logging_section = data.get("logging", {})
    host = str(gateway.get("host", "127.0.0.1"))
    return ServerConfig(
        gateway=GatewayConfig(
            host=host,
            advertise_host=str(gateway.get("advertise_host", "127.0.0.1")),
            http_port=int(gateway.get("http_port", 9000)),
            tcp_port=int(gateway.get("tcp_port", 9001)),
            udp_port=int(gateway.get("udp_port", 9002)),
            max_concurrency=int(gateway.get("max_concurrency", 10)),
        ),
        worker=WorkerConfig(
            host=str(worker.get("host", "127.0.0.1")),
            gateway_url=str(worker.get("gateway_url", "http://127.0.0.1:9000")).rstrip("/"),
            register=bool(worker.get("register", True)),
        ),
        timeouts=TimeoutConfig(
            probe_ms=int(timeouts.get("probe_ms", 500)),
            udp_probe_ms=int(timeouts.get("udp_probe_ms", 2000)),
            heartbeat_probe_ms=int(timeouts.get("heartbeat_probe_ms", 500)),
            forward_ms=int(timeouts.get("forward_ms", 5000)),
        ),
        heartbeat=HeartbeatConfig(
            interval_seconds=float(heartbeat.get("interval_seconds", 10)),
            enabled=bool(heartbeat.get("enabled", True)),
        ),
        store=StoreConfig(
            backend=str(store.get("backend", "in_memory")),
            options=dict(store.get("options") or {}),
        ),
        logging=LoggingConfig(
            level=str(logging_section.get("level", "INFO")).upper(),
            format=str(
                logging_section.get(
                    "format", "%(asctime)s %(levelname)s [%(name)s] %(message)s"
                )
            ),
        ),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("LEILAO_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path))
