from __future__ import annotations

import pytest

from leilao.config import ServerConfig, parse_server_config


def make_settings(**overrides) -> ServerConfig:
    data = {
        "gateway": {"host": "127.0.0.1", "tcp_port": 0, "udp_port": 0},
        "timeouts": {
            "probe_ms": 300,
            "udp_probe_ms": 300,
            "heartbeat_probe_ms": 300,
            "forward_ms": 1000,
        },
        "heartbeat": {"enabled": False},
        "worker": {"register": False},
    }
    data.update(overrides)
    return parse_server_config(data)


@pytest.fixture
def settings() -> ServerConfig:
    return make_settings()
