"""Unit tests for the gateway ingress: HTTP routes plus the TCP and UDP listeners."""

from __future__ import annotations

import socket
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from leilao.gateway.forwarding import BackendReply, BackendTimeout
from leilao.main import create_app
from leilao.registry.registry import Protocol


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


class TestRegisterServer:
    def test_registers_and_lists_http_workers(self, client):
        """A registered HTTP worker shows up in servidoresHTTPAtivos."""
        response = client.post("/registerServer", content="http;8081")
        assert response.status_code == 200
        assert response.text == "Servidor HTTP registrado com sucesso na porta 8081"

        client.post("/registerServer", content="HTTP;8082")
        listing = client.get("/servidoresHTTPAtivos")
        assert listing.status_code == 200
        assert listing.text == "http://127.0.0.1:8081;http://127.0.0.1:8082"

    def test_duplicate_registration_is_idempotent(self, client):
        client.post("/registerServer", content="tcp;7001")
        response = client.post("/registerServer", content="tcp;7001")
        assert response.status_code == 200
        servers = client.get("/admin/servers").json()
        assert [entry["port"] for entry in servers["tcp"]] == [7001]

    @pytest.mark.parametrize("body", ["http", "ftp;21", "http;porta", "udp;0"])
    def test_malformed_body_is_rejected(self, client, body):
        response = client.post("/registerServer", content=body)
        assert response.status_code == 400

    def test_wrong_method(self, client):
        response = client.get("/registerServer")
        assert response.status_code == 405
        assert response.text == "Método não permitido"

    def test_unknown_route(self, client):
        response = client.get("/naoExiste")
        assert response.status_code == 404
        assert response.text == "Rota não encontrada"

    def test_empty_listing(self, client):
        response = client.get("/servidoresHTTPAtivos")
        assert response.status_code == 200
        assert response.text == ""


class TestHttpIngress:
    def test_no_backend(self, client):
        """With no HTTP worker registered the gateway answers 500."""
        response = client.post("/cadastrarItem", content="Painting;Oil on canvas;100.0")
        assert response.status_code == 500
        assert response.text == "Erro: Nenhum servidor HTTP disponível."

    def test_dead_backend_is_ejected(self, client):
        client.post("/registerServer", content=f"http;{free_port()}")
        response = client.post("/registrarLance", content="1;alice;150.0")
        assert response.status_code == 500
        assert response.text == "Erro: Nenhum servidor HTTP disponível."
        assert client.get("/servidoresHTTPAtivos").text == ""

    def test_malformed_body_never_reaches_a_worker(self, client):
        relay = AsyncMock()
        client.app.state.relay = relay
        response = client.post("/registrarLance", content="abc;alice;10")
        assert response.status_code == 400
        assert response.text.startswith("Erro:")
        relay.relay_http.assert_not_awaited()

    def test_worker_reply_is_passed_through(self, client):
        relay = AsyncMock()
        relay.relay_http = AsyncMock(return_value=BackendReply(200, "Item cadastrado com ID: 1"))
        client.app.state.relay = relay

        response = client.post("/cadastrarItem", content="Painting;Oil on canvas;100.0")

        assert response.status_code == 200
        assert response.text == "Item cadastrado com ID: 1"
        relay.relay_http.assert_awaited_once_with("/cadastrarItem", b"Painting;Oil on canvas;100.0")

    def test_worker_timeout(self, client):
        relay = AsyncMock()
        relay.relay_http = AsyncMock(side_effect=BackendTimeout(Protocol.HTTP))
        client.app.state.relay = relay
        response = client.post("/registrarLance", content="1;alice;150.0")
        assert response.status_code == 500
        assert response.text == "Erro: Timeout ao processar a requisição via HTTP."


class TestAdminRoutes:
    def test_health_counts_servers(self, client):
        client.post("/registerServer", content="udp;6001")
        body = client.get("/admin/health").json()
        assert body["status"] == "healthy"
        assert body["servers"] == {"http": 0, "tcp": 0, "udp": 1}


class TestLineIngress:
    def test_tcp_without_workers(self, client):
        port = client.app.state.tcp_listener.port
        with socket.create_connection(("127.0.0.1", port), timeout=5) as conn:
            conn.sendall(b"cadastrarItem;Painting;Oil on canvas;100.0\n")
            reply = conn.makefile("r", encoding="utf-8").readline()
        assert reply.rstrip("\n") == "Erro: Nenhum servidor TCP disponível."

    def test_tcp_invalid_command(self, client):
        port = client.app.state.tcp_listener.port
        with socket.create_connection(("127.0.0.1", port), timeout=5) as conn:
            conn.sendall(b"apagarItem;1\n")
            reply = conn.makefile("r", encoding="utf-8").readline()
        assert reply.rstrip("\n") == "Erro: Comando inválido."

    def test_udp_without_workers(self, client):
        port = client.app.state.udp_listener.port
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(5)
            sock.sendto(b"registrarLance;1;alice;150.0", ("127.0.0.1", port))
            data, _ = sock.recvfrom(1024)
        assert data.decode("utf-8") == "Erro: Nenhum servidor UDP disponível."
