from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .admin import health as admin_health
from .admin import servers as admin_servers
from .config import ServerConfig, get_server_config
from .gateway.dispatcher import NoBackend
from .gateway.forwarding import BackendFailure, BackendTimeout, Relay, error_line
from .gateway.services import GatewayServices, build_services
from .registry.registry import Protocol, ServiceRegistry
from .transport.commands import ParseError, parse_place_bid, parse_register_item, parse_registration
from .transport.servers import DatagramServer, LineServer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: ServerConfig = app.state.settings or get_server_config()
    services: GatewayServices = app.state.services or build_services(settings)
    gateway = settings.gateway
    tcp_listener = LineServer(
        partial(services.relay.relay_line, Protocol.TCP),
        host=gateway.host,
        port=gateway.tcp_port,
        max_concurrency=gateway.max_concurrency,
        read_timeout=settings.timeouts.forward_ms / 1000,
        name="Gateway TCP",
    )
    udp_listener = DatagramServer(
        partial(services.relay.relay_line, Protocol.UDP),
        host=gateway.host,
        port=gateway.udp_port,
        max_concurrency=gateway.max_concurrency,
        name="Gateway UDP",
    )

    app.state.settings = settings
    app.state.services = services
    app.state.registry = services.registry
    app.state.relay = services.relay
    app.state.http_slots = asyncio.Semaphore(gateway.max_concurrency)
    app.state.tcp_listener = tcp_listener
    app.state.udp_listener = udp_listener
    app.state.start_time = datetime.now(timezone.utc)

    await tcp_listener.start()
    try:
        await udp_listener.start()
    except OSError:
        await tcp_listener.stop()
        raise
    if settings.heartbeat.enabled:
        services.heartbeat.start()
    logger.info("Gateway em execução")
    try:
        yield
    finally:
        logger.info("Gateway parando")
        await services.heartbeat.stop()
        await udp_listener.stop()
        await tcp_listener.stop()
        await services.close()


def create_app(
    settings: ServerConfig | None = None,
    services: GatewayServices | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Leilão Gateway",
        version="1.0.0",
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services
    app.add_exception_handler(StarletteHTTPException, plain_http_error)
    app.include_router(admin_health.router)
    app.include_router(admin_servers.router)
    app.include_router(router_ingress)
    return app


async def plain_http_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    messages = {
        status.HTTP_404_NOT_FOUND: "Rota não encontrada",
        status.HTTP_405_METHOD_NOT_ALLOWED: "Método não permitido",
    }
    detail = messages.get(exc.status_code) or str(exc.detail)
    return PlainTextResponse(detail, status_code=exc.status_code, headers=exc.headers)


# Dependency helpers ---------------------------------------------------------


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def get_relay(request: Request) -> Relay:
    return request.app.state.relay


def get_http_slots(request: Request) -> asyncio.Semaphore:
    return request.app.state.http_slots


# Routes ---------------------------------------------------------------------

router_ingress = APIRouter(tags=["ingress"])


async def _relay_http(
    request: Request,
    relay: Relay,
    slots: asyncio.Semaphore,
    parse: Callable[[str], Any],
) -> PlainTextResponse:
    raw = await request.body()
    try:
        parse(raw.decode("utf-8"))
    except (ParseError, UnicodeDecodeError) as exc:
        return PlainTextResponse(error_line(exc), status_code=status.HTTP_400_BAD_REQUEST)
    async with slots:
        try:
            reply = await relay.relay_http(request.url.path, raw)
        except (NoBackend, BackendTimeout, BackendFailure) as exc:
            logger.error("Requisição HTTP %s falhou: %s", request.url.path, exc)
            return PlainTextResponse(
                error_line(exc), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
    return PlainTextResponse(reply.body, status_code=reply.status_code)


@router_ingress.post("/cadastrarItem", response_class=PlainTextResponse)
async def register_item(
    request: Request,
    relay: Relay = Depends(get_relay),
    slots: asyncio.Semaphore = Depends(get_http_slots),
) -> PlainTextResponse:
    return await _relay_http(request, relay, slots, parse_register_item)


@router_ingress.post("/registrarLance", response_class=PlainTextResponse)
async def place_bid(
    request: Request,
    relay: Relay = Depends(get_relay),
    slots: asyncio.Semaphore = Depends(get_http_slots),
) -> PlainTextResponse:
    return await _relay_http(request, relay, slots, parse_place_bid)


@router_ingress.post("/registerServer", response_class=PlainTextResponse)
async def register_server(
    request: Request,
    registry: ServiceRegistry = Depends(get_registry),
) -> PlainTextResponse:
    raw = await request.body()
    try:
        protocol, port = parse_registration(raw.decode("utf-8"))
    except (ParseError, UnicodeDecodeError) as exc:
        logger.warning("Registro inválido: %r", raw)
        return PlainTextResponse(str(exc), status_code=status.HTTP_400_BAD_REQUEST)
    await registry.register(protocol, port)
    return PlainTextResponse(
        f"Servidor {protocol.label} registrado com sucesso na porta {port}"
    )


@router_ingress.get("/servidoresHTTPAtivos", response_class=PlainTextResponse)
async def active_http_servers(
    registry: ServiceRegistry = Depends(get_registry),
) -> PlainTextResponse:
    endpoints = await registry.snapshot(Protocol.HTTP)
    return PlainTextResponse(";".join(endpoint.url for endpoint in endpoints))


app = create_app()
