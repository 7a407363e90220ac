"""Command line entry point: ``leilao gateway`` and ``leilao worker``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Sequence

import uvicorn

from .admin.console import AdminConsole
from .auction.service import AuctionService
from .config import ServerConfig, get_server_config
from .main import create_app
from .registry.registry import Protocol
from .storage import build_store
from .transport.servers import bind_socket
from .worker.runner import Worker

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leilao", description="Gateway de leilão distribuído")
    parser.add_argument("--config", help="caminho do arquivo YAML de configuração")
    sub = parser.add_subparsers(dest="command", required=True)

    gateway = sub.add_parser("gateway", help="inicia o gateway HTTP/TCP/UDP")
    gateway.add_argument(
        "--no-admin", action="store_true", help="não abre o console administrativo"
    )

    worker = sub.add_parser("worker", help="inicia um servidor interno")
    worker.add_argument("protocol", choices=[p.value for p in Protocol])
    worker.add_argument("port", type=int)
    worker.add_argument(
        "--no-register", action="store_true", help="não se registra no gateway"
    )
    return parser


def configure_logging(settings: ServerConfig) -> None:
    logging.basicConfig(level=settings.logging.level, format=settings.logging.format)


async def run_gateway(settings: ServerConfig, *, admin: bool = True) -> None:
    gateway = settings.gateway
    app = create_app(settings)
    server = uvicorn.Server(
        uvicorn.Config(app, host=gateway.host, port=gateway.http_port, log_config=None)
    )
    sock = bind_socket(gateway.host, gateway.http_port)
    serve_task = asyncio.create_task(server.serve(sockets=[sock]), name="gateway-http")
    store = build_store(settings)
    console_task: asyncio.Task | None = None
    try:
        if admin:
            while not server.started and not serve_task.done():
                await asyncio.sleep(0.05)
            if server.started:
                console = AdminConsole(
                    app.state.registry,
                    AuctionService(store),
                    settings,
                    on_exit=lambda: setattr(server, "should_exit", True),
                )
                console_task = asyncio.create_task(console.run(), name="admin-console")
        await serve_task
    finally:
        if console_task is not None and not console_task.done():
            console_task.cancel()
        await store.close()
        sock.close()


async def run_worker(settings: ServerConfig, protocol: Protocol, port: int, *, register: bool) -> None:
    store = build_store(settings)
    worker = Worker(
        protocol,
        port,
        AuctionService(store),
        host=settings.worker.host,
        gateway_url=settings.worker.gateway_url,
        register=register and settings.worker.register,
        max_concurrency=settings.gateway.max_concurrency,
    )
    await worker.start()
    try:
        await asyncio.Event().wait()
    finally:
        await worker.stop()
        await store.close()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.config:
        os.environ["LEILAO_CONFIG_PATH"] = args.config
        get_server_config.cache_clear()
    settings = get_server_config()
    configure_logging(settings)
    try:
        if args.command == "gateway":
            asyncio.run(run_gateway(settings, admin=not args.no_admin))
        else:
            asyncio.run(
                run_worker(
                    settings,
                    Protocol.parse(args.protocol),
                    args.port,
                    register=not args.no_register,
                )
            )
    except KeyboardInterrupt:
        logger.info("Interrompido")
    except OSError as exc:
        logger.error("Falha ao iniciar: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
