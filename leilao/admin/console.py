"""Interactive admin loop that runs beside the gateway."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import Callable, TextIO

from ..auction.service import AuctionService
from ..config import ServerConfig
from ..registry.registry import Protocol, ServiceRegistry
from ..worker.runner import Worker

logger = logging.getLogger(__name__)

HELP = "Comandos: iniciar_<http|tcp|udp> <porta>, parar_<http|tcp|udp> <porta>, listar, sair"


class AdminConsole:
    """Starts and stops in-process workers and lists the registry.

    ``sair`` stops every worker started here and calls ``on_exit``.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        service: AuctionService,
        settings: ServerConfig,
        on_exit: Callable[[], None],
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self._registry = registry
        self._service = service
        self._settings = settings
        self._on_exit = on_exit
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._workers: dict[tuple[Protocol, int], Worker] = {}

    def _print(self, message: str) -> None:
        print(message, file=self._stdout, flush=True)

    async def run(self) -> None:
        lines: asyncio.Queue[str | None] = asyncio.Queue()
        loop = asyncio.get_running_loop()

        def _reader() -> None:
            for line in self._stdin:
                loop.call_soon_threadsafe(lines.put_nowait, line)
            loop.call_soon_threadsafe(lines.put_nowait, None)

        threading.Thread(target=_reader, name="admin-stdin", daemon=True).start()
        self._print(HELP)
        while True:
            line = await lines.get()
            if line is None:
                logger.info("Entrada do console encerrada")
                return
            if not await self.execute(line):
                return

    async def execute(self, line: str) -> bool:
        """Run one command. Returns False once ``sair`` has been processed."""
        parts = line.split()
        if not parts:
            return True
        command, args = parts[0].lower(), parts[1:]
        if command == "sair":
            await self.shutdown()
            self._on_exit()
            return False
        if command == "listar":
            await self.list_servers()
            return True
        action, _, proto = command.partition("_")
        if action in ("iniciar", "parar") and proto and len(args) == 1:
            try:
                protocol = Protocol.parse(proto)
                port = int(args[0])
            except ValueError:
                self._print(f"Aviso: comando inválido: {line.strip()}")
                return True
            if action == "iniciar":
                await self.start_worker(protocol, port)
            else:
                await self.stop_worker(protocol, port)
            return True
        self._print(f"Aviso: comando desconhecido: {line.strip()}")
        return True

    async def start_worker(self, protocol: Protocol, port: int) -> None:
        key = (protocol, port)
        if key in self._workers:
            self._print(f"Servidor {protocol.label} já está rodando na porta {port}")
            return
        worker = Worker(
            protocol,
            port,
            self._service,
            host=self._settings.worker.host,
            gateway_url=self._settings.worker.gateway_url,
            register=self._settings.worker.register,
            max_concurrency=self._settings.gateway.max_concurrency,
        )
        try:
            await worker.start()
        except OSError as exc:
            self._print(f"Erro ao iniciar servidor {protocol.label} na porta {port}: {exc}")
            return
        self._workers[key] = worker
        self._print(f"Servidor {protocol.label} iniciado na porta {worker.port}")

    async def stop_worker(self, protocol: Protocol, port: int) -> None:
        worker = self._workers.pop((protocol, port), None)
        if worker is None:
            self._print(f"Nenhum servidor {protocol.label} iniciado na porta {port}")
            return
        await worker.stop()
        await self._registry.remove(protocol, port)
        self._print(f"Servidor {protocol.label} parado na porta {port}")

    async def list_servers(self) -> None:
        for protocol, endpoints in (await self._registry.all()).items():
            ports = ", ".join(str(endpoint.port) for endpoint in endpoints) or "-"
            self._print(f"{protocol.label}: {ports}")

    async def shutdown(self) -> None:
        for protocol, port in list(self._workers):
            await self.stop_worker(protocol, port)
