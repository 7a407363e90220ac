"""Applies auction commands to the item store and renders status replies."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..storage import InvalidArgument, ItemStore, StorageFailure
from ..transport.commands import Command, ParseError, PlaceBid, RegisterItem, parse_command
from .models import BidResult, BidStatus

logger = logging.getLogger(__name__)

BID_ACCEPTED = "Lance registrado com sucesso."
BID_TOO_LOW = "Lance rejeitado: valor inferior ou igual ao maior lance atual."


def item_registered(item_id: int) -> str:
    return f"Item cadastrado com ID: {item_id}"


def describe_bid(result: BidResult) -> str:
    if result.status is BidStatus.ACCEPTED:
        return BID_ACCEPTED
    if result.status is BidStatus.NOT_FOUND:
        return f"Lance rejeitado: item {result.item_id} não encontrado."
    return BID_TOO_LOW


@dataclass
class AuctionService:
    store: ItemStore

    async def register_item(self, command: RegisterItem) -> str:
        try:
            item_id = await self.store.add_item(
                command.name, command.description, command.initial_price
            )
        except InvalidArgument as exc:
            raise ParseError(str(exc)) from exc
        return item_registered(item_id)

    async def place_bid(self, command: PlaceBid) -> str:
        try:
            result = await self.store.place_bid(command.item_id, command.bidder, command.value)
        except InvalidArgument as exc:
            raise ParseError(str(exc)) from exc
        return describe_bid(result)

    async def execute(self, command: Command) -> str:
        if isinstance(command, RegisterItem):
            return await self.register_item(command)
        return await self.place_bid(command)

    async def handle_line(self, text: str) -> str:
        """Answer a TCP line or UDP datagram; errors become ``Erro:`` lines."""
        try:
            return await self.execute(parse_command(text))
        except ParseError as exc:
            logger.warning("Comando inválido %r: %s", text, exc)
            return f"Erro: {exc}"
        except StorageFailure as exc:
            logger.error("Falha no banco de dados: %s", exc)
            return f"Erro: {exc}"
