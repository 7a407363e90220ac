"""Item store backend factory."""

from __future__ import annotations

from typing import Protocol

from ..auction.models import Bid, BidResult, Item
from ..config import ServerConfig
from .errors import InvalidArgument, StorageFailure
from .in_memory import InMemoryStore
from .postgres import PostgresStore

__all__ = [
    "InMemoryStore",
    "InvalidArgument",
    "ItemStore",
    "PostgresStore",
    "StorageFailure",
    "build_store",
]


class ItemStore(Protocol):
    async def add_item(self, name: str, description: str, initial_price: float) -> int: ...

    async def place_bid(self, item_id: int, bidder: str, value: float) -> BidResult: ...

    async def get_item(self, item_id: int) -> Item | None: ...

    async def list_bids(self, item_id: int) -> list[Bid]: ...

    async def close(self) -> None: ...


def build_store(config: ServerConfig) -> ItemStore:
    backend = config.store.backend
    options = dict(config.store.options)
    if backend == "in_memory":
        return InMemoryStore()
    if backend == "postgres":
        return PostgresStore(**options)
    raise ValueError(f"unknown storage backend {backend}")
