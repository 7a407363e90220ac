"""In-memory item store used for local runs and tests."""

from __future__ import annotations

import asyncio
import itertools
import logging
from copy import deepcopy

from ..auction.models import Bid, BidResult, BidStatus, Item
from .errors import check_bid, check_new_item

logger = logging.getLogger(__name__)


class InMemoryStore:
    def __init__(self) -> None:
        self._items: dict[int, Item] = {}
        self._bids: list[Bid] = []
        self._item_ids = itertools.count(1)
        self._bid_ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def add_item(self, name: str, description: str, initial_price: float) -> int:
        check_new_item(name, initial_price)
        async with self._lock:
            item_id = next(self._item_ids)
            self._items[item_id] = Item(
                id=item_id,
                name=name,
                description=description,
                initial_price=float(initial_price),
            )
        logger.info("Item registered id=%s name=%s", item_id, name)
        return item_id

    async def place_bid(self, item_id: int, bidder: str, value: float) -> BidResult:
        check_bid(bidder, value)
        async with self._lock:
            item = self._items.get(item_id)
            if item is None:
                logger.warning("Bid for unknown item id=%s", item_id)
                return BidResult(BidStatus.NOT_FOUND, item_id)
            if value <= item.highest_bid:
                logger.info(
                    "Bid by %s on item %s rejected: %s <= %s",
                    bidder,
                    item_id,
                    value,
                    item.highest_bid,
                )
                return BidResult(BidStatus.TOO_LOW, item_id, item.highest_bid)
            item.highest_bid = float(value)
            item.highest_bidder = bidder
            self._bids.append(
                Bid(id=next(self._bid_ids), item_id=item_id, bidder=bidder, value=float(value))
            )
        logger.info("Bid accepted on item %s: %s by %s", item_id, value, bidder)
        return BidResult(BidStatus.ACCEPTED, item_id, float(value))

    async def get_item(self, item_id: int) -> Item | None:
        async with self._lock:
            item = self._items.get(item_id)
            return deepcopy(item) if item else None

    async def list_bids(self, item_id: int) -> list[Bid]:
        async with self._lock:
            return [deepcopy(bid) for bid in self._bids if bid.item_id == item_id]

    async def close(self) -> None:
        return None
