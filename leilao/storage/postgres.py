"""Postgres item store leveraging asyncpg."""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from ..auction.models import Bid, BidResult, BidStatus, Item
from .errors import StorageFailure, check_bid, check_new_item

logger = logging.getLogger(__name__)

# items.id is a SERIAL (int4) column
MAX_ITEM_ID = 2**31 - 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    initial_price DOUBLE PRECISION NOT NULL,
    highest_bid DOUBLE PRECISION NOT NULL DEFAULT 0,
    highest_bidder TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS bids (
    id SERIAL PRIMARY KEY,
    item_id INTEGER NOT NULL REFERENCES items(id),
    bidder TEXT NOT NULL,
    value DOUBLE PRECISION NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_bids_item_id ON bids (item_id);
"""


def _valid_id(item_id: int) -> bool:
    return 0 < item_id <= MAX_ITEM_ID


class PostgresStore:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
                async with self._pool.acquire() as conn:
                    await conn.execute(_SCHEMA)
            except (asyncpg.PostgresError, OSError) as exc:
                self._pool = None
                raise StorageFailure(f"could not open item store: {exc}") from exc
        return self._pool

    async def add_item(self, name: str, description: str, initial_price: float) -> int:
        check_new_item(name, initial_price)
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                item_id = await conn.fetchval(
                    """INSERT INTO items(name, description, initial_price)
                       VALUES($1, $2, $3) RETURNING id""",
                    name,
                    description,
                    float(initial_price),
                )
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageFailure(f"could not register item: {exc}") from exc
        logger.info("Item registered id=%s name=%s", item_id, name)
        return int(item_id)

    async def place_bid(self, item_id: int, bidder: str, value: float) -> BidResult:
        check_bid(bidder, value)
        if not _valid_id(item_id):
            logger.warning("Bid for unknown item id=%s", item_id)
            return BidResult(BidStatus.NOT_FOUND, item_id)
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                return await self._place_bid(conn, item_id, bidder, float(value))
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageFailure(f"could not register bid: {exc}") from exc

    async def _place_bid(
        self, conn: asyncpg.Connection, item_id: int, bidder: str, value: float
    ) -> BidResult:
        tx = conn.transaction()
        await tx.start()
        try:
            current = await conn.fetchval(
                "SELECT highest_bid FROM items WHERE id=$1 FOR UPDATE",
                item_id,
            )
            if current is None:
                await tx.rollback()
                logger.warning("Bid for unknown item id=%s", item_id)
                return BidResult(BidStatus.NOT_FOUND, item_id)
            if value <= current:
                await tx.rollback()
                logger.info(
                    "Bid by %s on item %s rejected: %s <= %s", bidder, item_id, value, current
                )
                return BidResult(BidStatus.TOO_LOW, item_id, float(current))
            await conn.execute(
                "UPDATE items SET highest_bid=$2, highest_bidder=$3 WHERE id=$1",
                item_id,
                value,
                bidder,
            )
            await conn.execute(
                "INSERT INTO bids(item_id, bidder, value) VALUES($1, $2, $3)",
                item_id,
                bidder,
                value,
            )
        except BaseException:
            await tx.rollback()
            raise
        await tx.commit()
        logger.info("Bid accepted on item %s: %s by %s", item_id, value, bidder)
        return BidResult(BidStatus.ACCEPTED, item_id, value)

    async def get_item(self, item_id: int) -> Item | None:
        if not _valid_id(item_id):
            return None
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """SELECT id, name, description, initial_price, highest_bid, highest_bidder
                       FROM items WHERE id=$1""",
                    item_id,
                )
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageFailure(f"could not load item {item_id}: {exc}") from exc
        if not row:
            return None
        return Item(**dict(row))

    async def list_bids(self, item_id: int) -> list[Bid]:
        if not _valid_id(item_id):
            return []
        pool = await self._ensure_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    """SELECT id, item_id, bidder, value, created_at
                       FROM bids WHERE item_id=$1 ORDER BY id""",
                    item_id,
                )
        except (asyncpg.PostgresError, OSError) as exc:
            raise StorageFailure(f"could not load bids for item {item_id}: {exc}") from exc
        return [Bid(**dict(row)) for row in rows]

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
