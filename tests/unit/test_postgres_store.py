"""Unit tests for the Postgres item store against a mocked asyncpg pool."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from leilao.auction.models import BidStatus
from leilao.storage import PostgresStore, StorageFailure
from leilao.storage.postgres import MAX_ITEM_ID


@pytest.fixture
def transaction():
    tx = MagicMock()
    tx.start = AsyncMock()
    tx.commit = AsyncMock()
    tx.rollback = AsyncMock()
    return tx


@pytest.fixture
def connection(transaction):
    conn = MagicMock()
    conn.transaction = MagicMock(return_value=transaction)
    conn.fetchval = AsyncMock()
    conn.execute = AsyncMock()
    conn.fetchrow = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])
    return conn


@pytest.fixture
def store(connection):
    pool = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=connection)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.close = AsyncMock()
    store = PostgresStore(dsn="postgresql://localhost/leilao")
    store._pool = pool
    return store


def executed_sql(connection) -> list[str]:
    return [call.args[0] for call in connection.execute.await_args_list]


class TestPlaceBid:
    @pytest.mark.asyncio
    async def test_higher_bid_updates_and_commits(self, store, connection, transaction):
        connection.fetchval.return_value = 100.0

        result = await store.place_bid(1, "alice", 150.0)

        assert result.status is BidStatus.ACCEPTED
        assert "FOR UPDATE" in connection.fetchval.await_args.args[0]
        statements = executed_sql(connection)
        assert statements[0].startswith("UPDATE items")
        assert statements[1].startswith("INSERT INTO bids")
        transaction.start.assert_awaited_once()
        transaction.commit.assert_awaited_once()
        transaction.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [150.0, 120.0])
    async def test_losing_bid_rolls_back(self, store, connection, transaction, value):
        connection.fetchval.return_value = 150.0

        result = await store.place_bid(1, "bob", value)

        assert result.status is BidStatus.TOO_LOW
        assert result.highest_bid == 150.0
        connection.execute.assert_not_awaited()
        transaction.rollback.assert_awaited_once()
        transaction.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_item_rolls_back(self, store, connection, transaction):
        connection.fetchval.return_value = None

        result = await store.place_bid(7, "bob", 10.0)

        assert result.status is BidStatus.NOT_FOUND
        assert not any("INSERT INTO bids" in sql for sql in executed_sql(connection))
        transaction.rollback.assert_awaited_once()
        transaction.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_driver_error_rolls_back_and_raises_storage_failure(
        self, store, connection, transaction
    ):
        connection.fetchval.return_value = 100.0
        connection.execute.side_effect = asyncpg.PostgresError("deadlock detected")

        with pytest.raises(StorageFailure):
            await store.place_bid(1, "alice", 150.0)

        transaction.rollback.assert_awaited_once()
        transaction.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_id_outside_column_range_is_not_found(self, store):
        result = await store.place_bid(MAX_ITEM_ID + 1, "alice", 10.0)
        assert result.status is BidStatus.NOT_FOUND
        store._pool.acquire.assert_not_called()


class TestReads:
    @pytest.mark.asyncio
    async def test_add_item_returns_new_id(self, store, connection):
        connection.fetchval.return_value = 3
        assert await store.add_item("Painting", "Oil", 100.0) == 3

    @pytest.mark.asyncio
    async def test_add_item_driver_error(self, store, connection):
        connection.fetchval.side_effect = OSError("connection reset")
        with pytest.raises(StorageFailure):
            await store.add_item("Painting", "Oil", 100.0)

    @pytest.mark.asyncio
    async def test_get_item(self, store, connection):
        connection.fetchrow.return_value = {
            "id": 1,
            "name": "Painting",
            "description": "Oil",
            "initial_price": 100.0,
            "highest_bid": 150.0,
            "highest_bidder": "alice",
        }
        item = await store.get_item(1)
        assert item.highest_bidder == "alice"

    @pytest.mark.asyncio
    async def test_out_of_range_reads(self, store):
        assert await store.get_item(2**40) is None
        assert await store.list_bids(-1) == []
        store._pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_releases_pool(self, store):
        pool = store._pool
        await store.close()
        pool.close.assert_awaited_once()
