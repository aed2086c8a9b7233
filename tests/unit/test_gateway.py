"""Tests for the store gateway."""
import pytest

from post_cache.errors import RecordNotFoundError, UnsupportedOperationError
from post_cache.storage.gateway import StoreGateway
from post_cache.storage.mapping import to_remote
from post_cache.storage.table_client import ContinuationToken, QuerySegment
from tests.fixtures.table_fixtures import FakeTableClient, ScriptedTableClient, make_post


async def collect(gateway):
    return [record async for record in gateway.drain_all()]


@pytest.mark.asyncio
async def test_ensure_table_exists_is_idempotent(gateway, fake_table):
    await gateway.ensure_table_exists()
    await gateway.ensure_table_exists()

    assert fake_table.created


@pytest.mark.asyncio
async def test_drain_empty_table(gateway, fake_table):
    assert await collect(gateway) == []
    assert fake_table.queries == [None]


@pytest.mark.asyncio
async def test_drain_follows_tokens_until_exhausted():
    pages = [
        QuerySegment([{"RowKey": "1"}, {"RowKey": "2"}], ContinuationToken("p2")),
        QuerySegment([{"RowKey": "3"}], ContinuationToken("p3")),
        QuerySegment([{"RowKey": "4"}, {"RowKey": "5"}, {"RowKey": "6"}], None),
    ]
    table = ScriptedTableClient(pages)

    records = await collect(StoreGateway(table))

    assert [r["RowKey"] for r in records] == ["1", "2", "3", "4", "5", "6"]
    assert table.queries == [None, ContinuationToken("p2"), ContinuationToken("p3")]


@pytest.mark.asyncio
async def test_drain_many_pages():
    posts = [make_post(f"id{i:03d}") for i in range(25)]
    table = FakeTableClient([to_remote(p) for p in posts], page_size=4)

    records = await collect(StoreGateway(table))

    assert len(records) == 25
    assert len(table.queries) == 7


@pytest.mark.asyncio
async def test_upsert_replaces_existing(gateway, fake_table):
    post = make_post("p1")
    await gateway.upsert(post)
    post.title = "Renamed"
    await gateway.upsert(post)

    assert list(fake_table.rows) == ["p1"]
    assert fake_table.rows["p1"]["Title"] == "Renamed"


@pytest.mark.asyncio
async def test_delete_missing_propagates_not_found(gateway):
    with pytest.raises(RecordNotFoundError):
        await gateway.delete(make_post("ghost"))


@pytest.mark.asyncio
async def test_delete_existing(gateway, fake_table):
    post = make_post("p1")
    await gateway.upsert(post)

    await gateway.delete(post)

    assert fake_table.rows == {}


@pytest.mark.asyncio
async def test_save_binary_asset_is_unsupported(gateway):
    with pytest.raises(UnsupportedOperationError) as exc:
        await gateway.save_binary_asset(b"data", "photo", ".jpg")

    assert exc.value.details == {"name": "photo", "suffix": ".jpg", "size": 4}


@pytest.mark.asyncio
async def test_context_manager_closes_client(fake_table):
    async with StoreGateway(fake_table) as gateway:
        assert gateway.client is fake_table

    assert fake_table.closed


def test_mapping_is_exposed_on_gateway():
    post = make_post("p1")

    assert StoreGateway.from_remote(StoreGateway.to_remote(post)) == post
