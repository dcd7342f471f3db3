import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from redis.exceptions import ConnectionError as RedisConnectionError

from cafe.app.domain.records import Product, normalize
from cafe.app.errors import NotFound, ReadFailed, WriteRejected
from cafe.app.repos.remote_store import PageCursor
from cafe.app.repos_redis import RedisRemoteStore
from cafe.app.repos_sqlalchemy import SQLRemoteStore
from tests._store_helpers import BASE_TIME, at, products, seed


@pytest.fixture(params=["redis", "sql"])
async def store(request, tmp_path):
    if request.param == "redis":
        adapter = RedisRemoteStore(FakeRedis(server=FakeServer(), decode_responses=True))
    else:
        adapter = SQLRemoteStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
        await adapter.create_schema()
    yield adapter
    await adapter.close()


async def _drain(store, collection, page_size):
    seen = []
    cursor = None
    while True:
        docs, cursor = await store.query_page(collection, page_size, after=cursor)
        seen.extend(doc["id"] for doc in docs)
        if cursor.exhausted:
            return seen


@pytest.mark.anyio
async def test_create_get_update_delete(store):
    entity_id = await store.create("products", Product(name="latte", price=3.5).fields())
    doc = await store.get("products", entity_id)
    assert doc["id"] == entity_id
    assert normalize("products", doc).name == "latte"

    await store.update("products", entity_id, {"price": 4.0})
    assert (await store.get("products", entity_id))["price"] == 4.0

    await store.delete("products", entity_id)
    with pytest.raises(NotFound):
        await store.get("products", entity_id)


@pytest.mark.anyio
async def test_update_and_delete_of_missing_document(store):
    with pytest.raises(NotFound):
        await store.update("products", "nope", {"price": 1.0})
    with pytest.raises(NotFound):
        await store.delete("products", "nope")


@pytest.mark.anyio
async def test_update_keeps_identity_fields(store):
    entity_id = await store.create("products", Product(name="mocha", created_at=at(1)).fields())
    await store.update("products", entity_id, {"id": "x", "created_at": at(50).isoformat()})
    record = normalize("products", await store.get("products", entity_id))
    assert record.id == entity_id
    assert record.created_at == at(1)


@pytest.mark.anyio
async def test_pages_are_newest_first_and_total(store):
    ids = await seed(store, products(7))
    ids += await seed(store, [Product(name=f"tie {i}", created_at=at(3)) for i in range(4)])

    drained = await _drain(store, "products", 3)
    assert sorted(drained) == sorted(ids)
    assert len(drained) == len(set(drained))

    records = [normalize("products", await store.get("products", i)) for i in drained]
    assert [r.sort_key() for r in records] == sorted(r.sort_key() for r in records)


@pytest.mark.anyio
async def test_short_page_returns_exhausted_cursor(store):
    await seed(store, products(2))
    docs, cursor = await store.query_page("products", 5)
    assert len(docs) == 2
    assert cursor.exhausted


@pytest.mark.anyio
async def test_query_exact_matches_every_field(store):
    await seed(store, products(3) + products(2, start=5, featured=True))
    docs = await store.query_exact("products", featured=True)
    assert sorted(doc["name"] for doc in docs) == ["item 05", "item 06"]
    assert await store.query_exact("products", featured=True, name="item 05")
    assert await store.query_exact("categories") == []


@pytest.mark.anyio
async def test_collections_are_isolated(store):
    await seed(store, products(2))
    docs, _ = await store.query_page("reviews", 5)
    assert docs == []


def test_cursor_token_is_opaque_and_restorable():
    cursor = PageCursor.after(1714564800000000, "abc")
    assert PageCursor.from_token(cursor.token()) == cursor
    with pytest.raises(ValueError):
        PageCursor.from_token("not-a-token")


class _BrokenRedis:
    async def get(self, *args, **kwargs):
        raise RedisConnectionError("down")

    def pipeline(self, *args, **kwargs):
        return _BrokenPipeline()


class _BrokenPipeline:
    def set(self, *args, **kwargs):
        return self

    def zadd(self, *args, **kwargs):
        return self

    async def execute(self):
        raise RedisConnectionError("down")


@pytest.mark.anyio
async def test_redis_errors_map_to_store_errors():
    store = RedisRemoteStore(_BrokenRedis())
    with pytest.raises(ReadFailed):
        await store.get("products", "x")
    with pytest.raises(WriteRejected):
        await store.create("products", {"name": "x", "created_at": BASE_TIME.isoformat()})


@pytest.mark.anyio
async def test_slow_sql_statements_are_logged_without_parameters(tmp_path, caplog):
    store = SQLRemoteStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'slow.db'}", slow_query_ms=0)
    await store.create_schema()
    caplog.set_level("WARNING", logger="cafe.store")
    try:
        await store.create("messages", {"name": "Secret Guest", "created_at": BASE_TIME.isoformat()})
    finally:
        await store.close()
    slow = [r for r in caplog.records if r.getMessage().startswith("slow store statement")]
    assert slow
    assert all(r.store == "sql" for r in slow)
    assert not any("Secret Guest" in r.getMessage() for r in slow)
