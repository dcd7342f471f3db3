"""Select the document store adapter from settings."""

from __future__ import annotations

from redis.asyncio import from_url

from config import Settings, StoreBackend

from .repos.remote_store import RemoteStore
from .repos_redis import RedisRemoteStore
from .repos_sqlalchemy import SQLRemoteStore


async def build_store(settings: Settings) -> RemoteStore:
    """Return a connected store for ``settings.store_backend``."""

    if settings.store_backend == StoreBackend.SQL:
        store = SQLRemoteStore.from_url(settings.database_url)
        await store.create_schema()
        return store
    return RedisRemoteStore(from_url(settings.redis_url, decode_responses=True))
