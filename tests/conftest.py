import sys
from pathlib import Path

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

sys.path.append(str(Path(__file__).resolve().parents[1]))

from cafe.app.repos_redis import RedisRemoteStore  # noqa: E402
from tests._store_helpers import FlakyStore  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def redis_store() -> RedisRemoteStore:
    return RedisRemoteStore(FakeRedis(server=FakeServer(), decode_responses=True))


@pytest.fixture
def flaky(redis_store) -> FlakyStore:
    return FlakyStore(redis_store)
