from __future__ import annotations

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from link_crawler.errors import DependencyError, VisitedSetError
from link_crawler.state.memory_state import MemoryVisitedSet
from link_crawler.state.redis_state import RedisVisitedSet, split_addr


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the visited set."""

    def __init__(self, fail: bool = False) -> None:
        self.sets = {}
        self.fail = fail
        self.closed = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def ping(self):
        self._check()
        return True

    async def sadd(self, key, *members):
        self._check()
        bucket = self.sets.setdefault(key, set())
        before = len(bucket)
        bucket.update(members)
        return len(bucket) - before

    async def delete(self, *keys):
        self._check()
        return sum(1 for k in keys if self.sets.pop(k, None) is not None)

    async def aclose(self):
        self.closed = True


def test_memory_set_inserts_once():
    visited = MemoryVisitedSet()

    async def scenario():
        results = await asyncio.gather(*(visited.try_insert("http://example.com/") for _ in range(10)))
        await visited.clear()
        again = await visited.try_insert("http://example.com/")
        return results, again

    results, again = asyncio.run(scenario())
    assert results.count(True) == 1
    assert again is True


def test_redis_try_insert_reports_new_members_only():
    client = FakeRedis()
    visited = RedisVisitedSet(set_key="test:visited", client=client)

    async def scenario():
        return [
            await visited.try_insert("http://example.com/"),
            await visited.try_insert("http://example.com/"),
            await visited.try_insert("http://example.com/a"),
        ]

    assert asyncio.run(scenario()) == [True, False, True]
    assert client.sets["test:visited"] == {"http://example.com/", "http://example.com/a"}


def test_redis_clear_deletes_the_key():
    client = FakeRedis()
    visited = RedisVisitedSet(set_key="test:visited", client=client)

    async def scenario():
        await visited.try_insert("http://example.com/")
        await visited.clear()
        return await visited.try_insert("http://example.com/")

    assert asyncio.run(scenario()) is True


def test_redis_errors_are_wrapped():
    visited = RedisVisitedSet(client=FakeRedis(fail=True))
    with pytest.raises(VisitedSetError):
        asyncio.run(visited.try_insert("http://example.com/"))
    with pytest.raises(VisitedSetError):
        asyncio.run(visited.clear())


def test_redis_connect_failure_is_a_dependency_error():
    with pytest.raises(DependencyError):
        asyncio.run(RedisVisitedSet(client=FakeRedis(fail=True)).connect())


def test_redis_close():
    client = FakeRedis()
    asyncio.run(RedisVisitedSet(client=client).close())
    assert client.closed


@pytest.mark.parametrize(
    "addr,expected",
    [("localhost:6379", ("localhost", 6379)), ("redis.internal:7000", ("redis.internal", 7000)), ("cache", ("cache", 6379))],
)
def test_split_addr(addr, expected):
    assert split_addr(addr) == expected
