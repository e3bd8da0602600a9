from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..errors import DependencyError, VisitedSetError

if TYPE_CHECKING:
    from ..config import CrawlConfig

logger = logging.getLogger(__name__)

PING_TIMEOUT = 5.0


def split_addr(addr: str) -> tuple[str, int]:
    host, _, port = addr.rpartition(":")
    if not host:
        return addr, 6379
    return host, int(port)


class RedisVisitedSet:
    """Visited set stored as one Redis set; SADD gives atomic test-and-insert."""

    def __init__(
        self,
        addr: str = "localhost:6379",
        password: str = "",
        db: int = 0,
        set_key: str = "crawler:visited_urls",
        *,
        client: Optional[Redis] = None,
    ) -> None:
        self.addr = addr
        self.set_key = set_key
        if client is None:
            host, port = split_addr(addr)
            client = Redis(host=host, port=port, password=password or None, db=db, decode_responses=True)
        self.client = client

    @classmethod
    def from_config(cls, cfg: "CrawlConfig") -> "RedisVisitedSet":
        r = cfg.redis
        return cls(r.addr, r.password, r.db, r.set_key)

    async def connect(self) -> None:
        try:
            await asyncio.wait_for(self.client.ping(), timeout=PING_TIMEOUT)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise DependencyError(f"cannot connect to Redis at {self.addr}: {exc!r}") from exc
        logger.info("Connected to Redis %s, visited set key %s", self.addr, self.set_key)

    async def try_insert(self, url: str) -> bool:
        try:
            added = await self.client.sadd(self.set_key, url)
        except RedisError as exc:
            raise VisitedSetError(f"SADD {self.set_key} failed: {exc}") from exc
        return added > 0

    async def clear(self) -> None:
        try:
            await self.client.delete(self.set_key)
        except RedisError as exc:
            raise VisitedSetError(f"DEL {self.set_key} failed: {exc}") from exc

    async def close(self) -> None:
        await self.client.aclose()
