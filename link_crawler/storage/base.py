from __future__ import annotations

from typing import Protocol

from ..models import CrawledRecord


class RecordStore(Protocol):
    """
    Durable sink for crawled pages.
    `save` must upsert keyed by record.url. `close` is called once after the
    run with its own timeout, so it must not depend on the crawl still running.
    """

    async def save(self, record: CrawledRecord) -> None:
        ...

    async def close(self) -> None:
        ...
