from __future__ import annotations

from typing import Dict, List

from ..models import CrawledRecord


class MemoryRecordStore:
    """Keeps records in a dict keyed by URL. Used for dry runs and tests."""

    def __init__(self) -> None:
        self.records: Dict[str, CrawledRecord] = {}
        self.save_calls = 0
        self.closed = False

    async def save(self, record: CrawledRecord) -> None:
        self.save_calls += 1
        self.records[record.url] = record

    async def close(self) -> None:
        self.closed = True

    def urls(self) -> List[str]:
        return sorted(self.records)
