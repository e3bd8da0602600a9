from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class CrawlReport:
    start_url: str = ""
    seed_admitted: bool = False
    pages_fetched: int = 0
    records_saved: int = 0
    links_admitted: int = 0
    fetch_failures: int = 0
    extract_failures: int = 0
    save_failures: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def run(self, start_url: str, cancel: Optional[asyncio.Event] = None) -> CrawlReport:  # pragma: no cover - interface
        ...
