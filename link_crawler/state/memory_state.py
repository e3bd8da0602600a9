from __future__ import annotations

from typing import Iterable, Optional, Set


class MemoryVisitedSet:
    """
    In-process visited set. Membership test and add run without an await
    in between, so they are atomic on the event loop.
    Does not survive restarts.
    """

    def __init__(self, urls: Optional[Iterable[str]] = None) -> None:
        self.urls: Set[str] = set(urls or ())

    async def try_insert(self, url: str) -> bool:
        if url in self.urls:
            return False
        self.urls.add(url)
        return True

    async def clear(self) -> None:
        self.urls.clear()

    async def close(self) -> None:
        pass

    def __contains__(self, url: object) -> bool:
        return url in self.urls

    def __len__(self) -> int:
        return len(self.urls)
